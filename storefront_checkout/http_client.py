"""
JSON-over-HTTP client for the storefront backend, with device identity and
API credential headers attached to every request.
"""
import json
import random
import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx

from storefront_checkout.config import Config
from storefront_checkout.exceptions import (
    AuthError,
    ParseError,
    ServerError,
    TransportError
)

logger = logging.getLogger(__name__)

FRONTEND_KEY_HEADER = "X-Frontend-Key"
DEVICE_UUID_HEADER = "X-Device-UUID"


def error_message(response: httpx.Response) -> str:
    """Best-effort message from an error response body"""
    try:
        body = response.json()
    except ValueError:
        body = None

    if isinstance(body, dict):
        for key in ("error", "detail", "message"):
            if body.get(key):
                return str(body[key])

    text = response.text.strip()
    return text[:500] if text else response.reason_phrase


class BackendClient:
    """Async JSON client for the storefront backend"""

    def __init__(
        self,
        base_url: Optional[str] = None,
        frontend_key: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.frontend_key = frontend_key if frontend_key is not None else (Config.FRONTEND_KEY or "")
        self.client = httpx.AsyncClient(
            base_url=base_url or Config.API_BASE_URL,
            timeout=timeout or Config.HTTP_TIMEOUT_SECONDS,
            transport=transport
        )

    def _headers(self, device_id: str) -> Dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            FRONTEND_KEY_HEADER: self.frontend_key
        }
        if device_id:
            headers[DEVICE_UUID_HEADER] = device_id
        return headers

    async def post_json(self, path: str, payload: Dict[str, Any], device_id: str = "") -> Any:
        """
        POST a JSON body and return the decoded JSON response.

        Raises:
            TransportError: Backend unreachable or timed out
            AuthError: Credential rejected (401/403)
            ServerError: Any other non-2xx status
            ParseError: Success status with a body that is not JSON
        """
        try:
            response = await self.client.post(path, json=payload, headers=self._headers(device_id))
        except httpx.TimeoutException as e:
            raise TransportError(f"Request to {path} timed out: {e}")
        except httpx.TransportError as e:
            raise TransportError(f"Request to {path} failed: {e}")

        if response.status_code in (401, 403):
            raise AuthError(error_message(response), status_code=response.status_code)

        if not response.is_success:
            raise ServerError(response.status_code, error_message(response))

        if not response.content.strip():
            return {}

        try:
            return response.json()
        except (json.JSONDecodeError, ValueError) as e:
            raise ParseError(f"Response from {path} is not JSON: {e}")

    async def with_retry(
        self,
        func: Callable[[], Awaitable[Any]],
        max_retries: Optional[int] = None,
        initial_backoff: Optional[float] = None,
        max_backoff: Optional[float] = None
    ) -> Any:
        """
        Run an idempotent request with exponential backoff on transport errors.

        Raises:
            TransportError: If all attempts fail
        """
        max_retries = max(1, Config.FETCH_MAX_RETRIES if max_retries is None else max_retries)
        backoff = Config.FETCH_INITIAL_BACKOFF if initial_backoff is None else initial_backoff
        max_backoff = Config.FETCH_MAX_BACKOFF if max_backoff is None else max_backoff

        for attempt in range(max_retries):
            try:
                return await func()
            except TransportError as e:
                if attempt == max_retries - 1:
                    raise TransportError(f"Request failed after {max_retries} attempts: {e}")

                logger.info(f"Retrying after transport error (attempt {attempt + 1}): {e}")
                jitter = random.uniform(0, backoff * 0.1)
                await asyncio.sleep(backoff + jitter)
                backoff = min(backoff * 2, max_backoff)

    async def aclose(self):
        await self.client.aclose()
