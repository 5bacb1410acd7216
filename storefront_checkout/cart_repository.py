"""
Cart repository: reads the server-held cart for a device and issues add and
delete calls against it.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from pydantic import ValidationError as PydanticValidationError

from storefront_checkout.config import Config
from storefront_checkout.exceptions import CheckoutException, ParseError, ServerError
from storefront_checkout.http_client import BackendClient
from storefront_checkout.identifiers import hash_identifier
from storefront_checkout.models import CartRow, RawCartItem

logger = logging.getLogger(__name__)


@dataclass
class CartFetchResult:
    """Rows of one fetch; on failure the rows are empty and the error is set"""
    rows: List[CartRow] = field(default_factory=list)
    error: Optional[CheckoutException] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def ensure_success(data: Any, action: str) -> Dict[str, Any]:
    """Raise when a 2xx body still reports failure"""
    if not isinstance(data, dict):
        return {}
    if data.get("success") is False:
        raise ServerError(200, str(data.get("error") or data.get("message") or f"{action} failed"))
    return data


def parse_cart_snapshot(data: Any, default_image: str = "") -> List[CartRow]:
    """
    Convert a show-cart response into canonical rows.

    Items without a product id are skipped. When two items resolve to the same
    row id, the first one is kept.

    Raises:
        ParseError: If the response is not an object or cart_items is not a list
    """
    if not isinstance(data, dict):
        raise ParseError(f"Cart response must be an object, got {type(data).__name__}")

    items = data.get("cart_items")
    if items is None:
        return []
    if not isinstance(items, list):
        raise ParseError(f"cart_items must be a list, got {type(items).__name__}")

    rows: List[CartRow] = []
    seen = set()
    for index, raw in enumerate(items):
        try:
            item = RawCartItem.model_validate(raw)
        except PydanticValidationError as e:
            logger.warning(f"Skipping unreadable cart item at index {index}: {e.error_count()} error(s)")
            continue

        row = item.to_row(default_image)
        if row.row_id in seen:
            logger.warning(f"Skipping duplicate cart row {row.row_id}")
            continue
        seen.add(row.row_id)
        rows.append(row)

    return rows


class CartRepository:
    """Client for the device-scoped server cart"""

    def __init__(self, backend: BackendClient, retry_fetch: bool = True):
        self.backend = backend
        self.retry_fetch = retry_fetch

    async def fetch_cart(self, device_id: str) -> CartFetchResult:
        """
        Fetch and normalize the device's cart.

        Never raises for backend failures: the result carries an empty row list
        and the error so the caller can still render an empty cart.
        """
        if not device_id:
            logger.warning("No device identity available, skipping cart fetch")
            return CartFetchResult()

        async def _show():
            return await self.backend.post_json(
                Config.SHOW_CART_PATH,
                {"device_uuid": device_id},
                device_id=device_id
            )

        try:
            if self.retry_fetch:
                data = await self.backend.with_retry(_show)
            else:
                data = await _show()
            rows = parse_cart_snapshot(data, Config.DEFAULT_PRODUCT_IMAGE)
        except CheckoutException as e:
            logger.error(
                f"Cart fetch failed for device {hash_identifier(device_id)}: {type(e).__name__}: {e}"
            )
            return CartFetchResult(error=e)

        logger.info(f"Fetched {len(rows)} cart row(s) for device {hash_identifier(device_id)}")
        return CartFetchResult(rows=rows)

    async def add_item(
        self,
        device_id: str,
        product_id: str,
        quantity: int = 1,
        selected_size: str = "",
        selected_attributes: Optional[Dict[str, str]] = None
    ) -> Dict[str, Any]:
        """Add a product selection to the server cart"""
        data = await self.backend.post_json(
            Config.ADD_CART_PATH,
            {
                "device_uuid": device_id,
                "product_id": product_id,
                "quantity": quantity,
                "selected_size": selected_size or "",
                "selected_attributes": selected_attributes or {},
            },
            device_id=device_id
        )
        return ensure_success(data, "Add to cart")

    async def delete_item(self, device_id: str, product_id: str, variant_signature: str = "") -> Dict[str, Any]:
        """Delete one (product, variant) row from the server cart"""
        data = await self.backend.post_json(
            Config.DELETE_CART_ITEM_PATH,
            {
                "user_id": device_id,  # legacy backends key carts by user_id
                "product_id": product_id,
                "variant_signature": variant_signature or "",
                "device_uuid": device_id,
            },
            device_id=device_id
        )
        return ensure_success(data, "Delete cart item")
