"""Fake storefront backend and payload builders shared by the tests."""

import json
import asyncio
from typing import Any, Dict, List, Optional

import httpx

from storefront_checkout.config import Config
from storefront_checkout.http_client import BackendClient


def raw_item(
    product_id: str = "P1",
    signature: str = "",
    unit_price: Any = "10.00",
    quantity: int = 2,
    **extra
) -> Dict[str, Any]:
    item = {
        "product_id": product_id,
        "quantity": quantity,
        "product_name": f"Product {product_id}",
        "product_image": f"/images/{product_id}.jpg",
        "variant_signature": signature,
        "selected_size": "",
        "selected_attributes": {},
        "selected_attributes_human": [],
        "price_breakdown": {
            "base_price": str(unit_price),
            "unit_price": str(unit_price),
            "line_total": str(unit_price),
            "attributes_delta": "0.00",
        },
    }
    item.update(extra)
    return item


class FakeBackend:
    """In-memory storefront backend behind httpx.MockTransport"""

    def __init__(self, cart_items: Optional[List[Dict[str, Any]]] = None):
        self.cart_items: List[Dict[str, Any]] = list(cart_items or [])
        self.calls: List[Dict[str, Any]] = []
        self.failures: Dict[str, Any] = {}
        self.order_response = (200, {"success": True, "order_id": "ORD-1"})
        self.gate: Optional[asyncio.Event] = None

    def calls_to(self, path: str) -> List[Dict[str, Any]]:
        return [c for c in self.calls if c["path"] == path]

    async def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        body = json.loads(request.content) if request.content else {}
        self.calls.append({"path": path, "json": body, "headers": request.headers})

        snapshot = list(self.cart_items)
        if self.gate is not None and path == Config.SHOW_CART_PATH:
            await self.gate.wait()

        failure = self.failures.get(path)
        if isinstance(failure, list):
            failure = failure.pop(0) if failure else None
        if isinstance(failure, Exception):
            raise failure
        if failure is not None:
            status, payload = failure
            return httpx.Response(status, json=payload)

        if path == Config.SHOW_CART_PATH:
            return httpx.Response(200, json={"cart_items": snapshot})

        if path == Config.ADD_CART_PATH:
            self.cart_items.append(raw_item(
                product_id=body["product_id"],
                quantity=body["quantity"],
                selected_size=body["selected_size"],
            ))
            return httpx.Response(200, json={"success": True})

        if path == Config.DELETE_CART_ITEM_PATH:
            self.cart_items = [
                item for item in self.cart_items
                if not (item["product_id"] == body["product_id"]
                        and item.get("variant_signature", "") == body["variant_signature"])
            ]
            return httpx.Response(200, json={"success": True})

        if path == Config.SAVE_ORDER_PATH:
            status, payload = self.order_response
            return httpx.Response(status, json=payload)

        return httpx.Response(404, json={"error": "not found"})

    def client(self) -> BackendClient:
        return BackendClient(
            base_url="http://backend.test",
            frontend_key="test-key",
            transport=httpx.MockTransport(self.handler)
        )


def connect_error(message: str = "connection refused") -> httpx.ConnectError:
    return httpx.ConnectError(message, request=httpx.Request("POST", "http://backend.test"))


