"""
Checkout service: validates delivery details, turns the live cart into an
order, submits it and cleans the submitted rows out of the server cart.
"""
import asyncio
import logging
from decimal import Decimal
from typing import Any, List, Optional

from storefront_checkout.cart_repository import CartRepository
from storefront_checkout.cart_service import CartSession
from storefront_checkout.config import Config
from storefront_checkout.exceptions import (
    AuthError,
    CheckoutException,
    DeviceIdentityUnavailableError,
    EmptyCartError,
    MissingFieldsError,
    ServerError,
    SubmitError
)
from storefront_checkout.http_client import BackendClient
from storefront_checkout.identifiers import hash_identifier
from storefront_checkout.models import (
    CartRow,
    DeliveryInfo,
    DeliveryPayload,
    ItemLine,
    OrderDraft,
    OrderReceipt,
    Totals
)
from storefront_checkout.pricing import compute_line_total, price_formula, round_money, selection_parts
from storefront_checkout.totals import compute_totals

logger = logging.getLogger(__name__)

REQUIRED_DELIVERY_FIELDS = ("email", "phone", "street_address", "city")


def validate(delivery: DeliveryInfo) -> List[str]:
    """Return the required delivery fields that are empty or whitespace"""
    return [name for name in REQUIRED_DELIVERY_FIELDS if not getattr(delivery, name).strip()]


def ensure_submittable(rows: List[CartRow], delivery: DeliveryInfo):
    """
    Block submission locally.

    Raises:
        MissingFieldsError: If any required delivery field is empty
        EmptyCartError: If there is nothing to order
    """
    missing = validate(delivery)
    if missing:
        raise MissingFieldsError(missing)
    if not rows:
        raise EmptyCartError()


def assemble(
    rows: List[CartRow],
    delivery: DeliveryInfo,
    device_id: str,
    tax: Optional[Decimal] = None,
    shipping: Optional[Decimal] = None,
    notes: Optional[str] = None
) -> OrderDraft:
    """Build the order draft; amounts are rounded to cents here and nowhere earlier"""
    items = [
        ItemLine(
            product_id=row.product_id,
            quantity=int(row.quantity),
            unit_price=round_money(row.unit_price),
            total_price=round_money(compute_line_total(row.unit_price, row.quantity)),
            selected_size=row.selected_size,
            selected_attributes=row.selected_attributes,
            selected_attributes_human=row.selected_attributes_human,
            base_price=row.base_price,
            variant_signature=row.variant_signature,
            attributes_price_delta=row.attributes_price_delta
        )
        for row in rows
    ]
    totals = compute_totals(rows, tax, shipping)

    return OrderDraft(
        user_name=delivery.name.strip() or "Guest",
        total_price=round_money(totals.total),
        status="pending",
        notes=Config.ORDER_NOTES if notes is None else notes,
        device_uuid=device_id,
        items=items,
        delivery=DeliveryPayload.from_delivery(delivery)
    )


def order_summary(rows: List[CartRow], delivery: DeliveryInfo, totals: Totals) -> str:
    """Plain-text order message for the shop owner"""
    lines = [
        f"Name: {delivery.name or 'N/A'}",
        f"Email: {delivery.email or 'N/A'}",
        f"Phone: {delivery.phone or 'N/A'}",
        f"Company: {delivery.company or 'N/A'}",
        f"Address: {delivery.street_address or 'N/A'}",
        f"City: {delivery.city or 'N/A'}",
        f"Zip: {delivery.zip_code or 'N/A'}",
        f"Instructions: {delivery.instructions or 'N/A'}",
        "",
        "Order:",
    ]

    for row in rows:
        parts = selection_parts(row.selected_size, row.selected_attributes_human)
        selection = f" ({', '.join(parts)})" if parts else ""
        formula = price_formula(row.base_price, row.selected_attributes_human)
        line_total = round_money(compute_line_total(row.unit_price, row.quantity))
        lines.append(f"{row.product_name}{selection}: {row.quantity} x $({formula}) = ${line_total}")

    lines.extend([
        "",
        f"Subtotal: ${round_money(totals.subtotal)}",
        f"Tax: ${totals.tax}",
        f"Shipping: ${totals.shipping}",
        f"Total: ${round_money(totals.total)}",
    ])
    return "\n".join(lines)


def _order_id(data: Any) -> Optional[str]:
    if isinstance(data, dict):
        for key in ("order_id", "id"):
            if data.get(key) is not None:
                return str(data[key])
        order = data.get("order")
        if isinstance(order, dict) and order.get("id") is not None:
            return str(order["id"])
    elif isinstance(data, (str, int)) and not isinstance(data, bool):
        return str(data)
    return None


class CheckoutService:
    """Service for order submission"""

    def __init__(self, backend: BackendClient, repository: Optional[CartRepository] = None):
        self.backend = backend
        self.repository = repository or CartRepository(backend)

    async def submit(self, draft: OrderDraft) -> Optional[str]:
        """
        POST the order draft once; there is no automatic retry.

        Returns:
            The backend order identifier, when it sends one

        Raises:
            SubmitError: Non-2xx status, or a body reporting failure
            AuthError: Credential rejected
            TransportError: Backend unreachable
        """
        try:
            data = await self.backend.post_json(
                Config.SAVE_ORDER_PATH,
                draft.to_payload(),
                device_id=draft.device_uuid
            )
        except SubmitError:
            raise
        except ServerError as e:
            raise SubmitError(e.status_code, e.message) from e

        if isinstance(data, dict) and data.get("success") is False:
            raise SubmitError(200, str(data.get("error") or "Order was not accepted"))

        order_id = _order_id(data)
        logger.info(f"Order submitted for device {hash_identifier(draft.device_uuid)}: {order_id}")
        return order_id

    async def cleanup_after_submit(self, rows: List[CartRow], device_id: str) -> List[str]:
        """
        Delete every submitted row from the server cart.

        Best effort: every row is attempted once, failures are logged and the
        failed row ids returned, nothing is raised.
        """
        if not device_id:
            logger.warning(f"No device identity, skipping cleanup of {len(rows)} cart row(s)")
            return [row.row_id for row in rows]

        async def _delete(row: CartRow) -> Optional[str]:
            try:
                await self.repository.delete_item(device_id, row.product_id, row.variant_signature)
            except CheckoutException as e:
                logger.warning(f"Failed to delete row {row.row_id} after order: {type(e).__name__}: {e}")
                return row.row_id
            return None

        results = await asyncio.gather(*(_delete(row) for row in rows))
        return [row_id for row_id in results if row_id]

    async def place_order(self, session: CartSession, delivery: DeliveryInfo) -> OrderReceipt:
        """
        Validate, assemble and submit the session's cart, then clean up.

        Local validation failures are raised before any network call. The local
        cart is cleared only after the backend accepted the order.
        """
        if not session.is_authorized:
            raise AuthError("Session is not allowed to check out")
        if not session.device_id:
            raise DeviceIdentityUnavailableError()

        rows = session.rows
        ensure_submittable(rows, delivery)

        draft = assemble(rows, delivery, session.device_id, session.tax, session.shipping)
        summary = order_summary(rows, delivery, session.totals)

        order_id = await self.submit(draft)
        failures = await self.cleanup_after_submit(rows, session.device_id)
        if failures:
            logger.warning(f"{len(failures)} cart row(s) left on the server after order {order_id}")

        session.clear()
        return OrderReceipt(order_id=order_id, draft=draft, summary=summary, cleanup_failures=failures)
