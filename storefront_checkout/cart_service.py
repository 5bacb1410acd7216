"""
Cart service: the client-local cart cache and the mutations applied to it.

Local edits (quantity, price override, removal) take effect immediately and in
the order they are issued. Removal is then mirrored to the server; the
configured RemovalPolicy decides what happens to the local row when that call
fails. A fetch that started before the latest local edit is discarded rather
than allowed to overwrite the edit.
"""
import asyncio
import logging
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Dict, List, Optional, Set, Tuple

from storefront_checkout.cart_repository import CartFetchResult, CartRepository
from storefront_checkout.config import Config
from storefront_checkout.exceptions import (
    AuthError,
    CheckoutException,
    DeviceIdentityUnavailableError,
    RowNotFoundError
)
from storefront_checkout.identifiers import hash_identifier
from storefront_checkout.models import CartRow, Totals
from storefront_checkout.totals import compute_totals

logger = logging.getLogger(__name__)


class RemovalPolicy(str, Enum):
    """What to do with a locally removed row when the server delete fails"""
    NO_ROLLBACK = "no-rollback"
    ROLLBACK = "rollback"


@dataclass
class RemovalOutcome:
    row_id: str
    removed: bool
    synced: bool
    error: Optional[CheckoutException] = None


class CartState:
    """Ordered cart rows keyed by row id, with an edit counter"""

    def __init__(self, rows: Optional[List[CartRow]] = None):
        self._rows: Dict[str, CartRow] = {}
        self.version = 0
        if rows:
            self.replace(rows)
            self.version = 0

    @property
    def rows(self) -> List[CartRow]:
        return list(self._rows.values())

    def __len__(self) -> int:
        return len(self._rows)

    def __contains__(self, row_id: str) -> bool:
        return row_id in self._rows

    def get(self, row_id: str) -> CartRow:
        try:
            return self._rows[row_id]
        except KeyError:
            raise RowNotFoundError(row_id)

    def replace(self, rows: List[CartRow]):
        """Overwrite the cache with a server snapshot"""
        self._rows = {row.row_id: row for row in rows}

    def clear(self):
        self._rows = {}
        self.version += 1

    def adjust_quantity(self, row_id: str, delta: int) -> int:
        """Apply a relative change, never going below 1"""
        row = self.get(row_id)
        row.quantity = max(1, row.quantity + delta)
        self.version += 1
        return row.quantity

    def increment(self, row_id: str, delta: int = 1) -> int:
        if delta < 0:
            raise ValueError("Increment delta cannot be negative")
        return self.adjust_quantity(row_id, delta)

    def decrement(self, row_id: str, delta: int = 1) -> int:
        if delta < 0:
            raise ValueError("Decrement delta cannot be negative")
        return self.adjust_quantity(row_id, -delta)

    def set_unit_price(self, row_id: str, unit_price: Decimal) -> Decimal:
        """Override the unit price submitted for a row"""
        unit_price = Decimal(unit_price)
        if unit_price < 0:
            raise ValueError("Unit price cannot be negative")
        row = self.get(row_id)
        row.unit_price = unit_price
        self.version += 1
        return row.unit_price

    def pop(self, row_id: str) -> Tuple[int, CartRow]:
        """Remove a row, returning its former position and the row"""
        row = self.get(row_id)
        index = list(self._rows).index(row_id)
        del self._rows[row_id]
        self.version += 1
        return index, row

    def restore(self, index: int, row: CartRow):
        """Put a popped row back at its former position"""
        items = list(self._rows.items())
        items.insert(min(index, len(items)), (row.row_id, row))
        self._rows = dict(items)
        self.version += 1

    def totals(self, tax: Optional[Decimal] = None, shipping: Optional[Decimal] = None) -> Totals:
        return compute_totals(self._rows.values(), tax, shipping)


class CartSession:
    """One device's cart as seen by a checkout view"""

    def __init__(
        self,
        repository: CartRepository,
        device_id: str,
        is_authorized: bool = True,
        removal_policy: Optional[RemovalPolicy] = None,
        tax: Optional[Decimal] = None,
        shipping: Optional[Decimal] = None
    ):
        self.repository = repository
        self.device_id = device_id
        self.is_authorized = is_authorized
        self.removal_policy = RemovalPolicy(removal_policy or Config.REMOVAL_POLICY)
        self.tax = tax
        self.shipping = shipping
        self.state = CartState()
        self.last_error: Optional[CheckoutException] = None
        self._fetch_seq = 0
        self._fetch_tasks: Set[asyncio.Task] = set()
        self._pending_removals: Set[asyncio.Task] = set()

    @property
    def rows(self) -> List[CartRow]:
        return self.state.rows

    @property
    def totals(self) -> Totals:
        return self.state.totals(self.tax, self.shipping)

    async def refresh(self) -> CartFetchResult:
        """
        Replace the local rows with a fresh server snapshot.

        The snapshot is dropped when a newer fetch was started or a local edit
        happened while it was in flight. A failed fetch leaves an empty cart and
        records the error in last_error.
        """
        if not self.is_authorized:
            error = AuthError("Session is not allowed to check out")
            self.last_error = error
            return CartFetchResult(error=error)

        self._fetch_seq += 1
        seq = self._fetch_seq
        start_version = self.state.version

        task = asyncio.ensure_future(self.repository.fetch_cart(self.device_id))
        self._fetch_tasks.add(task)
        try:
            result = await task
        finally:
            self._fetch_tasks.discard(task)

        if seq != self._fetch_seq:
            logger.info("Discarding cart snapshot superseded by a newer fetch")
            return result
        if self.state.version != start_version:
            logger.warning("Discarding cart snapshot older than the latest local edit")
            return result

        self.last_error = result.error
        self.state.replace(result.rows)
        return result

    def increment(self, row_id: str, delta: int = 1) -> int:
        return self.state.increment(row_id, delta)

    def decrement(self, row_id: str, delta: int = 1) -> int:
        return self.state.decrement(row_id, delta)

    def adjust_quantity(self, row_id: str, delta: int) -> int:
        return self.state.adjust_quantity(row_id, delta)

    def set_unit_price(self, row_id: str, unit_price: Decimal) -> Decimal:
        return self.state.set_unit_price(row_id, unit_price)

    async def add_item(
        self,
        product_id: str,
        quantity: int = 1,
        selected_size: str = "",
        selected_attributes: Optional[Dict[str, str]] = None
    ) -> CartFetchResult:
        """Add a selection server-side, then reload the cart"""
        if not self.device_id:
            raise DeviceIdentityUnavailableError()
        await self.repository.add_item(
            self.device_id, product_id, quantity, selected_size, selected_attributes
        )
        return await self.refresh()

    async def remove(self, row_id: str) -> RemovalOutcome:
        """Remove a row locally, then delete it server-side"""
        index, row = self.state.pop(row_id)
        return await self._sync_removal(index, row)

    def remove_nowait(self, row_id: str) -> "asyncio.Task[RemovalOutcome]":
        """Remove a row locally now; the server delete runs in the background"""
        index, row = self.state.pop(row_id)
        task = asyncio.ensure_future(self._sync_removal(index, row))
        self._pending_removals.add(task)
        task.add_done_callback(self._pending_removals.discard)
        return task

    async def _sync_removal(self, index: int, row: CartRow) -> RemovalOutcome:
        if not self.device_id:
            logger.warning(f"No device identity, row {row.row_id} removed locally only")
            return RemovalOutcome(row.row_id, removed=True, synced=False)

        try:
            await self.repository.delete_item(self.device_id, row.product_id, row.variant_signature)
        except CheckoutException as e:
            logger.warning(
                f"Failed to delete row {row.row_id} for device {hash_identifier(self.device_id)}: "
                f"{type(e).__name__}: {e}"
            )
            if self.removal_policy is RemovalPolicy.ROLLBACK:
                self.state.restore(index, row)
                await self.refresh()
                return RemovalOutcome(
                    row.row_id, removed=row.row_id not in self.state, synced=False, error=e
                )
            return RemovalOutcome(row.row_id, removed=True, synced=False, error=e)

        return RemovalOutcome(row.row_id, removed=True, synced=True)

    def clear(self):
        self.state.clear()

    def close(self):
        """Cancel in-flight fetches; their results must not be applied"""
        for task in list(self._fetch_tasks):
            task.cancel()
        self._fetch_tasks.clear()
