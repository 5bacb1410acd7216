"""
Cart totals: subtotal of the rows plus fixed tax and shipping.
"""
from decimal import Decimal
from typing import Iterable, Optional

from storefront_checkout.config import Config
from storefront_checkout.models import CartRow, Totals
from storefront_checkout.pricing import compute_line_total


def subtotal(rows: Iterable[CartRow]) -> Decimal:
    return sum(
        (compute_line_total(row.unit_price, row.quantity) for row in rows),
        Decimal("0")
    )


def compute_totals(
    rows: Iterable[CartRow],
    tax: Optional[Decimal] = None,
    shipping: Optional[Decimal] = None
) -> Totals:
    """Project totals from the rows. Tax and shipping default to the configured amounts."""
    tax = Config.TAX_AMOUNT if tax is None else Decimal(tax)
    shipping = Config.SHIPPING_AMOUNT if shipping is None else Decimal(shipping)
    sub = subtotal(rows)
    return Totals(subtotal=sub, tax=tax, shipping=shipping, total=sub + tax + shipping)
