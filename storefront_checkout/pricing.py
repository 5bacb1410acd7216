"""
Row identity, selection labels and price arithmetic for cart rows.

Everything here is pure. Amounts stay exact Decimals internally; rounding to
cents happens only through round_money() when a figure is displayed or
submitted, so repeated recomputation never compounds rounding error.
"""
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Iterable, Optional

CENT = Decimal("0.01")
SELECTION_SEPARATOR = " • "


def parse_amount(value: Any) -> Decimal:
    """Parse a backend amount; missing or malformed values read as zero."""
    if value is None or isinstance(value, bool):
        return Decimal("0")
    try:
        amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return Decimal("0")
    if not amount.is_finite():
        return Decimal("0")
    return amount


def resolve_row_id(cart_item_id: Optional[str], product_id: str, variant_signature: str = "") -> str:
    """Prefer the server row id, else product id plus variant signature."""
    if cart_item_id:
        return cart_item_id
    if not variant_signature:
        return product_id
    return f"{product_id}|{variant_signature}"


def selection_parts(size: Optional[str], human_attributes: Iterable[Any]) -> list:
    parts = []
    size = (size or "").strip()
    if size:
        parts.append(f"Size: {size}")
    for attr in human_attributes:
        parts.append(f"{attr.attribute_name}: {attr.option_label}")
    return parts


def describe_selection(
    size: Optional[str],
    human_attributes: Iterable[Any],
    separator: str = SELECTION_SEPARATOR
) -> str:
    """Human-readable selection, e.g. ``Size: M • Color: Red``."""
    return separator.join(selection_parts(size, human_attributes))


def compute_line_total(unit_price: Decimal, quantity: int) -> Decimal:
    return Decimal(unit_price) * quantity


def round_money(value: Decimal) -> Decimal:
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def price_formula(base_price: Decimal, human_attributes: Iterable[Any]) -> str:
    """Base price followed by each attribute delta, e.g. ``20 + 2.50``."""
    terms = [str(base_price)]
    terms.extend(attr.price_delta or "0" for attr in human_attributes)
    return " + ".join(terms)
