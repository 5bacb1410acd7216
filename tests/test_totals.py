from decimal import Decimal

from storefront_checkout.models import CartRow
from storefront_checkout.totals import compute_totals, subtotal


def make_row(row_id, unit_price, quantity):
    return CartRow(row_id=row_id, product_id=row_id, unit_price=Decimal(unit_price), quantity=quantity)


def test_single_row_with_fixed_tax_and_shipping():
    totals = compute_totals([make_row("P1", "10", 2)], Decimal("50"), Decimal("100"))

    assert totals.subtotal == Decimal("20")
    assert totals.total == Decimal("170")


def test_total_is_subtotal_plus_tax_plus_shipping():
    rows = [make_row("P1", "19.99", 3), make_row("P2", "0.01", 1), make_row("P3", "5.555", 2)]
    totals = compute_totals(rows, Decimal("7.5"), Decimal("0"))

    assert totals.subtotal == Decimal("59.97") + Decimal("0.01") + Decimal("11.110")
    assert totals.total == totals.subtotal + Decimal("7.5")


def test_defaults_come_from_config():
    totals = compute_totals([])

    assert totals.subtotal == Decimal("0")
    assert totals.tax == Decimal("50")
    assert totals.shipping == Decimal("100")
    assert totals.total == Decimal("150")


def test_subtotal_follows_row_changes():
    row = make_row("P1", "10", 1)
    assert subtotal([row]) == Decimal("10")

    row.quantity = 4
    assert subtotal([row]) == Decimal("40")
