from decimal import Decimal

from storefront_checkout.models import HumanAttribute
from storefront_checkout.pricing import (
    compute_line_total,
    describe_selection,
    parse_amount,
    price_formula,
    resolve_row_id,
    round_money
)


def test_row_id_prefers_cart_item_id():
    assert resolve_row_id("CI-9", "P1", "red") == "CI-9"


def test_row_id_without_signature_is_product_id():
    assert resolve_row_id(None, "P1", "") == "P1"


def test_row_id_joins_product_and_signature():
    assert resolve_row_id(None, "P1", "red") == "P1|red"
    assert resolve_row_id(None, "P1", "red") != resolve_row_id(None, "P1", "blue")


def test_describe_selection_size_first_then_attributes():
    human = [
        HumanAttribute(attribute_name="Color", option_label="Red", price_delta="2.00"),
        HumanAttribute(attribute_name="Finish", option_label="Matte", price_delta="0.00"),
    ]
    assert describe_selection("M", human) == "Size: M • Color: Red • Finish: Matte"


def test_describe_selection_empty():
    assert describe_selection("", []) == ""
    assert describe_selection(None, []) == ""
    assert describe_selection("  ", []) == ""


def test_line_total_is_exact_product():
    assert compute_line_total(Decimal("10.005"), 3) == Decimal("30.015")
    assert compute_line_total(Decimal("0"), 7) == Decimal("0")


def test_round_money_only_rounds_on_request():
    total = compute_line_total(Decimal("0.125"), 1)
    assert total == Decimal("0.125")
    assert round_money(total) == Decimal("0.13")


def test_parse_amount_defaults_to_zero():
    assert parse_amount("12.50") == Decimal("12.50")
    assert parse_amount(7) == Decimal("7")
    assert parse_amount(None) == Decimal("0")
    assert parse_amount("abc") == Decimal("0")
    assert parse_amount("") == Decimal("0")
    assert parse_amount("NaN") == Decimal("0")
    assert parse_amount(True) == Decimal("0")


def test_price_formula_lists_base_and_deltas():
    human = [
        HumanAttribute(attribute_name="Color", option_label="Red", price_delta="2.50"),
        HumanAttribute(attribute_name="Engraving", option_label="Yes", price_delta=""),
    ]
    assert price_formula(Decimal("20"), human) == "20 + 2.50 + 0"
