from __future__ import annotations

from decimal import Decimal

import pytest

from backoffice.business.finance import document_totals, line_amount, price_items, round_cents, to_amount
from backoffice.business.finance.calculator import MAX_AMOUNT, decimal_places
from backoffice.business.finance.schemas import LineItemInput
from backoffice.core.errors import ValidationError


def test_single_line_totals_match_reference_document() -> None:
    priced, totals = price_items([LineItemInput(service="Deck build", quantity=Decimal("10"), price=Decimal("50"))], 7)

    assert priced[0].total == Decimal("500")
    assert totals.subtotal == Decimal("500")
    assert totals.tax == Decimal("35.00")
    assert totals.total == Decimal("535.00")


def test_subtotal_is_sum_of_unrounded_line_amounts() -> None:
    items = [
        {"service": "Labor", "quantity": "1.5", "price": "33.33"},
        {"service": "Materials", "quantity": "3", "price": "0.333"},
    ]
    priced, totals = price_items(items, 0)

    assert [item.total for item in priced] == [Decimal("49.995"), Decimal("0.999")]
    assert totals.subtotal == Decimal("50.994")
    assert totals.total == totals.subtotal


def test_tax_rounds_half_up_to_cents() -> None:
    totals = document_totals([Decimal("0.50")], Decimal("5"))
    assert totals.tax == Decimal("0.03")
    assert round_cents(Decimal("2.345")) == Decimal("2.35")
    assert round_cents(Decimal("2.344")) == Decimal("2.34")


def test_total_is_always_subtotal_plus_tax() -> None:
    totals = document_totals([Decimal("19.99"), Decimal("5.01"), Decimal("100")], Decimal("8.25"))
    assert totals.total == totals.subtotal + totals.tax
    assert totals.tax == Decimal("10.31")


def test_client_supplied_item_total_is_ignored() -> None:
    priced, totals = price_items([{"service": "Paint", "quantity": 2, "price": 10, "total": 999}], 0)
    assert priced[0].total == Decimal("20")
    assert totals.total == Decimal("20")


def test_empty_document_totals_are_zero() -> None:
    priced, totals = price_items([], 7)
    assert priced == []
    assert totals.subtotal == Decimal("0")
    assert totals.tax == Decimal("0.00")
    assert totals.total == Decimal("0.00")


@pytest.mark.parametrize(
    ("quantity", "price", "field"),
    [(-1, 10, "quantity"), (1, -10, "price")],
)
def test_negative_quantity_or_price_is_rejected(quantity: int, price: int, field: str) -> None:
    with pytest.raises(ValidationError) as exc_info:
        line_amount(quantity, price)
    assert exc_info.value.details["field"] == field


def test_negative_tax_rate_is_rejected() -> None:
    with pytest.raises(ValidationError):
        document_totals([Decimal("10")], Decimal("-1"))


def test_non_numeric_quantity_is_rejected() -> None:
    with pytest.raises(ValidationError) as exc_info:
        price_items([{"service": "Roof", "quantity": "lots", "price": 1}], 0)
    assert exc_info.value.details["field"] == "items[0].quantity"


def test_blank_service_is_rejected() -> None:
    with pytest.raises(ValidationError) as exc_info:
        price_items([{"service": "  ", "quantity": 1, "price": 1}], 0)
    assert exc_info.value.details["field"] == "items[0].service"


@pytest.mark.parametrize(
    ("value", "places"),
    [("1.500", 1), ("0.333", 3), ("100", 0), ("1E+3", 0), ("0.00", 0), ("1.2345", 4)],
)
def test_decimal_places_ignores_trailing_zeros(value: str, places: int) -> None:
    assert decimal_places(Decimal(value)) == places


@pytest.mark.parametrize(
    ("quantity", "price", "field"),
    [
        ("1.2345", "1", "quantity"),
        ("1", "0.0001", "price"),
        ("1e30", "1", "quantity"),
        ("1000000", "1000000", "line total"),
    ],
)
def test_line_outside_stored_precision_is_rejected(quantity: str, price: str, field: str) -> None:
    with pytest.raises(ValidationError) as exc_info:
        line_amount(Decimal(quantity), Decimal(price))
    assert exc_info.value.details["field"] == field


def test_line_amounts_fit_six_decimal_places() -> None:
    amount = line_amount(Decimal("999.999"), Decimal("0.999"))
    assert decimal_places(amount) <= 6
    assert amount == Decimal("998.999001")


def test_subtotal_reaching_storage_limit_is_rejected() -> None:
    with pytest.raises(ValidationError) as exc_info:
        document_totals([MAX_AMOUNT - 1, Decimal("1")], 0)
    assert exc_info.value.details["field"] == "subtotal"


@pytest.mark.parametrize("rate", [Decimal("100.5"), Decimal("7.12345")])
def test_tax_rate_outside_supported_range_is_rejected(rate: Decimal) -> None:
    with pytest.raises(ValidationError) as exc_info:
        document_totals([Decimal("10")], rate)
    assert exc_info.value.details["field"] == "tax_rate"


def test_rounding_beyond_decimal_precision_is_a_validation_error() -> None:
    with pytest.raises(ValidationError):
        round_cents(Decimal("1e30"))


def test_amount_must_fit_stored_column() -> None:
    assert to_amount("12.500000", "amount") == Decimal("12.5")
    with pytest.raises(ValidationError):
        to_amount("0.0000001", "amount")
    with pytest.raises(ValidationError):
        to_amount(MAX_AMOUNT, "amount")
