"""Line-item and document totals arithmetic shared by proposals and invoices.

Both document types must price through :func:`price_items` so their totals agree
exactly. Line amounts are never rounded; only the tax is rounded, half-up to the
cent, and the total is always ``subtotal + tax``.

Inputs are bounded so every stored amount is exact in a ``Numeric(18, 6)``
column: quantity and price carry at most three decimal places, so a line amount
never needs more than six, and no amount may reach 10**12.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from backoffice.core.errors import ValidationError

CENT = Decimal("0.01")
HUNDRED = Decimal("100")

QUANTITY_PLACES = 3
PRICE_PLACES = 3
TAX_RATE_PLACES = 4
AMOUNT_PLACES = 6
MAX_AMOUNT = Decimal("1e12")
MAX_TAX_RATE = HUNDRED


@dataclass(frozen=True, slots=True)
class DocumentTotals:
    subtotal: Decimal
    tax: Decimal
    total: Decimal


@dataclass(frozen=True, slots=True)
class PricedItem:
    service: str
    quantity: Decimal
    price: Decimal
    total: Decimal
    notes: str | None = None


def to_decimal(value: Any, field: str) -> Decimal:
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number", details={"field": field})
    if isinstance(value, float):
        value = repr(value)
    try:
        result = value if isinstance(value, Decimal) else Decimal(value)
    except (InvalidOperation, TypeError, ValueError) as exc:
        raise ValidationError(f"{field} must be a number", details={"field": field}) from exc
    if not result.is_finite():
        raise ValidationError(f"{field} must be a finite number", details={"field": field})
    return result


def _ensure_below(value: Decimal, limit: Decimal, field: str) -> Decimal:
    if abs(value) >= limit:
        raise ValidationError(
            f"{field} is out of range",
            details={"field": field, "value": str(value), "limit": str(limit)},
        )
    return value


def decimal_places(value: Decimal) -> int:
    """Significant decimal places of a finite value; trailing zeros do not count."""
    _, digits, exponent = value.as_tuple()
    significant = "".join(str(digit) for digit in digits).rstrip("0")
    if not significant:
        return 0
    return max(0, -int(exponent) - (len(digits) - len(significant)))


def _ensure_places(value: Decimal, places: int, field: str) -> Decimal:
    if decimal_places(value) > places:
        raise ValidationError(
            f"{field} allows at most {places} decimal places",
            details={"field": field, "value": str(value), "decimal_places": places},
        )
    return value


def to_amount(value: Any, field: str) -> Decimal:
    """A monetary amount that fits the stored column exactly."""
    amount = _ensure_below(to_decimal(value, field), MAX_AMOUNT, field)
    return _ensure_places(amount, AMOUNT_PLACES, field)


def round_cents(value: Decimal) -> Decimal:
    try:
        return value.quantize(CENT, rounding=ROUND_HALF_UP)
    except InvalidOperation as exc:
        raise ValidationError("amount is out of range", details={"value": str(value)}) from exc


def line_amount(quantity: Any, unit_rate: Any) -> Decimal:
    qty = to_decimal(quantity, "quantity")
    rate = to_decimal(unit_rate, "price")
    if qty < 0:
        raise ValidationError("quantity must not be negative", details={"field": "quantity", "value": str(qty)})
    if rate < 0:
        raise ValidationError("price must not be negative", details={"field": "price", "value": str(rate)})
    _ensure_places(_ensure_below(qty, MAX_AMOUNT, "quantity"), QUANTITY_PLACES, "quantity")
    _ensure_places(_ensure_below(rate, MAX_AMOUNT, "price"), PRICE_PLACES, "price")
    return _ensure_below(qty * rate, MAX_AMOUNT, "line total")


def document_totals(amounts: Iterable[Any], tax_rate_percent: Any) -> DocumentTotals:
    rate = to_decimal(tax_rate_percent, "tax_rate")
    if rate < 0:
        raise ValidationError("tax_rate must not be negative", details={"field": "tax_rate", "value": str(rate)})
    if rate > MAX_TAX_RATE:
        raise ValidationError(
            "tax_rate must not exceed 100",
            details={"field": "tax_rate", "value": str(rate)},
        )
    _ensure_places(rate, TAX_RATE_PLACES, "tax_rate")
    subtotal = sum((to_amount(amount, "amount") for amount in amounts), start=Decimal("0"))
    _ensure_below(subtotal, MAX_AMOUNT, "subtotal")
    tax = round_cents(subtotal * rate / HUNDRED)
    return DocumentTotals(subtotal=subtotal, tax=tax, total=_ensure_below(subtotal + tax, MAX_AMOUNT, "total"))


def price_items(items: Sequence[Any], tax_rate_percent: Any) -> tuple[list[PricedItem], DocumentTotals]:
    """Recompute every item total and the document totals from scratch.

    ``items`` may be pydantic models, dataclasses or mappings exposing
    ``service``, ``quantity``, ``price`` and optionally ``notes``; any
    client-supplied per-item total is ignored.
    """
    priced: list[PricedItem] = []
    for index, item in enumerate(items):
        service = _field(item, "service")
        if not isinstance(service, str) or not service.strip():
            raise ValidationError("item service is required", details={"field": f"items[{index}].service"})
        quantity = to_decimal(_field(item, "quantity"), f"items[{index}].quantity")
        price = to_decimal(_field(item, "price"), f"items[{index}].price")
        priced.append(
            PricedItem(
                service=service.strip(),
                quantity=quantity,
                price=price,
                total=line_amount(quantity, price),
                notes=_field(item, "notes"),
            )
        )
    totals = document_totals((item.total for item in priced), tax_rate_percent)
    return priced, totals


def _field(item: Any, name: str) -> Any:
    if isinstance(item, dict):
        return item.get(name)
    return getattr(item, name, None)
