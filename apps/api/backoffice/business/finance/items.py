from __future__ import annotations

from decimal import Decimal
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, PlainSerializer, ValidationError as PydanticValidationError

from backoffice.business.finance.calculator import PricedItem
from backoffice.core.errors import ValidationError

ITEMS_SCHEMA_VERSION = 1

ExactDecimal = Annotated[Decimal, PlainSerializer(lambda value: str(value), return_type=str, when_used="json")]


class StoredLineItemV1(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    service: str
    quantity: ExactDecimal
    price: ExactDecimal
    total: ExactDecimal
    notes: str | None = None


class StoredItemsV1(BaseModel):
    model_config = ConfigDict(extra="forbid")

    schema_version: Literal[1] = 1
    items: list[StoredLineItemV1]


def encode_items(items: list[PricedItem]) -> dict[str, Any]:
    document = StoredItemsV1(
        items=[
            StoredLineItemV1(
                service=item.service,
                quantity=item.quantity,
                price=item.price,
                total=item.total,
                notes=item.notes,
            )
            for item in items
        ]
    )
    return document.model_dump(mode="json")


def decode_items(payload: dict[str, Any] | None) -> list[PricedItem]:
    if payload is None:
        return []
    if not isinstance(payload, dict):
        raise ValidationError("stored items payload must be an object")
    version = payload.get("schema_version")
    if version != ITEMS_SCHEMA_VERSION:
        raise ValidationError(
            "unsupported stored items schema version",
            details={"schema_version": version, "supported": [ITEMS_SCHEMA_VERSION]},
        )
    try:
        document = StoredItemsV1.model_validate(payload)
    except PydanticValidationError as exc:
        raise ValidationError("stored items payload is malformed", details={"errors": exc.errors(include_url=False, include_context=False)}) from exc
    return [
        PricedItem(service=item.service, quantity=item.quantity, price=item.price, total=item.total, notes=item.notes)
        for item in document.items
    ]
