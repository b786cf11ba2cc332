from __future__ import annotations

from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field


class LineItemInput(BaseModel):
    """One priced line as submitted by a client; any ``total`` sent along is ignored."""

    service: str = Field(min_length=1)
    quantity: Decimal
    price: Decimal
    notes: str | None = None


class LineItemRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    service: str
    quantity: Decimal
    price: Decimal
    total: Decimal
    notes: str | None = None
