from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from backoffice.business.finance.schemas import LineItemInput, LineItemRead


InvoiceStatus = Literal["draft", "sent", "overdue", "paid", "cancelled"]


class InvoiceCreate(BaseModel):
    customer_id: UUID | None = None
    customer_name: str | None = None
    customer_email: EmailStr | None = None
    customer_phone: str | None = None
    customer_address: str | None = None
    invoice_type: str | None = None
    invoice_date: date | None = None
    due_date: date | None = None
    items: list[LineItemInput] = Field(default_factory=list)
    tax_rate: Decimal | None = None
    notes: str | None = None


class InvoicePatch(BaseModel):
    row_version: int | None = Field(default=None, ge=1)
    customer_name: str | None = None
    customer_email: EmailStr | None = None
    customer_phone: str | None = None
    customer_address: str | None = None
    invoice_type: str | None = None
    invoice_date: date | None = None
    due_date: date | None = None
    items: list[LineItemInput] | None = None
    tax_rate: Decimal | None = None
    notes: str | None = None


class InvoiceStatusChange(BaseModel):
    status: str = Field(min_length=1)
    row_version: int | None = Field(default=None, ge=1)


class InvoicePaymentCreate(BaseModel):
    amount: Decimal = Field(gt=0)
    row_version: int | None = Field(default=None, ge=1)


class InvoiceRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    invoice_number: str
    customer_id: UUID | None
    customer_name: str | None
    customer_email: str | None
    customer_phone: str | None
    customer_address: str | None
    invoice_type: str | None
    invoice_date: date
    due_date: date | None
    items: list[LineItemRead]
    subtotal: Decimal
    tax_rate: Decimal
    tax: Decimal
    total: Decimal
    amount_paid: Decimal
    balance_due: Decimal
    notes: str | None
    status: InvoiceStatus
    paid_at: datetime | None
    created_at: datetime
    updated_at: datetime
    row_version: int
