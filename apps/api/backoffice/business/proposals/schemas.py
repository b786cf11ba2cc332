from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from backoffice.business.finance.schemas import LineItemInput, LineItemRead


ProposalStatus = Literal["draft", "sent", "viewed", "accepted", "declined"]


class ProposalCreate(BaseModel):
    customer_id: UUID | None = None
    customer_name: str | None = None
    customer_email: EmailStr | None = None
    customer_phone: str | None = None
    customer_address: str | None = None
    title: str | None = None
    proposal_type: str | None = None
    proposal_date: date | None = None
    expiration_date: date | None = None
    items: list[LineItemInput] = Field(default_factory=list)
    tax_rate: Decimal | None = None
    notes: str | None = None


class ProposalPatch(BaseModel):
    row_version: int | None = Field(default=None, ge=1)
    customer_name: str | None = None
    customer_email: EmailStr | None = None
    customer_phone: str | None = None
    customer_address: str | None = None
    title: str | None = None
    proposal_type: str | None = None
    proposal_date: date | None = None
    expiration_date: date | None = None
    items: list[LineItemInput] | None = None
    tax_rate: Decimal | None = None
    notes: str | None = None


class ProposalStatusChange(BaseModel):
    status: str = Field(min_length=1)
    row_version: int | None = Field(default=None, ge=1)


class ProposalLinkCustomer(BaseModel):
    customer_id: UUID
    row_version: int | None = Field(default=None, ge=1)


class ProposalRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    proposal_number: str
    customer_id: UUID | None
    customer_name: str | None
    customer_email: str | None
    customer_phone: str | None
    customer_address: str | None
    title: str | None
    proposal_type: str | None
    proposal_date: date | None
    expiration_date: date | None
    items: list[LineItemRead]
    subtotal: Decimal
    tax_rate: Decimal
    tax: Decimal
    total: Decimal
    notes: str | None
    status: ProposalStatus
    sent_at: datetime | None
    accepted_at: datetime | None
    created_at: datetime
    updated_at: datetime
    row_version: int


class ProjectConversionRead(BaseModel):
    project_id: UUID
    proposal_id: UUID
    created: bool
