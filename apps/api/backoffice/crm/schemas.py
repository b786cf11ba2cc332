from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field


LeadStatus = Literal["new", "contacted", "qualified", "proposal", "negotiation", "won", "lost"]
LeadPriority = Literal["low", "medium", "high", "urgent"]
LeadActivityType = Literal[
    "status_change",
    "note_added",
    "email_sent",
    "call_made",
    "meeting_scheduled",
    "proposal_sent",
    "converted",
]


class LeadCreate(BaseModel):
    name: str = Field(min_length=1)
    email: EmailStr | None = None
    phone: str | None = None
    address: str | None = None
    service_type: str | None = None
    budget_range: str | None = None
    timeframe: str | None = None
    referral_source: str | None = None
    description: str | None = None
    source_url: str | None = None
    priority: LeadPriority = "medium"
    assigned_to: str | None = None
    estimated_value: Decimal | None = Field(default=None, ge=0)
    scheduled_date: date | None = None
    tags: list[str] = Field(default_factory=list)


class LeadUpdate(BaseModel):
    row_version: int | None = Field(default=None, ge=1)
    name: str | None = Field(default=None, min_length=1)
    email: EmailStr | None = None
    phone: str | None = None
    address: str | None = None
    service_type: str | None = None
    budget_range: str | None = None
    timeframe: str | None = None
    referral_source: str | None = None
    description: str | None = None
    status: LeadStatus | None = None
    priority: LeadPriority | None = None
    assigned_to: str | None = None
    estimated_value: Decimal | None = Field(default=None, ge=0)
    scheduled_date: date | None = None
    tags: list[str] | None = None


class LeadRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    email: str | None
    phone: str | None
    address: str | None
    service_type: str | None
    budget_range: str | None
    timeframe: str | None
    referral_source: str | None
    description: str | None
    source_url: str | None
    status: LeadStatus
    priority: LeadPriority
    assigned_to: str | None
    estimated_value: Decimal | None
    scheduled_date: date | None
    last_contact_date: datetime | None
    tags: list[str]
    converted_customer_id: UUID | None
    converted_at: datetime | None
    created_at: datetime
    updated_at: datetime
    row_version: int


class LeadNoteCreate(BaseModel):
    content: str = Field(min_length=1)
    note_type: str = Field(default="general", min_length=1)
    is_important: bool = False


class LeadNoteRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    lead_id: UUID
    content: str
    note_type: str
    is_important: bool
    created_by: str | None
    created_at: datetime


class LeadActivityRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    lead_id: UUID
    activity_type: LeadActivityType
    description: str
    created_by: str | None
    metadata: dict[str, Any] = Field(default_factory=dict, validation_alias="details")
    created_at: datetime


class LeadConvertRequest(BaseModel):
    password: str


class LeadConversionRead(BaseModel):
    customer_id: UUID
    lead_id: UUID


class LeadStatistics(BaseModel):
    total: int
    by_status: dict[str, int]
    by_priority: dict[str, int]
    total_value: Decimal
    recent_count: int
    conversion_rate: float


class CustomerCreate(BaseModel):
    name: str = Field(min_length=1)
    email: EmailStr
    phone: str | None = None
    address: str | None = None
    password: str


class CustomerUpdate(BaseModel):
    row_version: int | None = Field(default=None, ge=1)
    name: str | None = Field(default=None, min_length=1)
    email: EmailStr | None = None
    phone: str | None = None
    address: str | None = None
    password: str | None = None


class CustomerRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    email: str
    phone: str | None
    address: str | None
    lead_id: UUID | None
    created_at: datetime
    updated_at: datetime
    row_version: int


class CustomerNoteCreate(BaseModel):
    content: str = Field(min_length=1)


class CustomerNoteRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    customer_id: UUID
    content: str
    created_by: str | None
    created_at: datetime
