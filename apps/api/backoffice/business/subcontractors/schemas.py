from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator


SubcontractorStatus = Literal["pending", "approved", "active", "suspended", "rejected"]


def normalize_specialties(values: list[str]) -> list[str]:
    return sorted({value.strip() for value in values if value and value.strip()})


class SubcontractorCreate(BaseModel):
    company_name: str = Field(min_length=1)
    contact_name: str = Field(min_length=1)
    email: EmailStr
    phone: str | None = None
    address: str | None = None
    city: str | None = None
    state: str | None = None
    zip_code: str | None = None
    business_type: str | None = None
    years_in_business: int | None = Field(default=None, ge=0)
    license_number: str | None = None
    insurance_provider: str | None = None
    insurance_expiry: date | None = None
    specialties: list[str] = Field(default_factory=list)
    w9_submitted: bool = False

    @field_validator("specialties")
    @classmethod
    def _dedupe_specialties(cls, value: list[str]) -> list[str]:
        return normalize_specialties(value)


class SubcontractorPatch(BaseModel):
    row_version: int | None = Field(default=None, ge=1)
    company_name: str | None = Field(default=None, min_length=1)
    contact_name: str | None = Field(default=None, min_length=1)
    email: EmailStr | None = None
    phone: str | None = None
    address: str | None = None
    city: str | None = None
    state: str | None = None
    zip_code: str | None = None
    business_type: str | None = None
    years_in_business: int | None = Field(default=None, ge=0)
    license_number: str | None = None
    insurance_provider: str | None = None
    insurance_expiry: date | None = None
    specialties: list[str] | None = None
    w9_submitted: bool | None = None
    status: SubcontractorStatus | None = None
    admin_notes: str | None = None
    rating: Decimal | None = Field(default=None, ge=0, le=5)
    total_projects: int | None = Field(default=None, ge=0)

    @field_validator("specialties")
    @classmethod
    def _dedupe_specialties(cls, value: list[str] | None) -> list[str] | None:
        return normalize_specialties(value) if value is not None else None


class SubcontractorRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    company_name: str
    contact_name: str
    email: str
    phone: str | None
    address: str | None
    city: str | None
    state: str | None
    zip_code: str | None
    business_type: str | None
    years_in_business: int | None
    license_number: str | None
    insurance_provider: str | None
    insurance_expiry: date | None
    specialties: list[str]
    w9_submitted: bool
    status: SubcontractorStatus
    admin_notes: str | None
    rating: Decimal | None
    total_projects: int
    approved_at: datetime | None
    approved_by: str | None
    created_at: datetime
    updated_at: datetime
    row_version: int


class SubcontractorActivityRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    subcontractor_id: UUID
    activity_type: str
    description: str
    performed_by: str | None
    created_at: datetime
