from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator


ProjectStatus = Literal["pending", "active", "completed", "cancelled"]


class ProjectCreate(BaseModel):
    customer_id: UUID
    title: str = Field(min_length=1)
    description: str | None = None
    budget: Decimal | None = Field(default=None, ge=0)
    start_date: date | None = None
    end_date: date | None = None

    @model_validator(mode="after")
    def _check_dates(self) -> ProjectCreate:
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class ProjectPatch(BaseModel):
    row_version: int | None = Field(default=None, ge=1)
    title: str | None = Field(default=None, min_length=1)
    description: str | None = None
    status: ProjectStatus | None = None
    budget: Decimal | None = Field(default=None, ge=0)
    start_date: date | None = None
    end_date: date | None = None


class ProjectRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    customer_id: UUID
    proposal_id: UUID | None
    title: str
    description: str | None
    status: ProjectStatus
    budget: Decimal | None
    start_date: date | None
    end_date: date | None
    created_at: datetime
    updated_at: datetime
    row_version: int


class ProjectUpdateCreate(BaseModel):
    title: str = Field(min_length=1)
    content: str = Field(min_length=1)


class ProjectUpdateRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    project_id: UUID
    title: str
    content: str
    created_by: str | None
    created_at: datetime


class ProjectDocumentCreate(BaseModel):
    name: str = Field(min_length=1)
    storage_url: str = Field(min_length=1)
    file_type: str | None = None
    file_size: int | None = Field(default=None, ge=0)


class ProjectDocumentRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    project_id: UUID
    name: str
    storage_url: str
    file_type: str | None
    file_size: int | None
    uploaded_by: str | None
    created_at: datetime


MilestoneStatus = Literal["pending", "in_progress", "completed", "skipped"]


class ProjectMilestoneCreate(BaseModel):
    name: str = Field(min_length=1)
    description: str | None = None
    status: MilestoneStatus = "pending"
    scheduled_date: date | None = None
    completed_date: date | None = None

    @model_validator(mode="after")
    def _check_completion(self) -> ProjectMilestoneCreate:
        if self.completed_date and self.status != "completed":
            raise ValueError("completed_date requires status completed")
        return self


class ProjectMilestoneRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    project_id: UUID
    name: str
    description: str | None
    position: int
    status: MilestoneStatus
    scheduled_date: date | None
    completed_date: date | None
    created_by: str | None
    created_at: datetime
