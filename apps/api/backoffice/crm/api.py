from __future__ import annotations

import uuid
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from backoffice.api.deps import get_current_user, require_capability
from backoffice.api.errors import failure_response
from backoffice.business.conversion.service import conversion_service
from backoffice.business.projects.schemas import ProjectRead
from backoffice.core.database import get_db
from backoffice.core.errors import DomainError
from backoffice.crm.schemas import (
    CustomerCreate,
    CustomerNoteCreate,
    CustomerNoteRead,
    CustomerRead,
    CustomerUpdate,
    LeadActivityRead,
    LeadConversionRead,
    LeadConvertRequest,
    LeadCreate,
    LeadNoteCreate,
    LeadNoteRead,
    LeadRead,
    LeadStatistics,
    LeadUpdate,
)
from backoffice.crm.service import customer_service, lead_service
from backoffice.platform.security import ActorUser, Capability


leads_router = APIRouter(prefix="/api/crm", tags=["crm.leads"])
customers_router = APIRouter(prefix="/api/crm", tags=["crm.customers"])


@leads_router.post("/leads", response_model=LeadRead, status_code=status.HTTP_201_CREATED)
def create_lead(
    request: Request,
    dto: LeadCreate,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> LeadRead | JSONResponse:
    try:
        require_capability(user, Capability.LEADS_MANAGE)
        return lead_service.create_lead(db, user, dto)
    except (DomainError, HTTPException) as exc:
        return failure_response(request, exc, code="crm_lead_create_failed")


@leads_router.get("/leads", response_model=list[LeadRead])
def list_leads(
    request: Request,
    status_filter: str | None = Query(default=None, alias="status"),
    priority: str | None = Query(default=None),
    q: str | None = Query(default=None),
    cursor: str | None = Query(default=None),
    limit: int = Query(default=50, ge=1, le=200),
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> list[LeadRead] | JSONResponse:
    try:
        require_capability(user, Capability.LEADS_VIEW)
        return lead_service.list_leads(
            db,
            user,
            filters={"status": status_filter, "priority": priority, "q": q},
            cursor=cursor,
            limit=limit,
        )
    except (DomainError, HTTPException) as exc:
        return failure_response(request, exc, code="crm_lead_list_failed")


@leads_router.get("/leads/statistics", response_model=LeadStatistics)
def lead_statistics(
    request: Request,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> LeadStatistics | JSONResponse:
    try:
        require_capability(user, Capability.LEADS_VIEW)
        return lead_service.statistics(db, user)
    except (DomainError, HTTPException) as exc:
        return failure_response(request, exc, code="crm_lead_statistics_failed")


@leads_router.get("/leads/{lead_id}", response_model=LeadRead)
def get_lead(
    request: Request,
    lead_id: uuid.UUID,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> LeadRead | JSONResponse:
    try:
        require_capability(user, Capability.LEADS_VIEW)
        return lead_service.get_lead(db, user, lead_id)
    except (DomainError, HTTPException) as exc:
        return failure_response(request, exc, code="crm_lead_get_failed")


@leads_router.patch("/leads/{lead_id}", response_model=LeadRead)
def update_lead(
    request: Request,
    lead_id: uuid.UUID,
    dto: LeadUpdate,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> LeadRead | JSONResponse:
    try:
        require_capability(user, Capability.LEADS_MANAGE)
        return lead_service.update_lead(db, user, lead_id, dto)
    except (DomainError, HTTPException) as exc:
        return failure_response(request, exc, code="crm_lead_update_failed")


@leads_router.delete("/leads/{lead_id}", response_model=None, status_code=status.HTTP_200_OK)
def delete_lead(
    request: Request,
    lead_id: uuid.UUID,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> Any:
    try:
        require_capability(user, Capability.LEADS_MANAGE)
        lead_service.delete_lead(db, user, lead_id)
        return {"status": "deleted"}
    except (DomainError, HTTPException) as exc:
        return failure_response(request, exc, code="crm_lead_delete_failed")


@leads_router.post("/leads/{lead_id}/notes", response_model=LeadNoteRead, status_code=status.HTTP_201_CREATED)
def add_lead_note(
    request: Request,
    lead_id: uuid.UUID,
    dto: LeadNoteCreate,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> LeadNoteRead | JSONResponse:
    try:
        require_capability(user, Capability.LEADS_MANAGE)
        return lead_service.add_note(db, user, lead_id, dto)
    except (DomainError, HTTPException) as exc:
        return failure_response(request, exc, code="crm_lead_note_create_failed")


@leads_router.get("/leads/{lead_id}/notes", response_model=list[LeadNoteRead])
def list_lead_notes(
    request: Request,
    lead_id: uuid.UUID,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> list[LeadNoteRead] | JSONResponse:
    try:
        require_capability(user, Capability.LEADS_VIEW)
        return lead_service.list_notes(db, user, lead_id)
    except (DomainError, HTTPException) as exc:
        return failure_response(request, exc, code="crm_lead_note_list_failed")


@leads_router.get("/leads/{lead_id}/activities", response_model=list[LeadActivityRead])
def list_lead_activities(
    request: Request,
    lead_id: uuid.UUID,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> list[LeadActivityRead] | JSONResponse:
    try:
        require_capability(user, Capability.LEADS_VIEW)
        return lead_service.list_activities(db, user, lead_id)
    except (DomainError, HTTPException) as exc:
        return failure_response(request, exc, code="crm_lead_activity_list_failed")


@leads_router.post("/leads/{lead_id}/convert", response_model=LeadConversionRead, status_code=status.HTTP_201_CREATED)
def convert_lead(
    request: Request,
    lead_id: uuid.UUID,
    dto: LeadConvertRequest,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> LeadConversionRead | JSONResponse:
    try:
        require_capability(user, Capability.LEADS_MANAGE)
        result = conversion_service.convert_lead_to_customer(db, user, lead_id, dto.password)
        return LeadConversionRead(customer_id=result.customer_id, lead_id=result.lead_id)
    except (DomainError, HTTPException) as exc:
        return failure_response(request, exc, code="crm_lead_convert_failed")


@customers_router.post("/customers", response_model=CustomerRead, status_code=status.HTTP_201_CREATED)
def create_customer(
    request: Request,
    dto: CustomerCreate,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> CustomerRead | JSONResponse:
    try:
        require_capability(user, Capability.CUSTOMERS_MANAGE)
        return customer_service.create_customer(db, user, dto)
    except (DomainError, HTTPException) as exc:
        return failure_response(request, exc, code="crm_customer_create_failed")


@customers_router.get("/customers", response_model=list[CustomerRead])
def list_customers(
    request: Request,
    q: str | None = Query(default=None),
    cursor: str | None = Query(default=None),
    limit: int = Query(default=50, ge=1, le=200),
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> list[CustomerRead] | JSONResponse:
    try:
        require_capability(user, Capability.CUSTOMERS_VIEW)
        return customer_service.list_customers(db, user, q=q, cursor=cursor, limit=limit)
    except (DomainError, HTTPException) as exc:
        return failure_response(request, exc, code="crm_customer_list_failed")


@customers_router.get("/customers/{customer_id}", response_model=CustomerRead)
def get_customer(
    request: Request,
    customer_id: uuid.UUID,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> CustomerRead | JSONResponse:
    try:
        require_capability(user, Capability.CUSTOMERS_VIEW)
        return customer_service.get_customer(db, user, customer_id)
    except (DomainError, HTTPException) as exc:
        return failure_response(request, exc, code="crm_customer_get_failed")


@customers_router.patch("/customers/{customer_id}", response_model=CustomerRead)
def update_customer(
    request: Request,
    customer_id: uuid.UUID,
    dto: CustomerUpdate,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> CustomerRead | JSONResponse:
    try:
        require_capability(user, Capability.CUSTOMERS_MANAGE)
        return customer_service.update_customer(db, user, customer_id, dto)
    except (DomainError, HTTPException) as exc:
        return failure_response(request, exc, code="crm_customer_update_failed")


@customers_router.delete("/customers/{customer_id}", response_model=None, status_code=status.HTTP_200_OK)
def delete_customer(
    request: Request,
    customer_id: uuid.UUID,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> Any:
    try:
        require_capability(user, Capability.CUSTOMERS_MANAGE)
        customer_service.delete_customer(db, user, customer_id)
        return {"status": "deleted"}
    except (DomainError, HTTPException) as exc:
        return failure_response(request, exc, code="crm_customer_delete_failed")


@customers_router.post(
    "/customers/{customer_id}/notes",
    response_model=CustomerNoteRead,
    status_code=status.HTTP_201_CREATED,
)
def add_customer_note(
    request: Request,
    customer_id: uuid.UUID,
    dto: CustomerNoteCreate,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> CustomerNoteRead | JSONResponse:
    try:
        require_capability(user, Capability.CUSTOMERS_MANAGE)
        return customer_service.add_note(db, user, customer_id, dto)
    except (DomainError, HTTPException) as exc:
        return failure_response(request, exc, code="crm_customer_note_create_failed")


@customers_router.get("/customers/{customer_id}/notes", response_model=list[CustomerNoteRead])
def list_customer_notes(
    request: Request,
    customer_id: uuid.UUID,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> list[CustomerNoteRead] | JSONResponse:
    try:
        require_capability(user, Capability.CUSTOMERS_VIEW)
        return customer_service.list_notes(db, user, customer_id)
    except (DomainError, HTTPException) as exc:
        return failure_response(request, exc, code="crm_customer_note_list_failed")


@customers_router.get("/customers/{customer_id}/projects", response_model=list[ProjectRead])
def list_customer_projects(
    request: Request,
    customer_id: uuid.UUID,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> list[ProjectRead] | JSONResponse:
    try:
        require_capability(user, Capability.PROJECTS_VIEW)
        return customer_service.list_projects(db, user, customer_id)
    except (DomainError, HTTPException) as exc:
        return failure_response(request, exc, code="crm_customer_project_list_failed")
