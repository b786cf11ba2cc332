from __future__ import annotations

import uuid
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from backoffice.api.deps import get_current_user, offset_from_cursor, require_capability
from backoffice.api.errors import failure_response
from backoffice.business.subcontractors.schemas import (
    SubcontractorActivityRead,
    SubcontractorCreate,
    SubcontractorPatch,
    SubcontractorRead,
)
from backoffice.business.subcontractors.service import subcontractor_service
from backoffice.core.database import get_db
from backoffice.core.errors import DomainError
from backoffice.platform.security import ActorUser, Capability


router = APIRouter(prefix="/api/subcontractors", tags=["subcontractors"])


@router.post("", response_model=SubcontractorRead, status_code=status.HTTP_201_CREATED)
def create_subcontractor(
    request: Request,
    dto: SubcontractorCreate,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> SubcontractorRead | JSONResponse:
    try:
        require_capability(user, Capability.SUBCONTRACTORS_MANAGE)
        return subcontractor_service.create_subcontractor(db, user, dto)
    except (DomainError, HTTPException) as exc:
        return failure_response(request, exc, code="subcontractor_create_failed")


@router.get("", response_model=list[SubcontractorRead])
def list_subcontractors(
    request: Request,
    status_filter: str | None = Query(default=None, alias="status"),
    specialty: str | None = Query(default=None),
    cursor: str | None = Query(default=None),
    limit: int = Query(default=50, ge=1, le=200),
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> list[SubcontractorRead] | JSONResponse:
    try:
        require_capability(user, Capability.SUBCONTRACTORS_VIEW)
        return subcontractor_service.list_subcontractors(
            db,
            user,
            status_filter=status_filter,
            specialty=specialty,
            offset=offset_from_cursor(cursor),
            limit=limit,
        )
    except (DomainError, HTTPException) as exc:
        return failure_response(request, exc, code="subcontractor_list_failed")


@router.get("/{subcontractor_id}", response_model=SubcontractorRead)
def get_subcontractor(
    request: Request,
    subcontractor_id: uuid.UUID,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> SubcontractorRead | JSONResponse:
    try:
        require_capability(user, Capability.SUBCONTRACTORS_VIEW)
        return subcontractor_service.get_subcontractor(db, user, subcontractor_id)
    except (DomainError, HTTPException) as exc:
        return failure_response(request, exc, code="subcontractor_get_failed")


@router.patch("/{subcontractor_id}", response_model=SubcontractorRead)
def update_subcontractor(
    request: Request,
    subcontractor_id: uuid.UUID,
    dto: SubcontractorPatch,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> SubcontractorRead | JSONResponse:
    try:
        require_capability(user, Capability.SUBCONTRACTORS_MANAGE)
        return subcontractor_service.update_subcontractor(db, user, subcontractor_id, dto)
    except (DomainError, HTTPException) as exc:
        return failure_response(request, exc, code="subcontractor_update_failed")


@router.delete("/{subcontractor_id}", response_model=None, status_code=status.HTTP_200_OK)
def delete_subcontractor(
    request: Request,
    subcontractor_id: uuid.UUID,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> Any:
    try:
        require_capability(user, Capability.SUBCONTRACTORS_MANAGE)
        subcontractor_service.delete_subcontractor(db, user, subcontractor_id)
        return {"status": "deleted"}
    except (DomainError, HTTPException) as exc:
        return failure_response(request, exc, code="subcontractor_delete_failed")


@router.get("/{subcontractor_id}/activities", response_model=list[SubcontractorActivityRead])
def list_subcontractor_activities(
    request: Request,
    subcontractor_id: uuid.UUID,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> list[SubcontractorActivityRead] | JSONResponse:
    try:
        require_capability(user, Capability.SUBCONTRACTORS_VIEW)
        return subcontractor_service.list_activities(db, user, subcontractor_id)
    except (DomainError, HTTPException) as exc:
        return failure_response(request, exc, code="subcontractor_activity_list_failed")
