from __future__ import annotations

import uuid
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from backoffice.api.deps import get_current_user, offset_from_cursor, require_capability
from backoffice.api.errors import failure_response
from backoffice.business.projects.schemas import (
    ProjectCreate,
    ProjectDocumentCreate,
    ProjectDocumentRead,
    ProjectMilestoneCreate,
    ProjectMilestoneRead,
    ProjectPatch,
    ProjectRead,
    ProjectUpdateCreate,
    ProjectUpdateRead,
)
from backoffice.business.projects.service import project_service
from backoffice.core.database import get_db
from backoffice.core.errors import DomainError
from backoffice.platform.security import ActorUser, Capability


router = APIRouter(prefix="/api/projects", tags=["projects"])


@router.post("", response_model=ProjectRead, status_code=status.HTTP_201_CREATED)
def create_project(
    request: Request,
    dto: ProjectCreate,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> ProjectRead | JSONResponse:
    try:
        require_capability(user, Capability.PROJECTS_MANAGE)
        return project_service.create_project(db, user, dto)
    except (DomainError, HTTPException) as exc:
        return failure_response(request, exc, code="project_create_failed")


@router.get("", response_model=list[ProjectRead])
def list_projects(
    request: Request,
    status_filter: str | None = Query(default=None, alias="status"),
    customer_id: uuid.UUID | None = Query(default=None),
    cursor: str | None = Query(default=None),
    limit: int = Query(default=50, ge=1, le=200),
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> list[ProjectRead] | JSONResponse:
    try:
        require_capability(user, Capability.PROJECTS_VIEW)
        return project_service.list_projects(
            db,
            user,
            status_filter=status_filter,
            customer_id=customer_id,
            offset=offset_from_cursor(cursor),
            limit=limit,
        )
    except (DomainError, HTTPException) as exc:
        return failure_response(request, exc, code="project_list_failed")


@router.get("/{project_id}", response_model=ProjectRead)
def get_project(
    request: Request,
    project_id: uuid.UUID,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> ProjectRead | JSONResponse:
    try:
        require_capability(user, Capability.PROJECTS_VIEW)
        return project_service.get_project(db, user, project_id)
    except (DomainError, HTTPException) as exc:
        return failure_response(request, exc, code="project_get_failed")


@router.patch("/{project_id}", response_model=ProjectRead)
def update_project(
    request: Request,
    project_id: uuid.UUID,
    dto: ProjectPatch,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> ProjectRead | JSONResponse:
    try:
        require_capability(user, Capability.PROJECTS_MANAGE)
        return project_service.update_project(db, user, project_id, dto)
    except (DomainError, HTTPException) as exc:
        return failure_response(request, exc, code="project_update_failed")


@router.delete("/{project_id}", response_model=None, status_code=status.HTTP_200_OK)
def delete_project(
    request: Request,
    project_id: uuid.UUID,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> Any:
    try:
        require_capability(user, Capability.PROJECTS_MANAGE)
        project_service.delete_project(db, user, project_id)
        return {"status": "deleted"}
    except (DomainError, HTTPException) as exc:
        return failure_response(request, exc, code="project_delete_failed")


@router.post("/{project_id}/updates", response_model=ProjectUpdateRead, status_code=status.HTTP_201_CREATED)
def add_project_update(
    request: Request,
    project_id: uuid.UUID,
    dto: ProjectUpdateCreate,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> ProjectUpdateRead | JSONResponse:
    try:
        require_capability(user, Capability.PROJECTS_MANAGE)
        return project_service.add_update(db, user, project_id, dto)
    except (DomainError, HTTPException) as exc:
        return failure_response(request, exc, code="project_update_post_failed")


@router.get("/{project_id}/updates", response_model=list[ProjectUpdateRead])
def list_project_updates(
    request: Request,
    project_id: uuid.UUID,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> list[ProjectUpdateRead] | JSONResponse:
    try:
        require_capability(user, Capability.PROJECTS_VIEW)
        return project_service.list_updates(db, user, project_id)
    except (DomainError, HTTPException) as exc:
        return failure_response(request, exc, code="project_update_list_failed")


@router.post("/{project_id}/documents", response_model=ProjectDocumentRead, status_code=status.HTTP_201_CREATED)
def add_project_document(
    request: Request,
    project_id: uuid.UUID,
    dto: ProjectDocumentCreate,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> ProjectDocumentRead | JSONResponse:
    try:
        require_capability(user, Capability.PROJECTS_MANAGE)
        return project_service.add_document(db, user, project_id, dto)
    except (DomainError, HTTPException) as exc:
        return failure_response(request, exc, code="project_document_create_failed")


@router.get("/{project_id}/documents", response_model=list[ProjectDocumentRead])
def list_project_documents(
    request: Request,
    project_id: uuid.UUID,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> list[ProjectDocumentRead] | JSONResponse:
    try:
        require_capability(user, Capability.PROJECTS_VIEW)
        return project_service.list_documents(db, user, project_id)
    except (DomainError, HTTPException) as exc:
        return failure_response(request, exc, code="project_document_list_failed")


@router.post("/{project_id}/milestones", response_model=ProjectMilestoneRead, status_code=status.HTTP_201_CREATED)
def add_project_milestone(
    request: Request,
    project_id: uuid.UUID,
    dto: ProjectMilestoneCreate,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> ProjectMilestoneRead | JSONResponse:
    try:
        require_capability(user, Capability.PROJECTS_MANAGE)
        return project_service.add_milestone(db, user, project_id, dto)
    except (DomainError, HTTPException) as exc:
        return failure_response(request, exc, code="project_milestone_create_failed")


@router.get("/{project_id}/milestones", response_model=list[ProjectMilestoneRead])
def list_project_milestones(
    request: Request,
    project_id: uuid.UUID,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> list[ProjectMilestoneRead] | JSONResponse:
    try:
        require_capability(user, Capability.PROJECTS_VIEW)
        return project_service.list_milestones(db, user, project_id)
    except (DomainError, HTTPException) as exc:
        return failure_response(request, exc, code="project_milestone_list_failed")
