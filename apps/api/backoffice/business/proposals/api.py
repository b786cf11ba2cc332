from __future__ import annotations

import uuid
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from backoffice.api.deps import get_current_user, offset_from_cursor, require_capability
from backoffice.api.errors import failure_response
from backoffice.business.proposals.schemas import (
    ProposalCreate,
    ProposalLinkCustomer,
    ProposalPatch,
    ProposalRead,
    ProposalStatusChange,
)
from backoffice.business.proposals.service import proposal_service
from backoffice.core.database import get_db
from backoffice.core.errors import DomainError
from backoffice.platform.security import ActorUser, Capability


router = APIRouter(prefix="/api/proposals", tags=["proposals"])


@router.post("", response_model=ProposalRead, status_code=status.HTTP_201_CREATED)
def create_proposal(
    request: Request,
    dto: ProposalCreate,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> ProposalRead | JSONResponse:
    try:
        require_capability(user, Capability.PROPOSALS_CREATE)
        return proposal_service.create_proposal(db, user, dto)
    except (DomainError, HTTPException) as exc:
        return failure_response(request, exc, code="proposal_create_failed")


@router.get("", response_model=list[ProposalRead])
def list_proposals(
    request: Request,
    status_filter: str | None = Query(default=None, alias="status"),
    customer_id: uuid.UUID | None = Query(default=None),
    cursor: str | None = Query(default=None),
    limit: int = Query(default=50, ge=1, le=200),
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> list[ProposalRead] | JSONResponse:
    try:
        require_capability(user, Capability.PROPOSALS_VIEW)
        return proposal_service.list_proposals(
            db,
            user,
            status_filter=status_filter,
            customer_id=customer_id,
            offset=offset_from_cursor(cursor),
            limit=limit,
        )
    except (DomainError, HTTPException) as exc:
        return failure_response(request, exc, code="proposal_list_failed")


@router.get("/{proposal_id}", response_model=ProposalRead)
def get_proposal(
    request: Request,
    proposal_id: uuid.UUID,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> ProposalRead | JSONResponse:
    try:
        require_capability(user, Capability.PROPOSALS_VIEW)
        return proposal_service.get_proposal(db, user, proposal_id)
    except (DomainError, HTTPException) as exc:
        return failure_response(request, exc, code="proposal_get_failed")


@router.patch("/{proposal_id}", response_model=ProposalRead)
def update_proposal(
    request: Request,
    proposal_id: uuid.UUID,
    dto: ProposalPatch,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> ProposalRead | JSONResponse:
    try:
        require_capability(user, Capability.PROPOSALS_EDIT)
        return proposal_service.update_proposal(db, user, proposal_id, dto)
    except (DomainError, HTTPException) as exc:
        return failure_response(request, exc, code="proposal_update_failed")


@router.delete("/{proposal_id}", response_model=None, status_code=status.HTTP_200_OK)
def delete_proposal(
    request: Request,
    proposal_id: uuid.UUID,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> Any:
    try:
        require_capability(user, Capability.PROPOSALS_EDIT)
        proposal_service.delete_proposal(db, user, proposal_id)
        return {"status": "deleted"}
    except (DomainError, HTTPException) as exc:
        return failure_response(request, exc, code="proposal_delete_failed")


@router.post("/{proposal_id}/status", response_model=ProposalRead)
def change_proposal_status(
    request: Request,
    proposal_id: uuid.UUID,
    dto: ProposalStatusChange,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> ProposalRead | JSONResponse:
    try:
        require_capability(user, Capability.PROPOSALS_EDIT)
        return proposal_service.change_status(db, user, proposal_id, dto)
    except (DomainError, HTTPException) as exc:
        return failure_response(request, exc, code="proposal_status_change_failed")


@router.post("/{proposal_id}/send", response_model=ProposalRead)
def send_proposal(
    request: Request,
    proposal_id: uuid.UUID,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> ProposalRead | JSONResponse:
    try:
        require_capability(user, Capability.PROPOSALS_EDIT)
        return proposal_service.send_proposal(db, user, proposal_id)
    except (DomainError, HTTPException) as exc:
        return failure_response(request, exc, code="proposal_send_failed")


@router.post("/{proposal_id}/link-customer", response_model=ProposalRead)
def link_proposal_customer(
    request: Request,
    proposal_id: uuid.UUID,
    dto: ProposalLinkCustomer,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> ProposalRead | JSONResponse:
    try:
        require_capability(user, Capability.PROPOSALS_EDIT)
        return proposal_service.link_customer(db, user, proposal_id, dto)
    except (DomainError, HTTPException) as exc:
        return failure_response(request, exc, code="proposal_link_customer_failed")

