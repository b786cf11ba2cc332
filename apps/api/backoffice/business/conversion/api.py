from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from backoffice.api.deps import get_current_user, require_capability
from backoffice.api.errors import failure_response
from backoffice.business.conversion.service import conversion_service
from backoffice.business.proposals.schemas import ProjectConversionRead
from backoffice.core.database import get_db
from backoffice.core.errors import DomainError
from backoffice.platform.security import ActorUser, Capability


router = APIRouter(prefix="/api/proposals", tags=["proposals.conversion"])


@router.post("/{proposal_id}/convert", response_model=ProjectConversionRead)
def convert_proposal(
    request: Request,
    proposal_id: uuid.UUID,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> ProjectConversionRead | JSONResponse:
    try:
        require_capability(user, Capability.PROJECTS_MANAGE)
        result = conversion_service.convert_proposal_to_project(db, user, proposal_id)
        return ProjectConversionRead(
            project_id=result.project_id,
            proposal_id=result.proposal_id,
            created=result.created,
        )
    except (DomainError, HTTPException) as exc:
        return failure_response(request, exc, code="proposal_convert_failed")
