from __future__ import annotations

from fastapi import Depends, HTTPException, Request, status

from backoffice.context import get_correlation_id
from backoffice.core.auth import AuthUser, get_current_user as get_auth_user
from backoffice.platform.security import ActorUser, Capability, MissingCapabilityError


def get_current_user(request: Request, auth_user: AuthUser = Depends(get_auth_user)) -> ActorUser:
    correlation_id = get_correlation_id() or getattr(request.state, "correlation_id", None)
    request.state.actor_user_id = auth_user.sub
    return ActorUser.from_roles(auth_user.sub, auth_user.roles, correlation_id=correlation_id)


def require_capability(user: ActorUser, capability: Capability) -> None:
    if not user.can(capability):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(MissingCapabilityError(capability.value)))


def offset_from_cursor(cursor: str | None) -> int:
    return int(cursor) if cursor and cursor.isdigit() else 0
