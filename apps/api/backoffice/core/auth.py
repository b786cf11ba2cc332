from dataclasses import dataclass, field
from typing import Any

from jose import JWTError, jwt
from starlette.requests import Request

from backoffice.core.config import get_settings

ANONYMOUS = "anonymous"


@dataclass
class AuthUser:
    sub: str
    roles: list[str] = field(default_factory=list)


def _bearer_token(request: Request) -> str:
    scheme, _, token = request.headers.get("authorization", "").partition(" ")
    return token.strip() if scheme.lower() == "bearer" else ""


def _roles_claim(payload: dict[str, Any]) -> list[str]:
    roles = payload.get("roles", [])
    if isinstance(roles, str):
        return [roles]
    if not isinstance(roles, list):
        return []
    return [str(role) for role in roles]


async def get_current_user(request: Request) -> AuthUser:
    """Decode the bearer token; a missing or invalid token yields an anonymous user with no roles."""
    token = _bearer_token(request)
    if not token:
        return AuthUser(sub=ANONYMOUS)

    settings = get_settings()
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except JWTError:
        return AuthUser(sub=ANONYMOUS)

    return AuthUser(sub=str(payload.get("sub", ANONYMOUS)), roles=_roles_claim(payload))


def issue_token(subject: str, roles: list[str]) -> str:
    settings = get_settings()
    return jwt.encode({"sub": subject, "roles": roles}, settings.jwt_secret, algorithm=settings.jwt_algorithm)
