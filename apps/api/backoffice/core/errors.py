from __future__ import annotations

from typing import Any


class DomainError(Exception):
    """Base error for rejected back-office operations.

    ``kind`` is a stable identifier surfaced in the API error envelope and
    ``status_code`` is the HTTP status the API layer maps it to.
    """

    kind = "domain_error"
    status_code = 400

    def __init__(self, message: str, *, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_details(self) -> dict[str, Any]:
        return {"kind": self.kind, **self.details}


class ValidationError(DomainError):
    """Missing or malformed input, including negative quantities and prices."""

    kind = "validation"
    status_code = 422


class NotFoundError(DomainError):
    kind = "not_found"
    status_code = 404

    def __init__(self, entity: str, entity_id: Any) -> None:
        super().__init__(f"{entity} not found", details={"entity": entity, "id": str(entity_id)})
        self.entity = entity
        self.entity_id = entity_id


class ConflictError(DomainError):
    """Illegal status transition, protected delete, or stale row version."""

    kind = "conflict"
    status_code = 409


class InvalidTransitionError(ConflictError):
    def __init__(self, entity: str, current: str, target: str) -> None:
        super().__init__(
            f"invalid {entity} transition {current} -> {target}",
            details={"entity": entity, "from": current, "to": target},
        )
        self.entity = entity
        self.current = current
        self.target = target


class PersistenceError(DomainError):
    """Storage-layer failure. The public message never carries driver details."""

    kind = "persistence"
    status_code = 500

    def __init__(self, operation: str) -> None:
        super().__init__("storage operation failed", details={"operation": operation})
        self.operation = operation


class NotificationError(DomainError):
    kind = "notification"
    status_code = 502
