"""In-process audit trail for back-office mutations.

Every entry keeps the before/after snapshots together with the sorted list of
top-level fields that differ between them, so a lead status edit reads as
``["row_version", "status", "updated_at"]``. Credential fields never reach
the trail in clear.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any

from backoffice.context import current_request

_REDACTED_FIELDS = frozenset({"password", "password_hash"})
_REDACTED = "***"

audit_entries: list[dict[str, Any]] = []


def _redact(snapshot: dict[str, Any] | None) -> dict[str, Any] | None:
    if snapshot is None:
        return None
    return {key: _REDACTED if key in _REDACTED_FIELDS else value for key, value in snapshot.items()}


def changed_fields(before: dict[str, Any] | None, after: dict[str, Any] | None) -> list[str]:
    if before is None or after is None:
        return sorted((after or before or {}).keys())
    return sorted(key for key in set(before) | set(after) if before.get(key) != after.get(key))


def record(
    actor_user_id: str,
    entity_type: str,
    entity_id: str,
    action: str,
    before: dict[str, Any] | None,
    after: dict[str, Any] | None,
    correlation_id: str | None = None,
) -> dict[str, Any]:
    request = current_request()
    entry = {
        "id": str(uuid.uuid4()),
        "actor_user_id": actor_user_id,
        "entity_type": entity_type,
        "entity_id": entity_id,
        "action": action,
        "before": _redact(before),
        "after": _redact(after),
        "changes": changed_fields(before, after),
        "correlation_id": correlation_id or (request.correlation_id if request is not None else None),
        "client_ip": request.client_ip if request is not None else None,
        "occurred_at": datetime.now(timezone.utc).isoformat(),
    }
    audit_entries.append(entry)
    return entry


def entries_for(entity_type: str, entity_id: str, *, action: str | None = None) -> list[dict[str, Any]]:
    return [
        entry
        for entry in audit_entries
        if entry["entity_type"] == entity_type
        and entry["entity_id"] == entity_id
        and (action is None or entry["action"] == action)
    ]
