"""Domain event envelopes published after a mutation has been committed."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any

from backoffice.context import get_correlation_id
from backoffice.core.events import event_bus

ENVELOPE_VERSION = 1
EVENT_SOURCE = "backoffice-api"

published_events: list[dict[str, Any]] = []


def build_envelope(event_type: str, actor_user_id: str, payload: dict[str, Any]) -> dict[str, Any]:
    return {
        "event_id": str(uuid.uuid4()),
        "event_type": event_type,
        "source": EVENT_SOURCE,
        "occurred_at": datetime.now(timezone.utc).isoformat(),
        "actor_user_id": actor_user_id,
        "version": ENVELOPE_VERSION,
        "payload": payload,
    }


def publish(envelope: dict[str, Any]) -> dict[str, Any]:
    if envelope.get("correlation_id") is None:
        envelope["correlation_id"] = get_correlation_id()

    published_events.append(envelope)
    event_bus.publish(envelope["event_type"], envelope)
    return envelope


def events_of_type(event_type: str) -> list[dict[str, Any]]:
    return [envelope for envelope in published_events if envelope["event_type"] == event_type]
