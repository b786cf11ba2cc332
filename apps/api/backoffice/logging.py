"""JSON logging for the API process.

Every record is stamped with the correlation id of the request it was emitted
in. Only whitelisted ``extra`` fields are rendered, so raw passwords or
snapshots passed by mistake never reach the log stream.
"""

from __future__ import annotations

import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any

from backoffice.context import get_correlation_id


_REQUEST_FIELDS = ("method", "path", "status_code", "duration_ms", "actor_user_id")
_ENTITY_FIELDS = (
    "entity_type",
    "entity_id",
    "from_status",
    "to_status",
    "lead_id",
    "customer_id",
    "proposal_id",
    "project_id",
    "invoice_id",
)
_DELIVERY_FIELDS = ("channel", "recipient")
_FAILURE_FIELDS = ("error_kind", "operation", "error")
_EVENT_FIELDS = ("event_name", "event_payload")

LOGGED_FIELDS = frozenset(_REQUEST_FIELDS + _ENTITY_FIELDS + _DELIVERY_FIELDS + _FAILURE_FIELDS + _EVENT_FIELDS)
MAX_ERROR_LENGTH = 500

_default_record_factory = logging.getLogRecordFactory()


def _stamped_record_factory(*args: Any, **kwargs: Any) -> logging.LogRecord:
    record = _default_record_factory(*args, **kwargs)
    if not getattr(record, "correlation_id", None):
        record.correlation_id = get_correlation_id()
    return record


class JsonLogFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        fields = {key: value for key, value in record.__dict__.items() if key in LOGGED_FIELDS}
        if isinstance(fields.get("error"), str):
            fields["error"] = fields["error"][:MAX_ERROR_LENGTH]
        if record.exc_info:
            fields["exception"] = self.formatException(record.exc_info)

        return json.dumps(
            {
                "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
                "level": record.levelname,
                "logger": record.name,
                "msg": record.getMessage(),
                "correlation_id": getattr(record, "correlation_id", None),
                "fields": fields,
            },
            default=str,
        )


def configure_logging(level_name: str | None = None) -> None:
    root_logger = logging.getLogger()
    if getattr(root_logger, "_backoffice_configured", False):
        return

    level = getattr(logging, (level_name or os.getenv("LOG_LEVEL", "INFO")).upper(), logging.INFO)

    handler = logging.StreamHandler(stream=sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(JsonLogFormatter())

    root_logger.handlers.clear()
    root_logger.setLevel(level)
    root_logger.addHandler(handler)
    logging.setLogRecordFactory(_stamped_record_factory)
    root_logger._backoffice_configured = True  # type: ignore[attr-defined]
