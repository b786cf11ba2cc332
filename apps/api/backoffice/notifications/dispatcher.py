from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from threading import Lock
from typing import Protocol

from opentelemetry import trace

from backoffice.business.finance.calculator import PricedItem
from backoffice.context import get_correlation_id
from backoffice.core.errors import NotificationError
from backoffice.metrics import observe_notification
from backoffice.otel import mark_span_failed


logger = logging.getLogger("backoffice.notifications")
tracer = trace.get_tracer("backoffice.notifications")


@dataclass(frozen=True, slots=True)
class ProposalMessage:
    """Everything a template renderer needs to e-mail one proposal."""

    proposal_id: str
    proposal_number: str
    sender: str
    recipient: str
    customer_name: str | None
    customer_phone: str | None
    customer_address: str | None
    proposal_type: str | None
    proposal_date: str | None
    expiration_date: str | None
    items: tuple[PricedItem, ...]
    subtotal: Decimal
    tax_rate: Decimal
    tax: Decimal
    total: Decimal
    notes: str | None = None


class NotificationDispatcher(Protocol):
    channel: str

    def send_proposal(self, message: ProposalMessage) -> None: ...


@dataclass
class LoggingNotificationDispatcher:
    """Default dispatcher: logs each message and keeps it in memory."""

    channel: str = "email"
    sent_messages: list[ProposalMessage] = field(default_factory=list)

    def send_proposal(self, message: ProposalMessage) -> None:
        self.sent_messages.append(message)
        logger.info(
            "notification.proposal_queued",
            extra={
                "channel": self.channel,
                "recipient": message.recipient,
                "proposal_id": message.proposal_id,
            },
        )


_DISPATCHER: NotificationDispatcher = LoggingNotificationDispatcher()
_DISPATCHER_LOCK = Lock()


def get_dispatcher() -> NotificationDispatcher:
    return _DISPATCHER


def set_dispatcher(dispatcher: NotificationDispatcher) -> None:
    global _DISPATCHER
    with _DISPATCHER_LOCK:
        _DISPATCHER = dispatcher


def deliver_proposal(message: ProposalMessage) -> None:
    """Hand ``message`` to the active dispatcher.

    Any dispatcher failure is logged with its cause and surfaced as
    ``NotificationError``.
    """
    dispatcher = get_dispatcher()
    channel = getattr(dispatcher, "channel", "email")
    with tracer.start_as_current_span("notification.send_proposal") as span:
        span.set_attribute("proposal_id", message.proposal_id)
        span.set_attribute("channel", channel)
        span.set_attribute("correlation_id", get_correlation_id() or "")
        try:
            dispatcher.send_proposal(message)
        except Exception as exc:
            mark_span_failed(span, exc)
            observe_notification(channel, "failed")
            logger.exception(
                "notification.failed",
                extra={"channel": channel, "recipient": message.recipient, "proposal_id": message.proposal_id},
            )
            raise NotificationError(
                "proposal could not be delivered",
                details={"channel": channel, "proposal_id": message.proposal_id},
            ) from exc
    observe_notification(channel, "sent")
