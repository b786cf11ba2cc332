"""Request-scoped context shared by logging, audit entries and event envelopes."""

from __future__ import annotations

from contextvars import ContextVar, Token
from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class RequestContext:
    correlation_id: str
    method: str | None = None
    path: str | None = None
    client_ip: str | None = None


_request_context: ContextVar[RequestContext | None] = ContextVar("backoffice_request_context", default=None)


def bind_request(context: RequestContext) -> Token[RequestContext | None]:
    return _request_context.set(context)


def unbind_request(token: Token[RequestContext | None]) -> None:
    _request_context.reset(token)


def current_request() -> RequestContext | None:
    return _request_context.get()


def get_correlation_id() -> str | None:
    context = _request_context.get()
    return context.correlation_id if context is not None else None
