from __future__ import annotations

import uuid

from opentelemetry import trace
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from backoffice.context import RequestContext, bind_request, unbind_request

CORRELATION_HEADER = "x-correlation-id"


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Binds the caller's correlation id, or a fresh one, for the whole request.

    The id is echoed back on the response and ends up in log records, audit
    entries, event envelopes and error envelopes.
    """

    async def dispatch(self, request: Request, call_next):  # type: ignore[no-untyped-def]
        correlation_id = request.headers.get(CORRELATION_HEADER) or str(uuid.uuid4())
        request.state.correlation_id = correlation_id
        token = bind_request(
            RequestContext(
                correlation_id=correlation_id,
                method=request.method,
                path=request.url.path,
                client_ip=request.client.host if request.client is not None else None,
            )
        )
        span = trace.get_current_span()
        if span.is_recording():
            span.set_attribute("correlation_id", correlation_id)
        try:
            response = await call_next(request)
        finally:
            unbind_request(token)

        response.headers[CORRELATION_HEADER] = correlation_id
        return response
