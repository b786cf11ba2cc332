from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor

from backoffice.api.routes import router as api_router
from backoffice.core.config import get_settings
from backoffice.core.events import InternalEvent, event_bus
from backoffice.logging import configure_logging
from backoffice.middleware.correlation_id import CorrelationIdMiddleware
from backoffice.middleware.request_logging import RequestLoggingMiddleware
from backoffice.otel import get_fastapi_server_request_hook, setup_otel


configure_logging()
logger = logging.getLogger("backoffice.app")
CONVERSION_EVENTS = "*.converted"


def _on_system_started(event: InternalEvent) -> None:
    logger.info("system_event", extra={"event_name": event.name, "event_payload": event.payload})


def _on_conversion_event(event: InternalEvent) -> None:
    payload = event.payload.get("payload", {})
    logger.info(
        "conversion_event",
        extra={
            "event_name": event.name,
            "actor_user_id": event.payload.get("actor_user_id"),
            "lead_id": payload.get("lead_id"),
            "customer_id": payload.get("customer_id"),
            "proposal_id": payload.get("proposal_id"),
            "project_id": payload.get("project_id"),
        },
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    event_bus.subscribe("system.started", _on_system_started)
    event_bus.subscribe(CONVERSION_EVENTS, _on_conversion_event)
    event_bus.publish("system.started", {"service": "api"})
    yield
    event_bus.unsubscribe(CONVERSION_EVENTS, _on_conversion_event)
    event_bus.unsubscribe("system.started", _on_system_started)


settings = get_settings()

app = FastAPI(title=settings.app_name, version=settings.app_version, lifespan=lifespan)
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(CorrelationIdMiddleware)
app.include_router(api_router)

if settings.otel_enabled:
    setup_otel("backoffice-api", True)

if not getattr(app, "_is_instrumented_by_opentelemetry", False):
    FastAPIInstrumentor().instrument_app(app, server_request_hook=get_fastapi_server_request_hook())
