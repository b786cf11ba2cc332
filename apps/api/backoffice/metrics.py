from __future__ import annotations

import re

from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest
from starlette.requests import Request


http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status"],
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "path"],
)

backoffice_conversions_total = Counter(
    "backoffice_conversions_total",
    "Total conversion workflow runs by kind and outcome",
    ["kind", "outcome"],
)

backoffice_conversion_duration_seconds = Histogram(
    "backoffice_conversion_duration_seconds",
    "Conversion workflow duration in seconds",
    ["kind"],
)

backoffice_status_transitions_total = Counter(
    "backoffice_status_transitions_total",
    "Total applied status transitions by entity and target status",
    ["entity", "target"],
)

backoffice_notifications_total = Counter(
    "backoffice_notifications_total",
    "Total outbound notifications by channel and outcome",
    ["channel", "outcome"],
)


_UUID_RE = re.compile(
    r"\b[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[1-5][0-9a-fA-F]{3}-[89abAB][0-9a-fA-F]{3}-[0-9a-fA-F]{12}\b"
)
_PATH_PARAM_RE = re.compile(r"\{[^{}]+\}")


def _normalize_route_template(path: str) -> str:
    return _PATH_PARAM_RE.sub("{id}", path)


def _sanitize_path(path: str) -> str:
    return _UUID_RE.sub("{id}", path)


def resolve_http_path_label(request: Request) -> str:
    route = request.scope.get("route")
    if route is not None:
        path_format = getattr(route, "path_format", None)
        if isinstance(path_format, str) and path_format:
            return _normalize_route_template(path_format)
        route_path = getattr(route, "path", None)
        if isinstance(route_path, str) and route_path:
            return _normalize_route_template(route_path)
    return _sanitize_path(request.url.path)


def observe_http_request(method: str, path: str, status: int, duration: float) -> None:
    status_str = str(status)
    http_requests_total.labels(method=method, path=path, status=status_str).inc()
    http_request_duration_seconds.labels(method=method, path=path).observe(duration)


def observe_conversion(kind: str, outcome: str, duration: float | None = None) -> None:
    backoffice_conversions_total.labels(kind=kind, outcome=outcome).inc()
    if duration is not None:
        backoffice_conversion_duration_seconds.labels(kind=kind).observe(duration)


def observe_status_transition(entity: str, target: str) -> None:
    backoffice_status_transitions_total.labels(entity=entity, target=target).inc()


def observe_notification(channel: str, outcome: str) -> None:
    backoffice_notifications_total.labels(channel=channel, outcome=outcome).inc()


def generate_metrics_payload() -> bytes:
    return generate_latest()


def metrics_content_type() -> str:
    return CONTENT_TYPE_LATEST
