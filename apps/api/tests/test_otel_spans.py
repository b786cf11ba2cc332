from __future__ import annotations

import os
from collections.abc import Generator

import pytest
from fastapi import Request
from fastapi.testclient import TestClient
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter
from opentelemetry.trace import StatusCode
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("OTEL_ENABLED", "true")

from backoffice.api.deps import get_current_user
from backoffice.core.config import get_settings
from backoffice.core.database import Base, get_db
from backoffice.main import app
from backoffice.notifications import LoggingNotificationDispatcher, ProposalMessage, set_dispatcher
from backoffice.otel import setup_inmemory_otel
from backoffice.platform.security import ActorUser


@pytest.fixture()
def db_session() -> Generator[Session, None, None]:
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def setup_env(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    monkeypatch.setenv("PASSWORD_HASH_ITERATIONS", "1000")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
    set_dispatcher(LoggingNotificationDispatcher())


@pytest.fixture()
def span_exporter() -> InMemorySpanExporter:
    exporter = setup_inmemory_otel("backoffice-api")
    exporter.clear()
    return exporter


@pytest.fixture()
def client(db_session: Session) -> Generator[TestClient, None, None]:
    def override_get_db() -> Generator[Session, None, None]:
        yield db_session

    def override_get_current_user(request: Request) -> ActorUser:
        return ActorUser.from_roles(
            "user-1",
            ["owner"],
            correlation_id=getattr(request.state, "correlation_id", None),
        )

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_user] = override_get_current_user
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


class BrokenDispatcher:
    channel = "email"

    def send_proposal(self, message: ProposalMessage) -> None:
        raise TimeoutError("mail relay timed out")


def _accepted_proposal_with_customer(client: TestClient) -> dict:
    customer = client.post(
        "/api/crm/customers",
        json={"name": "Span Customer", "email": "span@example.com", "password": "pw"},
    ).json()
    proposal = client.post(
        "/api/proposals",
        json={
            "customer_id": customer["id"],
            "items": [{"service": "Siding", "quantity": "2", "price": "150"}],
            "tax_rate": "0",
        },
    ).json()
    for status in ("sent", "viewed", "accepted"):
        assert client.post(f"/api/proposals/{proposal['id']}/status", json={"status": status}).status_code == 200
    return proposal


def test_request_span_contains_correlation_id(client: TestClient, span_exporter: InMemorySpanExporter) -> None:
    response = client.post(
        "/api/crm/leads",
        json={"name": "Span Lead"},
        headers={"X-Correlation-Id": "otel-corr-1"},
    )
    assert response.status_code == 201

    spans = span_exporter.get_finished_spans()
    assert spans
    assert any(span.attributes.get("correlation_id") == "otel-corr-1" for span in spans)


def test_lead_conversion_span_carries_ids(client: TestClient, span_exporter: InMemorySpanExporter) -> None:
    lead = client.post("/api/crm/leads", json={"name": "Span Lead", "email": "lead-span@example.com"}).json()

    response = client.post(
        f"/api/crm/leads/{lead['id']}/convert",
        json={"password": "pw"},
        headers={"X-Correlation-Id": "otel-convert-1"},
    )
    assert response.status_code == 201

    conversion_spans = [span for span in span_exporter.get_finished_spans() if span.name == "conversion.lead_to_customer"]
    assert conversion_spans
    assert any(
        span.attributes.get("lead_id") == lead["id"]
        and span.attributes.get("customer_id") == response.json()["customer_id"]
        and span.attributes.get("correlation_id") == "otel-convert-1"
        for span in conversion_spans
    )


def test_proposal_conversion_span_marks_repeat_runs(client: TestClient, span_exporter: InMemorySpanExporter) -> None:
    proposal = _accepted_proposal_with_customer(client)

    first = client.post(f"/api/proposals/{proposal['id']}/convert")
    second = client.post(f"/api/proposals/{proposal['id']}/convert")
    assert first.status_code == 200
    assert second.status_code == 200

    spans = [span for span in span_exporter.get_finished_spans() if span.name == "conversion.proposal_to_project"]
    assert sorted(span.attributes.get("created") for span in spans) == [False, True]
    assert all(span.attributes.get("project_id") == first.json()["project_id"] for span in spans)


def test_rejected_conversion_span_has_error_status(client: TestClient, span_exporter: InMemorySpanExporter) -> None:
    proposal = client.post("/api/proposals", json={"items": []}).json()

    response = client.post(f"/api/proposals/{proposal['id']}/convert")
    assert response.status_code == 409

    spans = [span for span in span_exporter.get_finished_spans() if span.name == "conversion.proposal_to_project"]
    assert spans
    assert spans[-1].status.status_code == StatusCode.ERROR
    assert spans[-1].attributes.get("error.kind") == "conflict"


def test_failed_notification_span_records_error(client: TestClient, span_exporter: InMemorySpanExporter) -> None:
    proposal = client.post(
        "/api/proposals",
        json={"customer_email": "notify@example.com", "items": [{"service": "Gutter", "quantity": "1", "price": "80"}]},
    ).json()
    set_dispatcher(BrokenDispatcher())

    response = client.post(f"/api/proposals/{proposal['id']}/send")

    assert response.status_code == 502
    assert response.json()["code"] == "proposal_send_failed"
    spans = [span for span in span_exporter.get_finished_spans() if span.name == "notification.send_proposal"]
    assert spans
    assert spans[-1].status.status_code == StatusCode.ERROR
    assert spans[-1].attributes.get("proposal_id") == proposal["id"]
