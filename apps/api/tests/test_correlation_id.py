from __future__ import annotations

import uuid
from collections.abc import Generator

import pytest
from fastapi import Request
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from backoffice import audit, events
from backoffice.api.deps import get_current_user
from backoffice.core.config import get_settings
from backoffice.core.database import Base, get_db
from backoffice.main import app
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
def clear_stubs(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    monkeypatch.setenv("PASSWORD_HASH_ITERATIONS", "1000")
    audit.audit_entries.clear()
    events.published_events.clear()
    get_settings.cache_clear()
    yield
    audit.audit_entries.clear()
    events.published_events.clear()
    get_settings.cache_clear()


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


def _create_lead(client: TestClient, correlation_id: str, email: str = "corr@example.com") -> dict:
    response = client.post(
        "/api/crm/leads",
        json={"name": "Corr Lead", "email": email},
        headers={"X-Correlation-Id": correlation_id},
    )
    assert response.status_code == 201
    return response.json()


def test_generated_correlation_id_returned_in_header_and_error_envelope(client: TestClient) -> None:
    response = client.get(f"/api/crm/leads/{uuid.uuid4()}")
    assert response.status_code == 404
    header_value = response.headers.get("x-correlation-id")
    assert header_value
    body = response.json()
    assert body["correlation_id"] == header_value


def test_correlation_id_respected_when_provided(client: TestClient) -> None:
    response = client.get(f"/api/crm/leads/{uuid.uuid4()}", headers={"X-Correlation-Id": "abc-123"})
    assert response.status_code == 404
    assert response.headers.get("x-correlation-id") == "abc-123"
    assert response.json()["correlation_id"] == "abc-123"


def test_forbidden_envelope_carries_correlation_id(client: TestClient) -> None:
    def support_user(request: Request) -> ActorUser:
        return ActorUser.from_roles("support-1", ["support"])

    app.dependency_overrides[get_current_user] = support_user
    response = client.post("/api/crm/leads", json={"name": "x"}, headers={"X-Correlation-Id": "corr-403"})

    assert response.status_code == 403
    assert response.json()["correlation_id"] == "corr-403"


def test_audit_uses_request_correlation_id(client: TestClient) -> None:
    _create_lead(client, "corr-audit-1")

    lead_audits = [entry for entry in audit.audit_entries if entry.get("entity_type") == "crm.lead"]
    assert lead_audits
    assert lead_audits[-1]["correlation_id"] == "corr-audit-1"


def test_event_envelope_includes_correlation_id(client: TestClient) -> None:
    _create_lead(client, "corr-event-1")

    created_events = [item for item in events.published_events if item.get("event_type") == "crm.lead.created"]
    assert created_events
    assert created_events[-1].get("correlation_id") == "corr-event-1"


def test_conversion_events_share_request_correlation_id(client: TestClient) -> None:
    lead = _create_lead(client, "corr-setup")

    response = client.post(
        f"/api/crm/leads/{lead['id']}/convert",
        json={"password": "pw-123"},
        headers={"X-Correlation-Id": "corr-convert-1"},
    )
    assert response.status_code == 201

    conversion_events = [
        item
        for item in events.published_events
        if item.get("event_type") in {"crm.lead.converted", "crm.customer.created"}
    ]
    assert len(conversion_events) == 2
    assert all(item.get("correlation_id") == "corr-convert-1" for item in conversion_events)
    convert_audits = [entry for entry in audit.audit_entries if entry.get("action") == "convert"]
    assert convert_audits[-1]["correlation_id"] == "corr-convert-1"
