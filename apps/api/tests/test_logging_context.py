from __future__ import annotations

import logging
import uuid
from collections.abc import Generator

import pytest
from fastapi import Request
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from backoffice.api.deps import get_current_user
from backoffice.core.config import get_settings
from backoffice.core.database import Base, get_db
from backoffice.logging import JsonLogFormatter
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
def setup_env(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    monkeypatch.setenv("PASSWORD_HASH_ITERATIONS", "1000")
    get_settings.cache_clear()
    yield
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


def test_logs_include_correlation_id_for_http(client: TestClient, caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO)

    lead_id = uuid.uuid4()
    path = f"/api/crm/leads/{lead_id}"
    response = client.get(path, headers={"X-Correlation-Id": "abc-123"})
    assert response.status_code == 404

    records = [record for record in caplog.records if record.name == "backoffice.request" and record.getMessage() == "http.request"]
    assert records
    assert any(
        getattr(record, "correlation_id", None) == "abc-123"
        and getattr(record, "method", None) == "GET"
        and getattr(record, "path", None) == "/api/crm/leads/{id}"
        and getattr(record, "status_code", None) == 404
        and isinstance(getattr(record, "duration_ms", None), float)
        for record in records
    )


def test_conversion_logs_carry_ids_and_correlation(client: TestClient, caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO)
    lead = client.post("/api/crm/leads", json={"name": "Log Lead", "email": "log@example.com"}).json()

    response = client.post(
        f"/api/crm/leads/{lead['id']}/convert",
        json={"password": "pw"},
        headers={"X-Correlation-Id": "abc-456"},
    )
    assert response.status_code == 201

    conversion_records = [record for record in caplog.records if record.name == "backoffice.conversion"]
    assert any(
        record.getMessage() == "conversion.lead_converted"
        and getattr(record, "lead_id", None) == lead["id"]
        and getattr(record, "customer_id", None) == response.json()["customer_id"]
        and getattr(record, "correlation_id", None) == "abc-456"
        for record in conversion_records
    )


def test_rejected_conversion_is_logged_as_warning(client: TestClient, caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO)
    lead = client.post("/api/crm/leads", json={"name": "No Mail"}).json()

    response = client.post(f"/api/crm/leads/{lead['id']}/convert", json={"password": "pw"})
    assert response.status_code == 422

    rejected = [
        record
        for record in caplog.records
        if record.name == "backoffice.conversion" and record.getMessage() == "conversion.rejected"
    ]
    assert rejected
    assert rejected[-1].levelno == logging.WARNING
    assert getattr(rejected[-1], "error_kind", None) == "validation"


def test_json_formatter_keeps_known_fields_only() -> None:
    record = logging.makeLogRecord(
        {
            "name": "backoffice.test",
            "levelno": logging.INFO,
            "levelname": "INFO",
            "msg": "conversion.lead_converted",
            "lead_id": "lead-1",
            "password": "never-logged",
            "correlation_id": "corr-json",
        }
    )

    payload = JsonLogFormatter().format(record)

    assert '"lead_id": "lead-1"' in payload
    assert "never-logged" not in payload
    assert '"correlation_id": "corr-json"' in payload
