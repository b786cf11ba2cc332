from __future__ import annotations

import uuid
from collections.abc import Callable, Generator

import pytest
from fastapi import Request
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, func, select
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from backoffice import audit, events
from backoffice.api.deps import get_current_user
from backoffice.core.config import get_settings
from backoffice.core.database import Base, get_db
from backoffice.crm.models import Customer
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
def client(db_session: Session) -> Generator[tuple[TestClient, Callable[[list[str]], None]], None, None]:
    def override_get_db() -> Generator[Session, None, None]:
        yield db_session

    current_roles: list[list[str]] = [["owner"]]

    def set_roles(roles: list[str]) -> None:
        current_roles[0] = roles

    def override_get_current_user(request: Request) -> ActorUser:
        return ActorUser.from_roles(
            "user-1",
            current_roles[0],
            correlation_id=getattr(request.state, "correlation_id", None),
        )

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_user] = override_get_current_user
    with TestClient(app) as test_client:
        yield test_client, set_roles
    app.dependency_overrides.clear()


def _create_lead(client: TestClient, **overrides: object) -> dict:
    payload: dict[str, object] = {"name": "Ava Stone", "email": "ava@example.com", "phone": "555-0101"}
    payload.update(overrides)
    response = client.post("/api/crm/leads", json=payload)
    assert response.status_code == 201
    return response.json()


def test_lead_crud_flow(client: tuple[TestClient, Callable[[list[str]], None]]) -> None:
    test_client, _ = client
    lead = _create_lead(test_client, estimated_value="2500", tags=["deck", "referral"])
    assert lead["status"] == "new"
    assert lead["row_version"] == 1

    fetched = test_client.get(f"/api/crm/leads/{lead['id']}")
    assert fetched.status_code == 200
    assert fetched.json()["tags"] == ["deck", "referral"]

    patched = test_client.patch(
        f"/api/crm/leads/{lead['id']}",
        json={"status": "contacted", "row_version": lead["row_version"]},
    )
    assert patched.status_code == 200
    assert patched.json()["status"] == "contacted"
    assert patched.json()["row_version"] == 2

    listed = test_client.get("/api/crm/leads", params={"status": "contacted"})
    assert [item["id"] for item in listed.json()] == [lead["id"]]

    deleted = test_client.delete(f"/api/crm/leads/{lead['id']}")
    assert deleted.status_code == 200
    assert deleted.json() == {"status": "deleted"}
    assert test_client.get(f"/api/crm/leads/{lead['id']}").status_code == 404


def test_invalid_lead_transition_returns_conflict_envelope(client: tuple[TestClient, Callable[[list[str]], None]]) -> None:
    test_client, _ = client
    lead = _create_lead(test_client)

    response = test_client.patch(
        f"/api/crm/leads/{lead['id']}",
        json={"status": "negotiation"},
        headers={"X-Correlation-Id": "corr-transition"},
    )

    assert response.status_code == 409
    body = response.json()
    assert body["code"] == "crm_lead_update_failed"
    assert body["details"]["kind"] == "conflict"
    assert body["details"]["from"] == "new"
    assert body["correlation_id"] == "corr-transition"


def test_stale_row_version_returns_conflict(client: tuple[TestClient, Callable[[list[str]], None]]) -> None:
    test_client, _ = client
    lead = _create_lead(test_client)
    first = test_client.patch(f"/api/crm/leads/{lead['id']}", json={"phone": "1", "row_version": 1})
    assert first.status_code == 200

    second = test_client.patch(f"/api/crm/leads/{lead['id']}", json={"phone": "2", "row_version": 1})

    assert second.status_code == 409
    assert second.json()["message"] == "row_version conflict"


def test_support_role_cannot_create_leads(client: tuple[TestClient, Callable[[list[str]], None]]) -> None:
    test_client, set_roles = client
    set_roles(["support"])

    response = test_client.post("/api/crm/leads", json={"name": "Blocked"})

    assert response.status_code == 403
    body = response.json()
    assert body["code"] == "crm_lead_create_failed"
    assert body["message"] == "Missing capability: leads.manage"
    assert test_client.get("/api/crm/leads").status_code == 200


def test_lead_notes_and_activities(client: tuple[TestClient, Callable[[list[str]], None]]) -> None:
    test_client, _ = client
    lead = _create_lead(test_client)

    note = test_client.post(f"/api/crm/leads/{lead['id']}/notes", json={"content": "Wants cedar", "note_type": "call"})
    assert note.status_code == 201
    assert note.json()["created_by"] == "user-1"

    notes = test_client.get(f"/api/crm/leads/{lead['id']}/notes")
    assert [item["content"] for item in notes.json()] == ["Wants cedar"]
    activities = test_client.get(f"/api/crm/leads/{lead['id']}/activities")
    assert [item["activity_type"] for item in activities.json()] == ["note_added"]
    assert "note_id" in activities.json()[0]["metadata"]


def test_lead_statistics_route(client: tuple[TestClient, Callable[[list[str]], None]]) -> None:
    test_client, _ = client
    _create_lead(test_client, email="a@example.com", estimated_value="100")
    _create_lead(test_client, email="b@example.com", priority="urgent")

    response = test_client.get("/api/crm/leads/statistics")

    assert response.status_code == 200
    body = response.json()
    assert body["total"] == 2
    assert body["by_status"] == {"new": 2}
    assert body["by_priority"] == {"medium": 1, "urgent": 1}
    assert body["conversion_rate"] == 0.0


def test_convert_lead_endpoint(client: tuple[TestClient, Callable[[list[str]], None]], db_session: Session) -> None:
    test_client, _ = client
    lead = _create_lead(test_client)

    response = test_client.post(f"/api/crm/leads/{lead['id']}/convert", json={"password": "portal-1"})

    assert response.status_code == 201
    body = response.json()
    assert body["lead_id"] == lead["id"]
    customer = test_client.get(f"/api/crm/customers/{body['customer_id']}")
    assert customer.status_code == 200
    assert customer.json()["email"] == "ava@example.com"
    assert "password_hash" not in customer.json()
    assert test_client.get(f"/api/crm/leads/{lead['id']}").json()["status"] == "won"

    again = test_client.post(f"/api/crm/leads/{lead['id']}/convert", json={"password": "portal-1"})
    assert again.status_code == 409
    assert again.json()["code"] == "crm_lead_convert_failed"
    assert db_session.scalar(select(func.count()).select_from(Customer)) == 1


def test_convert_lead_without_email_is_unprocessable(client: tuple[TestClient, Callable[[list[str]], None]]) -> None:
    test_client, _ = client
    lead = _create_lead(test_client, email=None)

    response = test_client.post(f"/api/crm/leads/{lead['id']}/convert", json={"password": "pw"})

    assert response.status_code == 422
    assert response.json()["message"] == "lead has no email address"


def test_customer_crud_and_notes(client: tuple[TestClient, Callable[[list[str]], None]]) -> None:
    test_client, _ = client
    created = test_client.post(
        "/api/crm/customers",
        json={"name": "Bea", "email": "bea@example.com", "password": "pw-1", "address": "9 Oak"},
    )
    assert created.status_code == 201
    customer = created.json()

    duplicate = test_client.post(
        "/api/crm/customers",
        json={"name": "Bea 2", "email": "BEA@example.com", "password": "pw-2"},
    )
    assert duplicate.status_code == 409

    search = test_client.get("/api/crm/customers", params={"q": "oak"})
    assert search.status_code == 200
    assert search.json() == []
    search = test_client.get("/api/crm/customers", params={"q": "bea"})
    assert [item["id"] for item in search.json()] == [customer["id"]]

    patched = test_client.patch(f"/api/crm/customers/{customer['id']}", json={"phone": "555-9999"})
    assert patched.json()["phone"] == "555-9999"

    note = test_client.post(f"/api/crm/customers/{customer['id']}/notes", json={"content": "Gate code 1234"})
    assert note.status_code == 201
    notes = test_client.get(f"/api/crm/customers/{customer['id']}/notes")
    assert [item["content"] for item in notes.json()] == ["Gate code 1234"]

    assert test_client.get(f"/api/crm/customers/{customer['id']}/projects").json() == []
    assert test_client.delete(f"/api/crm/customers/{customer['id']}").json() == {"status": "deleted"}


def test_customer_with_project_cannot_be_deleted(client: tuple[TestClient, Callable[[list[str]], None]]) -> None:
    test_client, _ = client
    customer = test_client.post(
        "/api/crm/customers",
        json={"name": "Cal", "email": "cal@example.com", "password": "pw"},
    ).json()
    project = test_client.post("/api/projects", json={"customer_id": customer["id"], "title": "Fence"})
    assert project.status_code == 201

    response = test_client.delete(f"/api/crm/customers/{customer['id']}")

    assert response.status_code == 409
    assert response.json()["code"] == "crm_customer_delete_failed"
    assert test_client.get(f"/api/crm/customers/{customer['id']}").status_code == 200


def test_unknown_customer_returns_not_found(client: tuple[TestClient, Callable[[list[str]], None]]) -> None:
    test_client, _ = client
    response = test_client.get(f"/api/crm/customers/{uuid.uuid4()}")
    assert response.status_code == 404
    assert response.json()["details"]["entity"] == "customer"
