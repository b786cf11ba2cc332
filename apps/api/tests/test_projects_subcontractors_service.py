from __future__ import annotations

import uuid
from collections.abc import Generator
from datetime import date
from decimal import Decimal

import pytest
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from backoffice import audit, events, models  # noqa: F401
from backoffice.business.projects.schemas import (
    ProjectCreate,
    ProjectDocumentCreate,
    ProjectMilestoneCreate,
    ProjectPatch,
    ProjectRead,
    ProjectUpdateCreate,
)
from backoffice.business.projects.service import ProjectService
from backoffice.business.subcontractors.schemas import SubcontractorCreate, SubcontractorPatch
from backoffice.business.subcontractors.service import SubcontractorService
from backoffice.core.config import get_settings
from backoffice.core.database import Base
from backoffice.core.errors import InvalidTransitionError, NotFoundError, ValidationError
from backoffice.crm.schemas import CustomerCreate
from backoffice.crm.service import CustomerService
from backoffice.platform.security.context import ActorUser


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
def reset_state(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    monkeypatch.setenv("PASSWORD_HASH_ITERATIONS", "1000")
    get_settings.cache_clear()
    audit.audit_entries.clear()
    events.published_events.clear()
    yield
    get_settings.cache_clear()


def _actor() -> ActorUser:
    return ActorUser.from_roles("ops-user", ["manager"], correlation_id="corr-ops")


def _project(session: Session, actor: ActorUser, **overrides: object) -> ProjectRead:
    customer = CustomerService().create_customer(
        session, actor, CustomerCreate(name="Uli", email="uli@example.com", password="pw")
    )
    payload: dict[str, object] = {"customer_id": customer.id, "title": "Basement finish", "budget": Decimal("12000")}
    payload.update(overrides)
    return ProjectService().create_project(session, actor, ProjectCreate(**payload))


def test_project_requires_existing_customer(db_session: Session) -> None:
    with pytest.raises(NotFoundError):
        ProjectService().create_project(db_session, _actor(), ProjectCreate(customer_id=uuid.uuid4(), title="Ghost"))


def test_project_status_lifecycle(db_session: Session) -> None:
    actor = _actor()
    service = ProjectService()
    project = _project(db_session, actor)
    assert project.status == "pending"

    active = service.update_project(db_session, actor, project.id, ProjectPatch(status="active"))
    cancelled = service.update_project(db_session, actor, project.id, ProjectPatch(status="cancelled"))
    reopened = service.update_project(db_session, actor, project.id, ProjectPatch(status="active"))
    done = service.update_project(db_session, actor, project.id, ProjectPatch(status="completed"))

    assert [active.status, cancelled.status, reopened.status, done.status] == ["active", "cancelled", "active", "completed"]
    with pytest.raises(InvalidTransitionError):
        service.update_project(db_session, actor, project.id, ProjectPatch(status="active"))


def test_project_end_date_before_start_date_is_rejected(db_session: Session) -> None:
    actor = _actor()
    project = _project(db_session, actor, start_date=date(2026, 5, 1))

    with pytest.raises(ValidationError):
        ProjectService().update_project(db_session, actor, project.id, ProjectPatch(end_date=date(2026, 4, 1)))
    with pytest.raises(PydanticValidationError):
        ProjectCreate(customer_id=project.customer_id, title="x", start_date=date(2026, 5, 2), end_date=date(2026, 5, 1))


def test_project_updates_and_documents(db_session: Session) -> None:
    actor = _actor()
    service = ProjectService()
    project = _project(db_session, actor)

    update = service.add_update(db_session, actor, project.id, ProjectUpdateCreate(title="Framing", content="Walls are up"))
    document = service.add_document(
        db_session,
        actor,
        project.id,
        ProjectDocumentCreate(name="plans.pdf", storage_url="s3://bucket/plans.pdf", file_type="application/pdf", file_size=2048),
    )

    assert update.created_by == "ops-user"
    assert document.uploaded_by == "ops-user"
    assert [item.title for item in service.list_updates(db_session, actor, project.id)] == ["Framing"]
    assert [item.name for item in service.list_documents(db_session, actor, project.id)] == ["plans.pdf"]


def test_milestones_are_appended_in_order(db_session: Session) -> None:
    actor = _actor()
    service = ProjectService()
    project = _project(db_session, actor)

    first = service.add_milestone(
        db_session,
        actor,
        project.id,
        ProjectMilestoneCreate(name="Demolition", status="completed", completed_date=date(2026, 3, 2)),
    )
    second = service.add_milestone(
        db_session,
        actor,
        project.id,
        ProjectMilestoneCreate(name="Drywall", description="Hang and tape", scheduled_date=date(2026, 4, 1)),
    )
    third = service.add_milestone(db_session, actor, project.id, ProjectMilestoneCreate(name="Paint", status="completed"))

    milestones = service.list_milestones(db_session, actor, project.id)
    assert [item.name for item in milestones] == ["Demolition", "Drywall", "Paint"]
    assert [item.position for item in milestones] == [1, 2, 3]
    assert first.completed_date == date(2026, 3, 2)
    assert second.status == "pending"
    assert second.completed_date is None
    assert third.completed_date is not None
    assert third.created_by == "ops-user"
    published = events.events_of_type("project.milestone_added")
    assert [envelope["payload"]["position"] for envelope in published] == [1, 2, 3]
    assert audit.audit_entries[-1]["entity_type"] == "business.project_milestone"


def test_milestones_require_existing_project(db_session: Session) -> None:
    with pytest.raises(NotFoundError):
        ProjectService().add_milestone(db_session, _actor(), uuid.uuid4(), ProjectMilestoneCreate(name="Ghost"))
    with pytest.raises(PydanticValidationError):
        ProjectMilestoneCreate(name="Early", status="pending", completed_date=date(2026, 1, 1))


def test_deleting_project_removes_children(db_session: Session) -> None:
    actor = _actor()
    service = ProjectService()
    project = _project(db_session, actor)
    service.add_update(db_session, actor, project.id, ProjectUpdateCreate(title="Day 1", content="Started"))
    service.add_milestone(db_session, actor, project.id, ProjectMilestoneCreate(name="Kickoff"))

    service.delete_project(db_session, actor, project.id)

    with pytest.raises(NotFoundError):
        service.get_project(db_session, actor, project.id)
    assert service.updates.count(db_session, project_id=project.id) == 0
    assert service.milestones.count(db_session, project_id=project.id) == 0


def _application(**overrides: object) -> SubcontractorCreate:
    payload: dict[str, object] = {
        "company_name": "Volt Bros",
        "contact_name": "Vera Volt",
        "email": "vera@voltbros.example.com",
        "specialties": ["Solar", " Electrical ", "Solar", ""],
    }
    payload.update(overrides)
    return SubcontractorCreate(**payload)


def test_subcontractor_application_starts_pending(db_session: Session) -> None:
    actor = _actor()
    service = SubcontractorService()

    created = service.create_subcontractor(db_session, actor, _application())

    assert created.status == "pending"
    assert created.specialties == ["Electrical", "Solar"]
    assert created.total_projects == 0
    activities = service.list_activities(db_session, actor, created.id)
    assert [item.activity_type for item in activities] == ["created"]


def test_subcontractor_approval_stamps_approver(db_session: Session) -> None:
    actor = _actor()
    service = SubcontractorService()
    created = service.create_subcontractor(db_session, actor, _application())

    approved = service.update_subcontractor(db_session, actor, created.id, SubcontractorPatch(status="approved"))
    active = service.update_subcontractor(db_session, actor, created.id, SubcontractorPatch(status="active"))

    assert approved.approved_by == "ops-user"
    assert approved.approved_at is not None
    assert active.status == "active"
    kinds = {item.activity_type for item in service.list_activities(db_session, actor, created.id)}
    assert {"created", "approved", "status_change"} <= kinds


def test_rejected_subcontractor_is_terminal(db_session: Session) -> None:
    actor = _actor()
    service = SubcontractorService()
    created = service.create_subcontractor(db_session, actor, _application())
    service.update_subcontractor(db_session, actor, created.id, SubcontractorPatch(status="rejected"))

    with pytest.raises(InvalidTransitionError):
        service.update_subcontractor(db_session, actor, created.id, SubcontractorPatch(status="approved"))


def test_pending_subcontractor_cannot_go_active_directly(db_session: Session) -> None:
    actor = _actor()
    service = SubcontractorService()
    created = service.create_subcontractor(db_session, actor, _application())

    with pytest.raises(InvalidTransitionError):
        service.update_subcontractor(db_session, actor, created.id, SubcontractorPatch(status="active"))


def test_subcontractor_filters_by_status_and_specialty(db_session: Session) -> None:
    actor = _actor()
    service = SubcontractorService()
    volt = service.create_subcontractor(db_session, actor, _application())
    service.create_subcontractor(
        db_session,
        actor,
        _application(company_name="Pipe Pros", email="pp@example.com", specialties=["Plumbing"]),
    )
    service.update_subcontractor(db_session, actor, volt.id, SubcontractorPatch(status="approved"))

    solar = service.list_subcontractors(db_session, actor, status_filter=None, specialty="solar")
    approved = service.list_subcontractors(db_session, actor, status_filter="approved", specialty=None)

    assert [row.company_name for row in solar] == ["Volt Bros"]
    assert [row.company_name for row in approved] == ["Volt Bros"]


def test_admin_notes_are_logged(db_session: Session) -> None:
    actor = _actor()
    service = SubcontractorService()
    created = service.create_subcontractor(db_session, actor, _application())

    updated = service.update_subcontractor(
        db_session, actor, created.id, SubcontractorPatch(admin_notes="Insurance verified", rating=Decimal("4.5"))
    )

    assert updated.admin_notes == "Insurance verified"
    assert updated.rating == Decimal("4.5")
    kinds = [item.activity_type for item in service.list_activities(db_session, actor, created.id)]
    assert "note_added" in kinds
