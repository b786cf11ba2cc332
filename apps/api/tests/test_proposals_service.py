from __future__ import annotations

import uuid
from collections.abc import Generator
from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from backoffice import audit, events, models  # noqa: F401
from backoffice.business.finance.schemas import LineItemInput
from backoffice.business.proposals.models import Proposal
from backoffice.business.proposals.schemas import (
    ProposalCreate,
    ProposalLinkCustomer,
    ProposalPatch,
    ProposalStatusChange,
)
from backoffice.business.proposals.service import ProposalService
from backoffice.core.config import get_settings
from backoffice.core.database import Base
from backoffice.core.errors import ConflictError, InvalidTransitionError, NotificationError, ValidationError
from backoffice.crm.schemas import CustomerCreate
from backoffice.crm.service import CustomerService
from backoffice.notifications import LoggingNotificationDispatcher, ProposalMessage, set_dispatcher
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
def reset_state(monkeypatch: pytest.MonkeyPatch) -> Generator[LoggingNotificationDispatcher, None, None]:
    monkeypatch.setenv("PASSWORD_HASH_ITERATIONS", "1000")
    get_settings.cache_clear()
    audit.audit_entries.clear()
    events.published_events.clear()
    dispatcher = LoggingNotificationDispatcher()
    set_dispatcher(dispatcher)
    yield dispatcher
    set_dispatcher(LoggingNotificationDispatcher())
    get_settings.cache_clear()


class FailingDispatcher:
    channel = "email"

    def send_proposal(self, message: ProposalMessage) -> None:
        raise ConnectionError("smtp unavailable")


def _actor() -> ActorUser:
    return ActorUser.from_roles("sales-user", ["sales"], correlation_id="corr-proposals")


def _deck_proposal(**overrides: object) -> ProposalCreate:
    payload: dict[str, object] = {
        "customer_name": "Pat Lee",
        "customer_email": "pat@example.com",
        "proposal_type": "Deck",
        "items": [LineItemInput(service="Deck boards", quantity=Decimal("10"), price=Decimal("50"))],
        "tax_rate": Decimal("7"),
    }
    payload.update(overrides)
    return ProposalCreate(**payload)


def _accept(service: ProposalService, session: Session, actor: ActorUser, proposal_id: uuid.UUID) -> None:
    for status in ("sent", "viewed", "accepted"):
        service.change_status(session, actor, proposal_id, ProposalStatusChange(status=status))


def test_create_proposal_recomputes_totals(db_session: Session) -> None:
    proposal = ProposalService().create_proposal(db_session, _actor(), _deck_proposal())

    assert proposal.proposal_number == "PROP-00001"
    assert proposal.status == "draft"
    assert proposal.subtotal == Decimal("500")
    assert proposal.tax == Decimal("35.00")
    assert proposal.total == Decimal("535.00")
    assert proposal.items[0].total == Decimal("500")


def test_proposal_numbers_increase(db_session: Session) -> None:
    service = ProposalService()
    actor = _actor()
    service.create_proposal(db_session, actor, _deck_proposal())
    second = service.create_proposal(db_session, actor, _deck_proposal())

    assert second.proposal_number == "PROP-00002"


def test_default_tax_rate_applies_when_omitted(db_session: Session) -> None:
    proposal = ProposalService().create_proposal(db_session, _actor(), _deck_proposal(tax_rate=None))
    assert proposal.tax_rate == Decimal("7")
    assert proposal.total == Decimal("535.00")


def test_negative_price_is_rejected(db_session: Session) -> None:
    dto = _deck_proposal(items=[LineItemInput(service="Refund", quantity=Decimal("1"), price=Decimal("-5"))])
    with pytest.raises(ValidationError):
        ProposalService().create_proposal(db_session, _actor(), dto)
    assert db_session.query(Proposal).count() == 0


def test_stored_subtotal_matches_sum_of_fractional_lines(db_session: Session) -> None:
    service = ProposalService()
    actor = _actor()
    items = [
        LineItemInput(service="Trim", quantity=Decimal("1.234"), price=Decimal("1.235")),
        LineItemInput(service="Caulk", quantity=Decimal("2.5"), price=Decimal("0.333")),
    ]
    created = service.create_proposal(db_session, actor, _deck_proposal(items=items))
    db_session.expire_all()

    stored = service.get_proposal(db_session, actor, created.id)

    assert stored.subtotal == sum((item.total for item in stored.items), start=Decimal("0"))
    assert stored.subtotal == Decimal("2.3564900")
    assert stored.total == stored.subtotal + stored.tax


@pytest.mark.parametrize(
    ("quantity", "price"),
    [
        (Decimal("1.2345"), Decimal("1")),
        (Decimal("1"), Decimal("1.2345")),
        (Decimal("1e30"), Decimal("1")),
        (Decimal("1000000"), Decimal("1000000")),
    ],
)
def test_line_outside_stored_precision_is_rejected(db_session: Session, quantity: Decimal, price: Decimal) -> None:
    dto = _deck_proposal(items=[LineItemInput(service="Edge", quantity=quantity, price=price)])
    with pytest.raises(ValidationError):
        ProposalService().create_proposal(db_session, _actor(), dto)
    assert db_session.query(Proposal).count() == 0


def test_create_for_customer_fills_snapshot_and_records_note(db_session: Session) -> None:
    actor = _actor()
    customers = CustomerService()
    customer = customers.create_customer(
        db_session,
        actor,
        CustomerCreate(name="Quinn", email="quinn@example.com", phone="555-1234", password="pw"),
    )

    proposal = ProposalService().create_proposal(
        db_session,
        actor,
        _deck_proposal(customer_id=customer.id, customer_name=None, customer_email=None),
    )

    assert proposal.customer_name == "Quinn"
    assert proposal.customer_email == "quinn@example.com"
    assert proposal.customer_phone == "555-1234"
    notes = customers.list_notes(db_session, actor, customer.id)
    assert [note.content for note in notes] == ["Proposal PROP-00001 created - Deck - Total: $535.00"]


def test_update_items_recomputes_totals(db_session: Session) -> None:
    service = ProposalService()
    actor = _actor()
    proposal = service.create_proposal(db_session, actor, _deck_proposal())

    updated = service.update_proposal(
        db_session,
        actor,
        proposal.id,
        ProposalPatch(items=[LineItemInput(service="Railing", quantity=Decimal("4"), price=Decimal("25"))], tax_rate=Decimal("0")),
    )

    assert updated.subtotal == Decimal("100")
    assert updated.tax == Decimal("0")
    assert updated.total == Decimal("100")
    assert updated.row_version == 2


def test_accepted_proposal_is_locked(db_session: Session) -> None:
    service = ProposalService()
    actor = _actor()
    proposal = service.create_proposal(db_session, actor, _deck_proposal())
    _accept(service, db_session, actor, proposal.id)

    with pytest.raises(ConflictError):
        service.update_proposal(db_session, actor, proposal.id, ProposalPatch(notes="late change"))
    with pytest.raises(ConflictError):
        service.delete_proposal(db_session, actor, proposal.id)
    with pytest.raises(InvalidTransitionError):
        service.change_status(db_session, actor, proposal.id, ProposalStatusChange(status="draft"))

    current = service.get_proposal(db_session, actor, proposal.id)
    assert current.status == "accepted"
    assert current.accepted_at is not None


def test_draft_cannot_jump_to_accepted(db_session: Session) -> None:
    service = ProposalService()
    actor = _actor()
    proposal = service.create_proposal(db_session, actor, _deck_proposal())

    with pytest.raises(InvalidTransitionError):
        service.change_status(db_session, actor, proposal.id, ProposalStatusChange(status="accepted"))


def test_link_customer_on_accepted_proposal(db_session: Session) -> None:
    service = ProposalService()
    actor = _actor()
    proposal = service.create_proposal(db_session, actor, _deck_proposal(customer_phone=None))
    _accept(service, db_session, actor, proposal.id)
    customer = CustomerService().create_customer(
        db_session,
        ActorUser.from_roles("owner-user", ["owner"]),
        CustomerCreate(name="Pat Lee", email="pat@example.com", phone="555-7777", password="pw"),
    )

    linked = service.link_customer(db_session, actor, proposal.id, ProposalLinkCustomer(customer_id=customer.id))

    assert linked.customer_id == customer.id
    assert linked.status == "accepted"
    assert linked.customer_phone == "555-7777"
    with pytest.raises(ConflictError):
        service.link_customer(db_session, actor, proposal.id, ProposalLinkCustomer(customer_id=customer.id))


def test_send_proposal_delivers_and_marks_sent(
    db_session: Session, reset_state: LoggingNotificationDispatcher
) -> None:
    service = ProposalService()
    actor = _actor()
    proposal = service.create_proposal(db_session, actor, _deck_proposal())

    sent = service.send_proposal(db_session, actor, proposal.id)

    assert sent.status == "sent"
    assert sent.sent_at is not None
    message = reset_state.sent_messages[-1]
    assert message.recipient == "pat@example.com"
    assert message.total == Decimal("535.00")
    assert message.items[0].service == "Deck boards"
    assert events.published_events[-1]["event_type"] == "proposal.sent"


def test_resend_keeps_viewed_status(db_session: Session) -> None:
    service = ProposalService()
    actor = _actor()
    proposal = service.create_proposal(db_session, actor, _deck_proposal())
    service.change_status(db_session, actor, proposal.id, ProposalStatusChange(status="sent"))
    service.change_status(db_session, actor, proposal.id, ProposalStatusChange(status="viewed"))

    resent = service.send_proposal(db_session, actor, proposal.id)

    assert resent.status == "viewed"


def test_failed_delivery_leaves_proposal_unchanged(db_session: Session) -> None:
    service = ProposalService()
    actor = _actor()
    proposal = service.create_proposal(db_session, actor, _deck_proposal())
    set_dispatcher(FailingDispatcher())

    with pytest.raises(NotificationError):
        service.send_proposal(db_session, actor, proposal.id)

    current = service.get_proposal(db_session, actor, proposal.id)
    assert current.status == "draft"
    assert current.sent_at is None


def test_send_requires_customer_email(db_session: Session) -> None:
    service = ProposalService()
    actor = _actor()
    proposal = service.create_proposal(db_session, actor, _deck_proposal(customer_email=None))

    with pytest.raises(ValidationError):
        service.send_proposal(db_session, actor, proposal.id)


def test_delete_draft_proposal(db_session: Session) -> None:
    service = ProposalService()
    actor = _actor()
    proposal = service.create_proposal(db_session, actor, _deck_proposal())

    service.delete_proposal(db_session, actor, proposal.id)

    assert service.list_proposals(db_session, actor, status_filter=None, customer_id=None) == []
    assert audit.entries_for("business.proposal", str(proposal.id))[-1]["action"] == "delete"


def test_customer_with_accepted_proposal_cannot_be_deleted(db_session: Session) -> None:
    actor = _actor()
    customers = CustomerService()
    service = ProposalService()
    customer = customers.create_customer(db_session, actor, CustomerCreate(name="Rae", email="rae@example.com", password="pw"))
    proposal = service.create_proposal(db_session, actor, _deck_proposal(customer_id=customer.id))
    _accept(service, db_session, actor, proposal.id)

    with pytest.raises(ConflictError) as exc_info:
        customers.delete_customer(db_session, actor, customer.id)

    assert exc_info.value.details["accepted_proposals"] == 1
    db_session.expire_all()
    kept = service.get_proposal(db_session, actor, proposal.id)
    assert kept.customer_id == customer.id
    assert kept.status == "accepted"


def test_customer_with_only_draft_proposals_can_be_deleted(db_session: Session) -> None:
    actor = _actor()
    customers = CustomerService()
    customer = customers.create_customer(db_session, actor, CustomerCreate(name="Sol", email="sol@example.com", password="pw"))
    ProposalService().create_proposal(db_session, actor, _deck_proposal(customer_id=customer.id))

    customers.delete_customer(db_session, actor, customer.id)

    assert audit.entries_for("crm.customer", str(customer.id), action="delete")
