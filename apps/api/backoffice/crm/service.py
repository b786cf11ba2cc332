from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import timedelta
from decimal import Decimal
from typing import Any

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from backoffice import audit, events
from backoffice.business.projects.repository import ProjectRepository
from backoffice.business.projects.schemas import ProjectRead
from backoffice.business.proposals.repository import ProposalRepository
from backoffice.core.errors import ConflictError
from backoffice.core.passwords import hash_password
from backoffice.crm.models import Customer, CustomerNote, Lead, LeadActivity, LeadNote, utcnow
from backoffice.crm.repositories import (
    CustomerNoteRepository,
    CustomerRepository,
    LeadActivityRepository,
    LeadNoteRepository,
    LeadRepository,
)
from backoffice.crm.schemas import (
    CustomerCreate,
    CustomerNoteCreate,
    CustomerNoteRead,
    CustomerRead,
    CustomerUpdate,
    LeadActivityRead,
    LeadCreate,
    LeadNoteCreate,
    LeadNoteRead,
    LeadRead,
    LeadStatistics,
    LeadUpdate,
)
from backoffice.lifecycle.machines import LEAD_MACHINE
from backoffice.platform.security.context import ActorUser

RECENT_LEAD_WINDOW = timedelta(days=30)

_LEAD_REQUIRED_FIELDS = {"name", "status", "priority", "tags"}
_CUSTOMER_REQUIRED_FIELDS = {"name", "email"}


def _offset(cursor: str | None) -> int:
    return int(cursor) if cursor and cursor.isdigit() else 0


@dataclass(slots=True)
class LeadService:
    leads: LeadRepository = LeadRepository()
    notes: LeadNoteRepository = LeadNoteRepository()
    activities: LeadActivityRepository = LeadActivityRepository()
    entity_type: str = "crm.lead"

    def create_lead(self, session: Session, actor_user: ActorUser, dto: LeadCreate) -> LeadRead:
        payload = dto.model_dump()
        payload["email"] = str(dto.email) if dto.email is not None else None
        lead = Lead(**payload, status=LEAD_MACHINE.initial)
        self.leads.add(session, lead)
        self.leads.commit(session, "crm.lead.create")
        session.refresh(lead)

        created = self._to_read(lead)
        audit.record(
            actor_user_id=actor_user.user_id,
            entity_type=self.entity_type,
            entity_id=str(lead.id),
            action="create",
            before=None,
            after=created.model_dump(mode="json"),
            correlation_id=actor_user.correlation_id,
        )
        events.publish(
            events.build_envelope(
                "crm.lead.created",
                actor_user.user_id,
                {"lead_id": str(lead.id), "status": lead.status, "priority": lead.priority},
            )
        )
        return created

    def list_leads(
        self,
        session: Session,
        actor_user: ActorUser,
        filters: dict[str, Any],
        cursor: str | None,
        limit: int,
    ) -> list[LeadRead]:
        conditions = []
        if filters.get("q"):
            term = f"%{filters['q']}%"
            conditions.append(or_(Lead.name.ilike(term), Lead.email.ilike(term), Lead.phone.ilike(term)))
        leads = self.leads.list(
            session,
            filters={"status": filters.get("status"), "priority": filters.get("priority")},
            conditions=conditions,
            order_by=Lead.created_at.desc(),
            offset=_offset(cursor),
            limit=limit,
        )
        return [self._to_read(lead) for lead in leads]

    def get_lead(self, session: Session, actor_user: ActorUser, lead_id: uuid.UUID) -> LeadRead:
        return self._to_read(self.leads.require(session, lead_id))

    def update_lead(self, session: Session, actor_user: ActorUser, lead_id: uuid.UUID, dto: LeadUpdate) -> LeadRead:
        lead = self.leads.require(session, lead_id)
        payload = {
            key: value
            for key, value in dto.model_dump(exclude_unset=True, exclude={"row_version"}).items()
            if value is not None or key not in _LEAD_REQUIRED_FIELDS
        }
        if "email" in payload:
            payload["email"] = str(payload["email"]) if payload["email"] is not None else None

        previous_status = lead.status
        target_status = payload.get("status", previous_status)
        LEAD_MACHINE.ensure(previous_status, target_status)
        if not payload:
            return self._to_read(lead)

        payload["last_contact_date"] = utcnow()
        before = self._to_read(lead).model_dump(mode="json")
        lead = self.leads.update_versioned(session, lead, payload, dto.row_version)
        if target_status != previous_status:
            self._log_activity(
                session,
                actor_user,
                lead.id,
                "status_change",
                f"Status changed from {previous_status} to {target_status}",
                {"from": previous_status, "to": target_status},
            )
        self.leads.commit(session, "crm.lead.update")
        session.refresh(lead)

        updated = self._to_read(lead)
        audit.record(
            actor_user_id=actor_user.user_id,
            entity_type=self.entity_type,
            entity_id=str(lead.id),
            action="update",
            before=before,
            after=updated.model_dump(mode="json"),
            correlation_id=actor_user.correlation_id,
        )
        events.publish(
            events.build_envelope("crm.lead.updated", actor_user.user_id, {"lead_id": str(lead.id), "status": lead.status})
        )
        if target_status != previous_status:
            LEAD_MACHINE.record(previous_status, target_status)
            events.publish(
                events.build_envelope(
                    "crm.lead.status_changed",
                    actor_user.user_id,
                    {"lead_id": str(lead.id), "from": previous_status, "to": target_status},
                )
            )
        return updated

    def delete_lead(self, session: Session, actor_user: ActorUser, lead_id: uuid.UUID) -> None:
        lead = self.leads.require(session, lead_id)
        LEAD_MACHINE.ensure_deletable(lead.status)
        before = self._to_read(lead).model_dump(mode="json")
        self.leads.delete(session, lead)
        self.leads.commit(session, "crm.lead.delete")

        audit.record(
            actor_user_id=actor_user.user_id,
            entity_type=self.entity_type,
            entity_id=str(lead_id),
            action="delete",
            before=before,
            after=None,
            correlation_id=actor_user.correlation_id,
        )
        events.publish(events.build_envelope("crm.lead.deleted", actor_user.user_id, {"lead_id": str(lead_id)}))

    def add_note(self, session: Session, actor_user: ActorUser, lead_id: uuid.UUID, dto: LeadNoteCreate) -> LeadNoteRead:
        lead = self.leads.require(session, lead_id)
        note = LeadNote(
            lead_id=lead.id,
            content=dto.content,
            note_type=dto.note_type,
            is_important=dto.is_important,
            created_by=actor_user.user_id,
        )
        self.notes.add(session, note)
        self._log_activity(session, actor_user, lead.id, "note_added", "Added a note", {"note_id": str(note.id)})
        self.notes.commit(session, "crm.lead_note.create")
        session.refresh(note)

        events.publish(
            events.build_envelope(
                "crm.lead.note_added",
                actor_user.user_id,
                {"lead_id": str(lead.id), "note_id": str(note.id)},
            )
        )
        return LeadNoteRead.model_validate(note)

    def list_notes(self, session: Session, actor_user: ActorUser, lead_id: uuid.UUID) -> list[LeadNoteRead]:
        self.leads.require(session, lead_id)
        return [LeadNoteRead.model_validate(note) for note in self.notes.for_lead(session, lead_id)]

    def list_activities(self, session: Session, actor_user: ActorUser, lead_id: uuid.UUID) -> list[LeadActivityRead]:
        self.leads.require(session, lead_id)
        return [LeadActivityRead.model_validate(item) for item in self.activities.for_lead(session, lead_id)]

    def statistics(self, session: Session, actor_user: ActorUser) -> LeadStatistics:
        total = self.leads.count(session)
        won = self.leads.count(session, status="won")
        total_value = session.scalar(select(func.sum(Lead.estimated_value)).where(Lead.status != "lost"))
        recent_count = session.scalar(
            select(func.count()).select_from(Lead).where(Lead.created_at >= utcnow() - RECENT_LEAD_WINDOW)
        )
        return LeadStatistics(
            total=total,
            by_status=self.leads.count_by(session, "status"),
            by_priority=self.leads.count_by(session, "priority"),
            total_value=Decimal(str(total_value)) if total_value is not None else Decimal("0"),
            recent_count=int(recent_count or 0),
            conversion_rate=round(won / total * 100, 1) if total else 0.0,
        )

    def record_activity(
        self,
        session: Session,
        actor_user: ActorUser,
        lead_id: uuid.UUID,
        activity_type: str,
        description: str,
        details: dict[str, Any] | None = None,
    ) -> LeadActivity:
        """Stage an activity row in the caller's transaction without committing."""
        return self._log_activity(session, actor_user, lead_id, activity_type, description, details or {})

    def record_note(self, session: Session, actor_user: ActorUser, lead_id: uuid.UUID, content: str) -> LeadNote:
        note = LeadNote(lead_id=lead_id, content=content, note_type="general", created_by=actor_user.user_id)
        return self.notes.add(session, note)

    def _log_activity(
        self,
        session: Session,
        actor_user: ActorUser,
        lead_id: uuid.UUID,
        activity_type: str,
        description: str,
        details: dict[str, Any],
    ) -> LeadActivity:
        activity = LeadActivity(
            lead_id=lead_id,
            activity_type=activity_type,
            description=description,
            created_by=actor_user.user_id,
            details=details,
        )
        return self.activities.add(session, activity)

    def _to_read(self, lead: Lead) -> LeadRead:
        return LeadRead.model_validate(lead)


@dataclass(slots=True)
class CustomerService:
    customers: CustomerRepository = CustomerRepository()
    notes: CustomerNoteRepository = CustomerNoteRepository()
    projects: ProjectRepository = ProjectRepository()
    proposals: ProposalRepository = ProposalRepository()
    entity_type: str = "crm.customer"

    def create_customer(self, session: Session, actor_user: ActorUser, dto: CustomerCreate) -> CustomerRead:
        email = str(dto.email)
        self.ensure_email_available(session, email)
        customer = Customer(
            name=dto.name,
            email=email,
            phone=dto.phone,
            address=dto.address,
            password_hash=hash_password(dto.password),
        )
        self.customers.add(session, customer)
        self.customers.commit(session, "crm.customer.create")
        session.refresh(customer)

        created = CustomerRead.model_validate(customer)
        audit.record(
            actor_user_id=actor_user.user_id,
            entity_type=self.entity_type,
            entity_id=str(customer.id),
            action="create",
            before=None,
            after=created.model_dump(mode="json"),
            correlation_id=actor_user.correlation_id,
        )
        events.publish(
            events.build_envelope("crm.customer.created", actor_user.user_id, {"customer_id": str(customer.id)})
        )
        return created

    def list_customers(
        self,
        session: Session,
        actor_user: ActorUser,
        q: str | None,
        cursor: str | None,
        limit: int,
    ) -> list[CustomerRead]:
        conditions = []
        if q:
            term = f"%{q}%"
            conditions.append(or_(Customer.name.ilike(term), Customer.email.ilike(term), Customer.phone.ilike(term)))
        customers = self.customers.list(
            session,
            conditions=conditions,
            order_by=Customer.created_at.desc(),
            offset=_offset(cursor),
            limit=limit,
        )
        return [CustomerRead.model_validate(customer) for customer in customers]

    def get_customer(self, session: Session, actor_user: ActorUser, customer_id: uuid.UUID) -> CustomerRead:
        return CustomerRead.model_validate(self.customers.require(session, customer_id))

    def update_customer(
        self,
        session: Session,
        actor_user: ActorUser,
        customer_id: uuid.UUID,
        dto: CustomerUpdate,
    ) -> CustomerRead:
        customer = self.customers.require(session, customer_id)
        payload = {
            key: value
            for key, value in dto.model_dump(exclude_unset=True, exclude={"row_version", "password"}).items()
            if value is not None or key not in _CUSTOMER_REQUIRED_FIELDS
        }
        if "email" in payload:
            payload["email"] = str(payload["email"])
            if payload["email"].lower() != customer.email.lower():
                self.ensure_email_available(session, payload["email"])
        if dto.password is not None:
            payload["password_hash"] = hash_password(dto.password)
        if not payload:
            return CustomerRead.model_validate(customer)

        before = CustomerRead.model_validate(customer).model_dump(mode="json")
        customer = self.customers.update_versioned(session, customer, payload, dto.row_version)
        self.customers.commit(session, "crm.customer.update")
        session.refresh(customer)

        updated = CustomerRead.model_validate(customer)
        audit.record(
            actor_user_id=actor_user.user_id,
            entity_type=self.entity_type,
            entity_id=str(customer.id),
            action="update",
            before=before,
            after=updated.model_dump(mode="json"),
            correlation_id=actor_user.correlation_id,
        )
        events.publish(
            events.build_envelope("crm.customer.updated", actor_user.user_id, {"customer_id": str(customer.id)})
        )
        return updated

    def delete_customer(self, session: Session, actor_user: ActorUser, customer_id: uuid.UUID) -> None:
        customer = self.customers.require(session, customer_id)
        project_count = self.projects.count(session, customer_id=customer.id)
        if project_count:
            raise ConflictError(
                "customer has projects and cannot be deleted",
                details={"customer_id": str(customer.id), "projects": project_count},
            )
        accepted_count = self.proposals.count(session, customer_id=customer.id, status="accepted")
        if accepted_count:
            raise ConflictError(
                "customer has accepted proposals and cannot be deleted",
                details={"customer_id": str(customer.id), "accepted_proposals": accepted_count},
            )
        before = CustomerRead.model_validate(customer).model_dump(mode="json")
        self.customers.delete(session, customer)
        self.customers.commit(session, "crm.customer.delete")

        audit.record(
            actor_user_id=actor_user.user_id,
            entity_type=self.entity_type,
            entity_id=str(customer_id),
            action="delete",
            before=before,
            after=None,
            correlation_id=actor_user.correlation_id,
        )
        events.publish(events.build_envelope("crm.customer.deleted", actor_user.user_id, {"customer_id": str(customer_id)}))

    def add_note(
        self,
        session: Session,
        actor_user: ActorUser,
        customer_id: uuid.UUID,
        dto: CustomerNoteCreate,
    ) -> CustomerNoteRead:
        customer = self.customers.require(session, customer_id)
        note = self.record_note(session, actor_user, customer.id, dto.content)
        self.notes.commit(session, "crm.customer_note.create")
        session.refresh(note)
        return CustomerNoteRead.model_validate(note)

    def list_notes(self, session: Session, actor_user: ActorUser, customer_id: uuid.UUID) -> list[CustomerNoteRead]:
        self.customers.require(session, customer_id)
        return [CustomerNoteRead.model_validate(note) for note in self.notes.for_customer(session, customer_id)]

    def list_projects(self, session: Session, actor_user: ActorUser, customer_id: uuid.UUID) -> list[ProjectRead]:
        self.customers.require(session, customer_id)
        return [ProjectRead.model_validate(project) for project in self.projects.for_customer(session, customer_id)]

    def record_note(self, session: Session, actor_user: ActorUser, customer_id: uuid.UUID, content: str) -> CustomerNote:
        """Stage a customer note in the caller's transaction without committing."""
        note = CustomerNote(customer_id=customer_id, content=content, created_by=actor_user.user_id)
        return self.notes.add(session, note)

    def ensure_email_available(self, session: Session, email: str) -> None:
        if self.customers.get_by_email(session, email) is not None:
            raise ConflictError("customer already exists with this email", details={"field": "email"})


lead_service = LeadService()
customer_service = CustomerService()
