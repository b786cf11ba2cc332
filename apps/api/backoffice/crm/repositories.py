from __future__ import annotations

import uuid

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from backoffice.crm.models import Customer, CustomerNote, Lead, LeadActivity, LeadNote
from backoffice.platform.repository import EntityRepository


class LeadRepository(EntityRepository[Lead]):
    model = Lead
    label = "lead"
    resource = "crm.lead"

    def count_by(self, session: Session, column_name: str) -> dict[str, int]:
        column = getattr(Lead, column_name)
        rows = session.execute(select(column, func.count()).group_by(column)).all()
        return {str(value): int(count) for value, count in rows}


class LeadNoteRepository(EntityRepository[LeadNote]):
    model = LeadNote
    label = "lead note"
    resource = "crm.lead_note"

    def for_lead(self, session: Session, lead_id: uuid.UUID) -> list[LeadNote]:
        return self.list(session, filters={"lead_id": lead_id}, order_by=LeadNote.created_at.desc())


class LeadActivityRepository(EntityRepository[LeadActivity]):
    model = LeadActivity
    label = "lead activity"
    resource = "crm.lead_activity"

    def for_lead(self, session: Session, lead_id: uuid.UUID) -> list[LeadActivity]:
        return self.list(session, filters={"lead_id": lead_id}, order_by=LeadActivity.created_at.desc())


class CustomerRepository(EntityRepository[Customer]):
    model = Customer
    label = "customer"
    resource = "crm.customer"

    def get_by_email(self, session: Session, email: str) -> Customer | None:
        return session.scalar(select(Customer).where(func.lower(Customer.email) == email.strip().lower()))


class CustomerNoteRepository(EntityRepository[CustomerNote]):
    model = CustomerNote
    label = "customer note"
    resource = "crm.customer_note"

    def for_customer(self, session: Session, customer_id: uuid.UUID) -> list[CustomerNote]:
        return self.list(session, filters={"customer_id": customer_id}, order_by=CustomerNote.created_at.desc())
