from __future__ import annotations

import uuid
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from sqlalchemy.orm import Session

from backoffice import audit, events
from backoffice.business.finance import decode_items, encode_items, price_items
from backoffice.business.finance.calculator import to_decimal
from backoffice.business.finance.schemas import LineItemRead
from backoffice.business.proposals.models import Proposal, utcnow
from backoffice.business.proposals.repository import ProposalRepository
from backoffice.business.proposals.schemas import (
    ProposalCreate,
    ProposalLinkCustomer,
    ProposalPatch,
    ProposalRead,
    ProposalStatusChange,
)
from backoffice.core.config import get_settings
from backoffice.core.errors import ConflictError, ValidationError
from backoffice.crm.models import CustomerNote
from backoffice.crm.repositories import CustomerNoteRepository, CustomerRepository
from backoffice.lifecycle.machines import PROPOSAL_MACHINE
from backoffice.notifications.dispatcher import ProposalMessage, deliver_proposal
from backoffice.platform.security.context import ActorUser

_SNAPSHOT_FIELDS = ("customer_name", "customer_email", "customer_phone", "customer_address")
_RESEND_STATUSES = {"sent", "viewed"}


@dataclass(slots=True)
class ProposalService:
    proposals: ProposalRepository = ProposalRepository()
    customers: CustomerRepository = CustomerRepository()
    customer_notes: CustomerNoteRepository = CustomerNoteRepository()
    entity_type: str = "business.proposal"

    def create_proposal(self, session: Session, actor_user: ActorUser, dto: ProposalCreate) -> ProposalRead:
        tax_rate = dto.tax_rate if dto.tax_rate is not None else get_settings().default_tax_rate
        priced, totals = price_items(dto.items, tax_rate)

        snapshot = {
            "customer_name": dto.customer_name,
            "customer_email": str(dto.customer_email) if dto.customer_email is not None else None,
            "customer_phone": dto.customer_phone,
            "customer_address": dto.customer_address,
        }
        customer = self.customers.require(session, dto.customer_id) if dto.customer_id is not None else None
        if customer is not None:
            snapshot = self._fill_snapshot(snapshot, customer)

        proposal = Proposal(
            proposal_number=self.proposals.next_number(session),
            customer_id=dto.customer_id,
            **snapshot,
            title=dto.title,
            proposal_type=dto.proposal_type,
            proposal_date=dto.proposal_date,
            expiration_date=dto.expiration_date,
            items=encode_items(priced),
            subtotal=totals.subtotal,
            tax_rate=to_decimal(tax_rate, "tax_rate"),
            tax=totals.tax,
            total=totals.total,
            notes=dto.notes,
            status=PROPOSAL_MACHINE.initial,
            created_by=actor_user.user_id,
        )
        self.proposals.add(session, proposal)
        if customer is not None:
            note = CustomerNote(
                customer_id=customer.id,
                content=f"Proposal {proposal.proposal_number} created - {proposal.proposal_type or 'General'} - "
                f"Total: ${totals.total:.2f}",
                created_by=actor_user.user_id,
            )
            self.customer_notes.add(session, note)
        self.proposals.commit(session, "business.proposal.create")
        session.refresh(proposal)

        created = self._to_read(proposal)
        self._audit(actor_user, proposal.id, "create", None, created)
        events.publish(
            events.build_envelope(
                "proposal.created",
                actor_user.user_id,
                {
                    "proposal_id": str(proposal.id),
                    "proposal_number": proposal.proposal_number,
                    "customer_id": str(proposal.customer_id) if proposal.customer_id else None,
                    "total": str(totals.total),
                },
            )
        )
        return created

    def list_proposals(
        self,
        session: Session,
        actor_user: ActorUser,
        status_filter: str | None,
        customer_id: uuid.UUID | None,
        offset: int = 0,
        limit: int = 50,
    ) -> list[ProposalRead]:
        proposals = self.proposals.list(
            session,
            filters={"status": status_filter, "customer_id": customer_id},
            order_by=Proposal.created_at.desc(),
            offset=offset,
            limit=limit,
        )
        return [self._to_read(proposal) for proposal in proposals]

    def get_proposal(self, session: Session, actor_user: ActorUser, proposal_id: uuid.UUID) -> ProposalRead:
        return self._to_read(self.proposals.require(session, proposal_id))

    def update_proposal(
        self,
        session: Session,
        actor_user: ActorUser,
        proposal_id: uuid.UUID,
        dto: ProposalPatch,
    ) -> ProposalRead:
        proposal = self.proposals.require(session, proposal_id)
        if proposal.status == "accepted":
            raise ConflictError(
                "accepted proposal cannot be modified",
                details={"proposal_id": str(proposal.id), "status": proposal.status},
            )

        payload = dto.model_dump(exclude_unset=True, exclude={"row_version", "items"})
        if payload.get("customer_email") is not None:
            payload["customer_email"] = str(payload["customer_email"])
        if "items" in dto.model_fields_set or "tax_rate" in dto.model_fields_set:
            items: list[Any] = dto.items if dto.items is not None else decode_items(proposal.items)
            tax_rate = payload.get("tax_rate")
            if tax_rate is None:
                tax_rate = proposal.tax_rate
            priced, totals = price_items(items, tax_rate)
            payload.update(
                items=encode_items(priced),
                tax_rate=to_decimal(tax_rate, "tax_rate"),
                subtotal=totals.subtotal,
                tax=totals.tax,
                total=totals.total,
            )
        if not payload:
            return self._to_read(proposal)

        before = self._to_read(proposal)
        proposal = self.proposals.update_versioned(session, proposal, payload, dto.row_version)
        self.proposals.commit(session, "business.proposal.update")
        session.refresh(proposal)

        updated = self._to_read(proposal)
        self._audit(actor_user, proposal.id, "update", before, updated)
        events.publish(
            events.build_envelope(
                "proposal.updated",
                actor_user.user_id,
                {"proposal_id": str(proposal.id), "total": str(proposal.total)},
            )
        )
        return updated

    def change_status(
        self,
        session: Session,
        actor_user: ActorUser,
        proposal_id: uuid.UUID,
        dto: ProposalStatusChange,
    ) -> ProposalRead:
        proposal = self.proposals.require(session, proposal_id)
        previous_status = proposal.status
        PROPOSAL_MACHINE.ensure(previous_status, dto.status)
        if previous_status == dto.status:
            return self._to_read(proposal)

        values: dict[str, Any] = {"status": dto.status}
        if dto.status == "sent" and proposal.sent_at is None:
            values["sent_at"] = utcnow()
        if dto.status == "accepted":
            values["accepted_at"] = utcnow()

        before = self._to_read(proposal)
        proposal = self.proposals.update_versioned(session, proposal, values, dto.row_version)
        self.proposals.commit(session, "business.proposal.status")
        session.refresh(proposal)

        PROPOSAL_MACHINE.record(previous_status, dto.status)
        updated = self._to_read(proposal)
        self._audit(actor_user, proposal.id, "status_change", before, updated)
        events.publish(
            events.build_envelope(
                "proposal.status_changed",
                actor_user.user_id,
                {"proposal_id": str(proposal.id), "from": previous_status, "to": dto.status},
            )
        )
        return updated

    def delete_proposal(self, session: Session, actor_user: ActorUser, proposal_id: uuid.UUID) -> None:
        proposal = self.proposals.require(session, proposal_id)
        PROPOSAL_MACHINE.ensure_deletable(proposal.status)
        before = self._to_read(proposal)
        self.proposals.delete(session, proposal)
        self.proposals.commit(session, "business.proposal.delete")

        self._audit(actor_user, proposal_id, "delete", before, None)
        events.publish(events.build_envelope("proposal.deleted", actor_user.user_id, {"proposal_id": str(proposal_id)}))

    def link_customer(
        self,
        session: Session,
        actor_user: ActorUser,
        proposal_id: uuid.UUID,
        dto: ProposalLinkCustomer,
    ) -> ProposalRead:
        """Attach a customer to a proposal that has none yet.

        This is the one mutation allowed on an accepted proposal, so a
        snapshot-only proposal can still be converted into a project. Empty
        snapshot fields are filled from the customer record.
        """
        proposal = self.proposals.require(session, proposal_id)
        if proposal.customer_id is not None:
            raise ConflictError(
                "proposal is already linked to a customer",
                details={"proposal_id": str(proposal.id), "customer_id": str(proposal.customer_id)},
            )
        customer = self.customers.require(session, dto.customer_id)

        current = {name: getattr(proposal, name) for name in _SNAPSHOT_FIELDS}
        values: dict[str, Any] = {"customer_id": customer.id, **self._fill_snapshot(current, customer)}
        before = self._to_read(proposal)
        proposal = self.proposals.update_versioned(session, proposal, values, dto.row_version)
        self.proposals.commit(session, "business.proposal.link_customer")
        session.refresh(proposal)

        updated = self._to_read(proposal)
        self._audit(actor_user, proposal.id, "link_customer", before, updated)
        events.publish(
            events.build_envelope(
                "proposal.customer_linked",
                actor_user.user_id,
                {"proposal_id": str(proposal.id), "customer_id": str(customer.id)},
            )
        )
        return updated

    def send_proposal(self, session: Session, actor_user: ActorUser, proposal_id: uuid.UUID) -> ProposalRead:
        """E-mail the proposal to its customer and move it to ``sent``.

        Re-sending a proposal that is already ``sent`` or ``viewed`` keeps its
        status. Nothing is written when delivery fails.
        """
        proposal = self.proposals.require(session, proposal_id)
        previous_status = proposal.status
        target_status = previous_status if previous_status in _RESEND_STATUSES else "sent"
        PROPOSAL_MACHINE.ensure(previous_status, target_status)
        if not proposal.customer_email:
            raise ValidationError(
                "proposal has no customer email",
                details={"field": "customer_email", "proposal_id": str(proposal.id)},
            )

        deliver_proposal(self._to_message(proposal))

        before = self._to_read(proposal)
        proposal = self.proposals.update_versioned(
            session,
            proposal,
            {"status": target_status, "sent_at": utcnow()},
        )
        self.proposals.commit(session, "business.proposal.send")
        session.refresh(proposal)

        PROPOSAL_MACHINE.record(previous_status, target_status)
        updated = self._to_read(proposal)
        self._audit(actor_user, proposal.id, "send", before, updated)
        events.publish(
            events.build_envelope(
                "proposal.sent",
                actor_user.user_id,
                {"proposal_id": str(proposal.id), "recipient": proposal.customer_email},
            )
        )
        return updated

    @staticmethod
    def _fill_snapshot(snapshot: dict[str, Any], customer: Any) -> dict[str, Any]:
        return {
            "customer_name": snapshot.get("customer_name") or customer.name,
            "customer_email": snapshot.get("customer_email") or customer.email,
            "customer_phone": snapshot.get("customer_phone") or customer.phone,
            "customer_address": snapshot.get("customer_address") or customer.address,
        }

    def _to_message(self, proposal: Proposal) -> ProposalMessage:
        return ProposalMessage(
            proposal_id=str(proposal.id),
            proposal_number=proposal.proposal_number,
            sender=get_settings().proposal_sender_email,
            recipient=proposal.customer_email or "",
            customer_name=proposal.customer_name,
            customer_phone=proposal.customer_phone,
            customer_address=proposal.customer_address,
            proposal_type=proposal.proposal_type,
            proposal_date=proposal.proposal_date.isoformat() if proposal.proposal_date else None,
            expiration_date=proposal.expiration_date.isoformat() if proposal.expiration_date else None,
            items=tuple(decode_items(proposal.items)),
            subtotal=Decimal(proposal.subtotal),
            tax_rate=Decimal(proposal.tax_rate),
            tax=Decimal(proposal.tax),
            total=Decimal(proposal.total),
            notes=proposal.notes,
        )

    def _to_read(self, proposal: Proposal) -> ProposalRead:
        return ProposalRead.model_validate(
            {
                "id": proposal.id,
                "proposal_number": proposal.proposal_number,
                "customer_id": proposal.customer_id,
                "customer_name": proposal.customer_name,
                "customer_email": proposal.customer_email,
                "customer_phone": proposal.customer_phone,
                "customer_address": proposal.customer_address,
                "title": proposal.title,
                "proposal_type": proposal.proposal_type,
                "proposal_date": proposal.proposal_date,
                "expiration_date": proposal.expiration_date,
                "items": [LineItemRead.model_validate(item) for item in decode_items(proposal.items)],
                "subtotal": proposal.subtotal,
                "tax_rate": proposal.tax_rate,
                "tax": proposal.tax,
                "total": proposal.total,
                "notes": proposal.notes,
                "status": proposal.status,
                "sent_at": proposal.sent_at,
                "accepted_at": proposal.accepted_at,
                "created_at": proposal.created_at,
                "updated_at": proposal.updated_at,
                "row_version": proposal.row_version,
            }
        )

    def _audit(
        self,
        actor_user: ActorUser,
        proposal_id: uuid.UUID,
        action: str,
        before: ProposalRead | None,
        after: ProposalRead | None,
    ) -> None:
        audit.record(
            actor_user_id=actor_user.user_id,
            entity_type=self.entity_type,
            entity_id=str(proposal_id),
            action=action,
            before=before.model_dump(mode="json") if before is not None else None,
            after=after.model_dump(mode="json") if after is not None else None,
            correlation_id=actor_user.correlation_id,
        )


proposal_service = ProposalService()
