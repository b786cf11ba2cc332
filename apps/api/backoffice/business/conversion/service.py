"""Lead-to-customer and proposal-to-project conversion workflows.

Each workflow validates everything before its first write and then commits
all of its rows in one transaction; a storage failure rolls the whole unit
back. Audit entries, events and metrics are only emitted after the commit.
"""

from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass, field

from opentelemetry import trace
from sqlalchemy.orm import Session

from backoffice import audit, events
from backoffice.business.projects.models import Project
from backoffice.business.projects.repository import ProjectRepository
from backoffice.business.projects.schemas import ProjectRead
from backoffice.business.proposals.models import Proposal
from backoffice.business.proposals.repository import ProposalRepository
from backoffice.core.errors import ConflictError, DomainError, PersistenceError, ValidationError
from backoffice.core.passwords import hash_password
from backoffice.crm.models import Customer, utcnow
from backoffice.crm.repositories import CustomerRepository, LeadRepository
from backoffice.crm.schemas import CustomerRead
from backoffice.crm.service import CustomerService, LeadService
from backoffice.lifecycle.machines import LEAD_MACHINE, PROJECT_MACHINE
from backoffice.metrics import observe_conversion
from backoffice.otel import mark_span_failed
from backoffice.platform.security.context import ActorUser


logger = logging.getLogger("backoffice.conversion")
tracer = trace.get_tracer("backoffice.conversion")

LEAD_TO_CUSTOMER = "lead_to_customer"
PROPOSAL_TO_PROJECT = "proposal_to_project"


@dataclass(frozen=True, slots=True)
class LeadConversionResult:
    customer_id: uuid.UUID
    lead_id: uuid.UUID


@dataclass(frozen=True, slots=True)
class ProjectConversionResult:
    project_id: uuid.UUID
    proposal_id: uuid.UUID
    created: bool


@dataclass(slots=True)
class ConversionService:
    leads: LeadRepository = LeadRepository()
    customers: CustomerRepository = CustomerRepository()
    proposals: ProposalRepository = ProposalRepository()
    projects: ProjectRepository = ProjectRepository()
    lead_service: LeadService = field(default_factory=LeadService)
    customer_service: CustomerService = field(default_factory=CustomerService)

    def convert_lead_to_customer(
        self,
        session: Session,
        actor_user: ActorUser,
        lead_id: uuid.UUID,
        raw_password: str,
    ) -> LeadConversionResult:
        started = time.perf_counter()
        with tracer.start_as_current_span("conversion.lead_to_customer") as span:
            span.set_attribute("lead_id", str(lead_id))
            span.set_attribute("correlation_id", actor_user.correlation_id or "")
            try:
                result = self._convert_lead(session, actor_user, lead_id, raw_password)
            except DomainError as exc:
                self._record_failure(span, LEAD_TO_CUSTOMER, exc, started, lead_id=str(lead_id))
                raise
            span.set_attribute("customer_id", str(result.customer_id))

        observe_conversion(LEAD_TO_CUSTOMER, "converted", time.perf_counter() - started)
        logger.info(
            "conversion.lead_converted",
            extra={
                "lead_id": str(result.lead_id),
                "customer_id": str(result.customer_id),
                "actor_user_id": actor_user.user_id,
            },
        )
        return result

    def convert_proposal_to_project(
        self,
        session: Session,
        actor_user: ActorUser,
        proposal_id: uuid.UUID,
    ) -> ProjectConversionResult:
        started = time.perf_counter()
        with tracer.start_as_current_span("conversion.proposal_to_project") as span:
            span.set_attribute("proposal_id", str(proposal_id))
            span.set_attribute("correlation_id", actor_user.correlation_id or "")
            try:
                result = self._convert_proposal(session, actor_user, proposal_id)
            except DomainError as exc:
                self._record_failure(span, PROPOSAL_TO_PROJECT, exc, started, proposal_id=str(proposal_id))
                raise
            span.set_attribute("project_id", str(result.project_id))
            span.set_attribute("created", result.created)

        observe_conversion(PROPOSAL_TO_PROJECT, "converted" if result.created else "existing", time.perf_counter() - started)
        logger.info(
            "conversion.proposal_converted",
            extra={
                "proposal_id": str(result.proposal_id),
                "project_id": str(result.project_id),
                "actor_user_id": actor_user.user_id,
            },
        )
        return result

    def _convert_lead(
        self,
        session: Session,
        actor_user: ActorUser,
        lead_id: uuid.UUID,
        raw_password: str,
    ) -> LeadConversionResult:
        lead = self.leads.require(session, lead_id)
        if not raw_password:
            raise ValidationError("password is required", details={"field": "password"})
        if not lead.email:
            raise ValidationError("lead has no email address", details={"field": "email", "lead_id": str(lead.id)})
        if lead.status in LEAD_MACHINE.terminal:
            raise ConflictError(
                f"lead is already {lead.status}",
                details={"lead_id": str(lead.id), "status": lead.status},
            )
        LEAD_MACHINE.ensure(lead.status, "won", orchestrated=True)
        self.customer_service.ensure_email_available(session, lead.email)

        password_hash = hash_password(raw_password)
        previous_status = lead.status
        lead_before = self.lead_service._to_read(lead).model_dump(mode="json")

        customer = Customer(
            name=lead.name,
            email=lead.email,
            phone=lead.phone,
            address=lead.address,
            password_hash=password_hash,
            lead_id=lead.id,
        )
        self.customers.add(session, customer)
        lead = self.leads.update_versioned(
            session,
            lead,
            {"status": "won", "converted_customer_id": customer.id, "converted_at": utcnow()},
        )
        message = f"Lead converted to customer (ID: {customer.id})"
        self.lead_service.record_activity(
            session,
            actor_user,
            lead.id,
            "converted",
            message,
            {"customer_id": str(customer.id), "from": previous_status},
        )
        self.lead_service.record_note(session, actor_user, lead.id, message)
        self.leads.commit(session, "conversion.lead_to_customer")
        session.refresh(lead)
        session.refresh(customer)

        LEAD_MACHINE.record(previous_status, "won")
        audit.record(
            actor_user_id=actor_user.user_id,
            entity_type="crm.lead",
            entity_id=str(lead.id),
            action="convert",
            before=lead_before,
            after=self.lead_service._to_read(lead).model_dump(mode="json"),
            correlation_id=actor_user.correlation_id,
        )
        audit.record(
            actor_user_id=actor_user.user_id,
            entity_type="crm.customer",
            entity_id=str(customer.id),
            action="create",
            before=None,
            after=CustomerRead.model_validate(customer).model_dump(mode="json"),
            correlation_id=actor_user.correlation_id,
        )
        events.publish(
            events.build_envelope(
                "crm.lead.converted",
                actor_user.user_id,
                {"lead_id": str(lead.id), "customer_id": str(customer.id), "from": previous_status},
            )
        )
        events.publish(
            events.build_envelope(
                "crm.customer.created",
                actor_user.user_id,
                {"customer_id": str(customer.id), "lead_id": str(lead.id)},
            )
        )
        return LeadConversionResult(customer_id=customer.id, lead_id=lead.id)

    def _convert_proposal(
        self,
        session: Session,
        actor_user: ActorUser,
        proposal_id: uuid.UUID,
    ) -> ProjectConversionResult:
        proposal = self.proposals.require(session, proposal_id)
        if proposal.status != "accepted":
            raise ConflictError(
                "proposal must be accepted before conversion",
                details={"proposal_id": str(proposal.id), "status": proposal.status},
            )
        if proposal.customer_id is None:
            raise ConflictError(
                "proposal has no customer; link a customer first",
                details={"proposal_id": str(proposal.id)},
            )
        customer = self.customers.require(session, proposal.customer_id)

        existing = self.projects.get_by_proposal(session, proposal.id)
        if existing is not None:
            return ProjectConversionResult(project_id=existing.id, proposal_id=proposal.id, created=False)

        project = Project(
            customer_id=customer.id,
            proposal_id=proposal.id,
            title=self._project_title(proposal),
            description=proposal.notes,
            budget=proposal.total,
            status=PROJECT_MACHINE.initial,
        )
        try:
            self.projects.add(session, project)
            self.customer_service.record_note(
                session,
                actor_user,
                customer.id,
                f"Project created from proposal {proposal.proposal_number}: {project.title}",
            )
            self.projects.commit(session, "conversion.proposal_to_project")
        except PersistenceError:
            # a concurrent conversion may have won the unique proposal_id slot
            existing = self.projects.get_by_proposal(session, proposal_id)
            if existing is None:
                raise
            return ProjectConversionResult(project_id=existing.id, proposal_id=proposal_id, created=False)
        session.refresh(project)

        audit.record(
            actor_user_id=actor_user.user_id,
            entity_type="business.project",
            entity_id=str(project.id),
            action="create",
            before=None,
            after=ProjectRead.model_validate(project).model_dump(mode="json"),
            correlation_id=actor_user.correlation_id,
        )
        events.publish(
            events.build_envelope(
                "project.created",
                actor_user.user_id,
                {"project_id": str(project.id), "customer_id": str(customer.id), "proposal_id": str(proposal_id)},
            )
        )
        events.publish(
            events.build_envelope(
                "proposal.converted",
                actor_user.user_id,
                {"proposal_id": str(proposal_id), "project_id": str(project.id)},
            )
        )
        return ProjectConversionResult(project_id=project.id, proposal_id=proposal_id, created=True)

    @staticmethod
    def _project_title(proposal: Proposal) -> str:
        if proposal.title:
            return proposal.title
        return f"{proposal.proposal_type or 'Project'} - {proposal.proposal_number}"

    @staticmethod
    def _record_failure(span, kind: str, exc: DomainError, started: float, **fields: str) -> None:  # type: ignore[no-untyped-def]
        mark_span_failed(span, exc)
        observe_conversion(kind, exc.kind, time.perf_counter() - started)
        logger.warning(
            "conversion.rejected",
            extra={**fields, "operation": kind, "error_kind": exc.kind, "error": exc.message},
        )


conversion_service = ConversionService()
