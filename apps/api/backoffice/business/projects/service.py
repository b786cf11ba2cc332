from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy.orm import Session

from backoffice import audit, events
from backoffice.business.projects.models import Project, ProjectDocument, ProjectMilestone, ProjectUpdate
from backoffice.business.projects.repository import (
    ProjectDocumentRepository,
    ProjectMilestoneRepository,
    ProjectRepository,
    ProjectUpdateRepository,
)
from backoffice.business.projects.schemas import (
    ProjectCreate,
    ProjectDocumentCreate,
    ProjectDocumentRead,
    ProjectMilestoneCreate,
    ProjectMilestoneRead,
    ProjectPatch,
    ProjectRead,
    ProjectUpdateCreate,
    ProjectUpdateRead,
)
from backoffice.core.errors import ValidationError
from backoffice.crm.repositories import CustomerRepository
from backoffice.lifecycle.machines import PROJECT_MACHINE
from backoffice.platform.security.context import ActorUser

_REQUIRED_FIELDS = {"title", "status"}


@dataclass(slots=True)
class ProjectService:
    projects: ProjectRepository = ProjectRepository()
    updates: ProjectUpdateRepository = ProjectUpdateRepository()
    documents: ProjectDocumentRepository = ProjectDocumentRepository()
    milestones: ProjectMilestoneRepository = ProjectMilestoneRepository()
    customers: CustomerRepository = CustomerRepository()
    entity_type: str = "business.project"

    def create_project(self, session: Session, actor_user: ActorUser, dto: ProjectCreate) -> ProjectRead:
        customer = self.customers.require(session, dto.customer_id)
        project = Project(
            customer_id=customer.id,
            title=dto.title,
            description=dto.description,
            budget=dto.budget,
            start_date=dto.start_date,
            end_date=dto.end_date,
            status=PROJECT_MACHINE.initial,
        )
        self.projects.add(session, project)
        self.projects.commit(session, "business.project.create")
        session.refresh(project)

        created = ProjectRead.model_validate(project)
        audit.record(
            actor_user_id=actor_user.user_id,
            entity_type=self.entity_type,
            entity_id=str(project.id),
            action="create",
            before=None,
            after=created.model_dump(mode="json"),
            correlation_id=actor_user.correlation_id,
        )
        events.publish(
            events.build_envelope(
                "project.created",
                actor_user.user_id,
                {"project_id": str(project.id), "customer_id": str(customer.id), "proposal_id": None},
            )
        )
        return created

    def list_projects(
        self,
        session: Session,
        actor_user: ActorUser,
        status_filter: str | None,
        customer_id: uuid.UUID | None,
        offset: int = 0,
        limit: int = 50,
    ) -> list[ProjectRead]:
        projects = self.projects.list(
            session,
            filters={"status": status_filter, "customer_id": customer_id},
            order_by=Project.created_at.desc(),
            offset=offset,
            limit=limit,
        )
        return [ProjectRead.model_validate(project) for project in projects]

    def get_project(self, session: Session, actor_user: ActorUser, project_id: uuid.UUID) -> ProjectRead:
        return ProjectRead.model_validate(self.projects.require(session, project_id))

    def update_project(
        self,
        session: Session,
        actor_user: ActorUser,
        project_id: uuid.UUID,
        dto: ProjectPatch,
    ) -> ProjectRead:
        project = self.projects.require(session, project_id)
        payload = {
            key: value
            for key, value in dto.model_dump(exclude_unset=True, exclude={"row_version"}).items()
            if value is not None or key not in _REQUIRED_FIELDS
        }
        previous_status = project.status
        target_status = payload.get("status", previous_status)
        PROJECT_MACHINE.ensure(previous_status, target_status)

        start_date = payload.get("start_date", project.start_date)
        end_date = payload.get("end_date", project.end_date)
        if start_date and end_date and end_date < start_date:
            raise ValidationError("end_date must not be before start_date", details={"field": "end_date"})
        if not payload:
            return ProjectRead.model_validate(project)

        before = ProjectRead.model_validate(project).model_dump(mode="json")
        project = self.projects.update_versioned(session, project, payload, dto.row_version)
        self.projects.commit(session, "business.project.update")
        session.refresh(project)

        updated = ProjectRead.model_validate(project)
        audit.record(
            actor_user_id=actor_user.user_id,
            entity_type=self.entity_type,
            entity_id=str(project.id),
            action="update",
            before=before,
            after=updated.model_dump(mode="json"),
            correlation_id=actor_user.correlation_id,
        )
        if target_status != previous_status:
            PROJECT_MACHINE.record(previous_status, target_status)
            events.publish(
                events.build_envelope(
                    "project.status_changed",
                    actor_user.user_id,
                    {"project_id": str(project.id), "from": previous_status, "to": target_status},
                )
            )
        return updated

    def delete_project(self, session: Session, actor_user: ActorUser, project_id: uuid.UUID) -> None:
        project = self.projects.require(session, project_id)
        PROJECT_MACHINE.ensure_deletable(project.status)
        before = ProjectRead.model_validate(project).model_dump(mode="json")
        self.projects.delete(session, project)
        self.projects.commit(session, "business.project.delete")

        audit.record(
            actor_user_id=actor_user.user_id,
            entity_type=self.entity_type,
            entity_id=str(project_id),
            action="delete",
            before=before,
            after=None,
            correlation_id=actor_user.correlation_id,
        )
        events.publish(events.build_envelope("project.deleted", actor_user.user_id, {"project_id": str(project_id)}))

    def add_update(
        self,
        session: Session,
        actor_user: ActorUser,
        project_id: uuid.UUID,
        dto: ProjectUpdateCreate,
    ) -> ProjectUpdateRead:
        project = self.projects.require(session, project_id)
        update = ProjectUpdate(project_id=project.id, title=dto.title, content=dto.content, created_by=actor_user.user_id)
        self.updates.add(session, update)
        self.updates.commit(session, "business.project_update.create")
        session.refresh(update)
        events.publish(
            events.build_envelope(
                "project.update_posted",
                actor_user.user_id,
                {"project_id": str(project.id), "update_id": str(update.id)},
            )
        )
        return ProjectUpdateRead.model_validate(update)

    def list_updates(self, session: Session, actor_user: ActorUser, project_id: uuid.UUID) -> list[ProjectUpdateRead]:
        self.projects.require(session, project_id)
        rows = self.updates.list(session, filters={"project_id": project_id}, order_by=ProjectUpdate.created_at.desc())
        return [ProjectUpdateRead.model_validate(row) for row in rows]

    def add_document(
        self,
        session: Session,
        actor_user: ActorUser,
        project_id: uuid.UUID,
        dto: ProjectDocumentCreate,
    ) -> ProjectDocumentRead:
        """Record a reference to a blob that was already stored elsewhere."""
        project = self.projects.require(session, project_id)
        document = ProjectDocument(
            project_id=project.id,
            name=dto.name,
            storage_url=dto.storage_url,
            file_type=dto.file_type,
            file_size=dto.file_size,
            uploaded_by=actor_user.user_id,
        )
        self.documents.add(session, document)
        self.documents.commit(session, "business.project_document.create")
        session.refresh(document)
        return ProjectDocumentRead.model_validate(document)

    def list_documents(
        self,
        session: Session,
        actor_user: ActorUser,
        project_id: uuid.UUID,
    ) -> list[ProjectDocumentRead]:
        self.projects.require(session, project_id)
        rows = self.documents.list(
            session,
            filters={"project_id": project_id},
            order_by=ProjectDocument.created_at.desc(),
        )
        return [ProjectDocumentRead.model_validate(row) for row in rows]

    def add_milestone(
        self,
        session: Session,
        actor_user: ActorUser,
        project_id: uuid.UUID,
        dto: ProjectMilestoneCreate,
    ) -> ProjectMilestoneRead:
        """Append a milestone after the project's last one; milestones are never reordered."""
        project = self.projects.require(session, project_id)
        completed_date = dto.completed_date
        if dto.status == "completed" and completed_date is None:
            completed_date = datetime.now(timezone.utc).date()
        milestone = ProjectMilestone(
            project_id=project.id,
            name=dto.name,
            description=dto.description,
            position=self.milestones.next_position(session, project.id),
            status=dto.status,
            scheduled_date=dto.scheduled_date,
            completed_date=completed_date,
            created_by=actor_user.user_id,
        )
        self.milestones.add(session, milestone)
        self.milestones.commit(session, "business.project_milestone.create")
        session.refresh(milestone)

        created = ProjectMilestoneRead.model_validate(milestone)
        audit.record(
            actor_user_id=actor_user.user_id,
            entity_type="business.project_milestone",
            entity_id=str(milestone.id),
            action="create",
            before=None,
            after=created.model_dump(mode="json"),
            correlation_id=actor_user.correlation_id,
        )
        events.publish(
            events.build_envelope(
                "project.milestone_added",
                actor_user.user_id,
                {"project_id": str(project.id), "milestone_id": str(milestone.id), "position": milestone.position},
            )
        )
        return created

    def list_milestones(
        self,
        session: Session,
        actor_user: ActorUser,
        project_id: uuid.UUID,
    ) -> list[ProjectMilestoneRead]:
        self.projects.require(session, project_id)
        rows = self.milestones.list(
            session,
            filters={"project_id": project_id},
            order_by=ProjectMilestone.position.asc(),
        )
        return [ProjectMilestoneRead.model_validate(row) for row in rows]


project_service = ProjectService()
