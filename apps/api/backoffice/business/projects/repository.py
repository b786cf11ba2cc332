from __future__ import annotations

import uuid

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from backoffice.business.projects.models import Project, ProjectDocument, ProjectMilestone, ProjectUpdate
from backoffice.platform.repository import EntityRepository


class ProjectRepository(EntityRepository[Project]):
    model = Project
    label = "project"
    resource = "business.project"

    def get_by_proposal(self, session: Session, proposal_id: uuid.UUID) -> Project | None:
        return session.scalar(select(Project).where(Project.proposal_id == proposal_id))

    def for_customer(self, session: Session, customer_id: uuid.UUID) -> list[Project]:
        return self.list(session, filters={"customer_id": customer_id}, order_by=Project.created_at.desc())


class ProjectUpdateRepository(EntityRepository[ProjectUpdate]):
    model = ProjectUpdate
    label = "project update"
    resource = "business.project_update"


class ProjectDocumentRepository(EntityRepository[ProjectDocument]):
    model = ProjectDocument
    label = "project document"
    resource = "business.project_document"


class ProjectMilestoneRepository(EntityRepository[ProjectMilestone]):
    model = ProjectMilestone
    label = "project milestone"
    resource = "business.project_milestone"

    def next_position(self, session: Session, project_id: uuid.UUID) -> int:
        current = session.scalar(
            select(func.max(ProjectMilestone.position)).where(ProjectMilestone.project_id == project_id)
        )
        return (current or 0) + 1
