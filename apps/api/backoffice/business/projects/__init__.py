from backoffice.business.projects.api import router
from backoffice.business.projects.models import Project, ProjectDocument, ProjectMilestone, ProjectUpdate
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
from backoffice.business.projects.service import ProjectService, project_service

__all__ = [
    "router",
    "Project",
    "ProjectDocument",
    "ProjectMilestone",
    "ProjectUpdate",
    "ProjectCreate",
    "ProjectDocumentCreate",
    "ProjectDocumentRead",
    "ProjectMilestoneCreate",
    "ProjectMilestoneRead",
    "ProjectPatch",
    "ProjectRead",
    "ProjectUpdateCreate",
    "ProjectUpdateRead",
    "ProjectService",
    "project_service",
]
