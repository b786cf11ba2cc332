from backoffice.business.billing.models import Invoice
from backoffice.business.projects.models import Project, ProjectDocument, ProjectMilestone, ProjectUpdate
from backoffice.business.proposals.models import Proposal
from backoffice.business.subcontractors.models import Subcontractor, SubcontractorActivity
from backoffice.crm.models import Customer, CustomerNote, Lead, LeadActivity, LeadNote

__all__ = [
    "Customer",
    "CustomerNote",
    "Invoice",
    "Lead",
    "LeadActivity",
    "LeadNote",
    "Project",
    "ProjectDocument",
    "ProjectMilestone",
    "ProjectUpdate",
    "Proposal",
    "Subcontractor",
    "SubcontractorActivity",
]
