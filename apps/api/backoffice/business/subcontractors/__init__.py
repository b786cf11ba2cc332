from backoffice.business.subcontractors.api import router
from backoffice.business.subcontractors.models import Subcontractor, SubcontractorActivity
from backoffice.business.subcontractors.schemas import (
    SubcontractorActivityRead,
    SubcontractorCreate,
    SubcontractorPatch,
    SubcontractorRead,
)
from backoffice.business.subcontractors.service import SubcontractorService, subcontractor_service

__all__ = [
    "router",
    "Subcontractor",
    "SubcontractorActivity",
    "SubcontractorActivityRead",
    "SubcontractorCreate",
    "SubcontractorPatch",
    "SubcontractorRead",
    "SubcontractorService",
    "subcontractor_service",
]
