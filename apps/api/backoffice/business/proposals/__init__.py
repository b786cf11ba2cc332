from backoffice.business.proposals.api import router
from backoffice.business.proposals.models import Proposal
from backoffice.business.proposals.schemas import (
    ProjectConversionRead,
    ProposalCreate,
    ProposalLinkCustomer,
    ProposalPatch,
    ProposalRead,
    ProposalStatusChange,
)
from backoffice.business.proposals.service import ProposalService, proposal_service

__all__ = [
    "router",
    "Proposal",
    "ProjectConversionRead",
    "ProposalCreate",
    "ProposalLinkCustomer",
    "ProposalPatch",
    "ProposalRead",
    "ProposalStatusChange",
    "ProposalService",
    "proposal_service",
]
