from __future__ import annotations

from sqlalchemy.orm import Session

from backoffice.business.finance.numbering import next_document_number
from backoffice.business.proposals.models import Proposal
from backoffice.platform.repository import EntityRepository

PROPOSAL_NUMBER_PREFIX = "PROP"


class ProposalRepository(EntityRepository[Proposal]):
    model = Proposal
    label = "proposal"
    resource = "business.proposal"

    def next_number(self, session: Session) -> str:
        return next_document_number(session, Proposal.proposal_number, PROPOSAL_NUMBER_PREFIX)
