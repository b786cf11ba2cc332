from __future__ import annotations

import uuid

from sqlalchemy.orm import Session

from backoffice.business.subcontractors.models import Subcontractor, SubcontractorActivity
from backoffice.platform.repository import EntityRepository


class SubcontractorRepository(EntityRepository[Subcontractor]):
    model = Subcontractor
    label = "subcontractor"
    resource = "business.subcontractor"


class SubcontractorActivityRepository(EntityRepository[SubcontractorActivity]):
    model = SubcontractorActivity
    label = "subcontractor activity"
    resource = "business.subcontractor_activity"

    def for_subcontractor(self, session: Session, subcontractor_id: uuid.UUID) -> list[SubcontractorActivity]:
        return self.list(
            session,
            filters={"subcontractor_id": subcontractor_id},
            order_by=SubcontractorActivity.created_at.desc(),
        )
