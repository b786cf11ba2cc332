from __future__ import annotations

import uuid
from dataclasses import dataclass

from sqlalchemy.orm import Session

from backoffice import audit, events
from backoffice.business.subcontractors.models import Subcontractor, SubcontractorActivity, utcnow
from backoffice.business.subcontractors.repository import SubcontractorActivityRepository, SubcontractorRepository
from backoffice.business.subcontractors.schemas import (
    SubcontractorActivityRead,
    SubcontractorCreate,
    SubcontractorPatch,
    SubcontractorRead,
)
from backoffice.lifecycle.machines import SUBCONTRACTOR_MACHINE
from backoffice.platform.security.context import ActorUser

_REQUIRED_FIELDS = {"company_name", "contact_name", "email", "specialties", "w9_submitted", "status", "total_projects"}
_STATUS_ACTIVITY = {
    "approved": ("approved", "Application approved"),
    "rejected": ("rejected", "Application rejected"),
}


@dataclass(slots=True)
class SubcontractorService:
    subcontractors: SubcontractorRepository = SubcontractorRepository()
    activities: SubcontractorActivityRepository = SubcontractorActivityRepository()
    entity_type: str = "business.subcontractor"

    def create_subcontractor(
        self,
        session: Session,
        actor_user: ActorUser,
        dto: SubcontractorCreate,
    ) -> SubcontractorRead:
        payload = dto.model_dump()
        payload["email"] = str(dto.email)
        subcontractor = Subcontractor(**payload, status=SUBCONTRACTOR_MACHINE.initial)
        self.subcontractors.add(session, subcontractor)
        self._log_activity(session, actor_user, subcontractor.id, "created", "Application received")
        self.subcontractors.commit(session, "business.subcontractor.create")
        session.refresh(subcontractor)

        created = SubcontractorRead.model_validate(subcontractor)
        audit.record(
            actor_user_id=actor_user.user_id,
            entity_type=self.entity_type,
            entity_id=str(subcontractor.id),
            action="create",
            before=None,
            after=created.model_dump(mode="json"),
            correlation_id=actor_user.correlation_id,
        )
        events.publish(
            events.build_envelope(
                "subcontractor.created",
                actor_user.user_id,
                {"subcontractor_id": str(subcontractor.id)},
            )
        )
        return created

    def list_subcontractors(
        self,
        session: Session,
        actor_user: ActorUser,
        status_filter: str | None,
        specialty: str | None,
        offset: int = 0,
        limit: int = 50,
    ) -> list[SubcontractorRead]:
        rows = self.subcontractors.list(
            session,
            filters={"status": status_filter},
            order_by=Subcontractor.created_at.desc(),
        )
        # specialties is a JSON list, matched here to stay portable across backends
        if specialty:
            wanted = specialty.strip().lower()
            rows = [row for row in rows if any(item.lower() == wanted for item in row.specialties or [])]
        return [SubcontractorRead.model_validate(row) for row in rows[offset : offset + limit]]

    def get_subcontractor(self, session: Session, actor_user: ActorUser, subcontractor_id: uuid.UUID) -> SubcontractorRead:
        return SubcontractorRead.model_validate(self.subcontractors.require(session, subcontractor_id))

    def update_subcontractor(
        self,
        session: Session,
        actor_user: ActorUser,
        subcontractor_id: uuid.UUID,
        dto: SubcontractorPatch,
    ) -> SubcontractorRead:
        subcontractor = self.subcontractors.require(session, subcontractor_id)
        payload = {
            key: value
            for key, value in dto.model_dump(exclude_unset=True, exclude={"row_version"}).items()
            if value is not None or key not in _REQUIRED_FIELDS
        }
        if "email" in payload:
            payload["email"] = str(payload["email"])

        previous_status = subcontractor.status
        target_status = payload.get("status", previous_status)
        SUBCONTRACTOR_MACHINE.ensure(previous_status, target_status)
        status_changed = target_status != previous_status
        if status_changed and target_status == "approved" and subcontractor.approved_at is None:
            payload["approved_at"] = utcnow()
            payload["approved_by"] = actor_user.user_id
        if not payload:
            return SubcontractorRead.model_validate(subcontractor)

        before = SubcontractorRead.model_validate(subcontractor).model_dump(mode="json")
        subcontractor = self.subcontractors.update_versioned(session, subcontractor, payload, dto.row_version)
        if status_changed:
            activity_type, description = _STATUS_ACTIVITY.get(
                target_status,
                ("status_change", f"Status changed from {previous_status} to {target_status}"),
            )
            self._log_activity(session, actor_user, subcontractor.id, activity_type, description)
        if "admin_notes" in payload:
            self._log_activity(session, actor_user, subcontractor.id, "note_added", "Admin notes updated")
        self.subcontractors.commit(session, "business.subcontractor.update")
        session.refresh(subcontractor)

        updated = SubcontractorRead.model_validate(subcontractor)
        audit.record(
            actor_user_id=actor_user.user_id,
            entity_type=self.entity_type,
            entity_id=str(subcontractor.id),
            action="update",
            before=before,
            after=updated.model_dump(mode="json"),
            correlation_id=actor_user.correlation_id,
        )
        if status_changed:
            SUBCONTRACTOR_MACHINE.record(previous_status, target_status)
            events.publish(
                events.build_envelope(
                    "subcontractor.status_changed",
                    actor_user.user_id,
                    {"subcontractor_id": str(subcontractor.id), "from": previous_status, "to": target_status},
                )
            )
        return updated

    def delete_subcontractor(self, session: Session, actor_user: ActorUser, subcontractor_id: uuid.UUID) -> None:
        subcontractor = self.subcontractors.require(session, subcontractor_id)
        SUBCONTRACTOR_MACHINE.ensure_deletable(subcontractor.status)
        before = SubcontractorRead.model_validate(subcontractor).model_dump(mode="json")
        self.subcontractors.delete(session, subcontractor)
        self.subcontractors.commit(session, "business.subcontractor.delete")

        audit.record(
            actor_user_id=actor_user.user_id,
            entity_type=self.entity_type,
            entity_id=str(subcontractor_id),
            action="delete",
            before=before,
            after=None,
            correlation_id=actor_user.correlation_id,
        )
        events.publish(
            events.build_envelope(
                "subcontractor.deleted",
                actor_user.user_id,
                {"subcontractor_id": str(subcontractor_id)},
            )
        )

    def list_activities(
        self,
        session: Session,
        actor_user: ActorUser,
        subcontractor_id: uuid.UUID,
    ) -> list[SubcontractorActivityRead]:
        self.subcontractors.require(session, subcontractor_id)
        rows = self.activities.for_subcontractor(session, subcontractor_id)
        return [SubcontractorActivityRead.model_validate(row) for row in rows]

    def _log_activity(
        self,
        session: Session,
        actor_user: ActorUser,
        subcontractor_id: uuid.UUID,
        activity_type: str,
        description: str,
    ) -> SubcontractorActivity:
        activity = SubcontractorActivity(
            subcontractor_id=subcontractor_id,
            activity_type=activity_type,
            description=description,
            performed_by=actor_user.user_id,
        )
        return self.activities.add(session, activity)


subcontractor_service = SubcontractorService()
