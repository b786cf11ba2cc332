from __future__ import annotations

import logging
import uuid
from typing import Any, Generic, NoReturn, TypeVar

from sqlalchemy import Select, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.sql import ColumnElement

from backoffice.core.database import Base
from backoffice.core.errors import ConflictError, NotFoundError, PersistenceError

ModelT = TypeVar("ModelT", bound=Base)

logger = logging.getLogger("backoffice.store")


class EntityRepository(Generic[ModelT]):
    """Durable storage and lookup for one entity type.

    Subclasses set ``model`` and a human label used in ``NotFoundError``
    messages. Storage failures are logged here with full detail and re-raised as
    ``PersistenceError`` so callers never see driver internals.
    """

    model: type[ModelT]
    label = "entity"
    resource = ""

    def get(self, session: Session, entity_id: uuid.UUID) -> ModelT | None:
        return session.get(self.model, entity_id)

    def require(self, session: Session, entity_id: uuid.UUID) -> ModelT:
        entity = self.get(session, entity_id)
        if entity is None:
            raise NotFoundError(self.label, entity_id)
        return entity

    def query(self, filters: dict[str, Any] | None = None) -> Select[tuple[ModelT]]:
        stmt = select(self.model)
        for column_name, value in (filters or {}).items():
            if value is None:
                continue
            stmt = stmt.where(getattr(self.model, column_name) == value)
        return stmt

    def list(
        self,
        session: Session,
        *,
        filters: dict[str, Any] | None = None,
        conditions: list[ColumnElement[bool]] | None = None,
        order_by: Any = None,
        offset: int = 0,
        limit: int | None = None,
    ) -> list[ModelT]:
        stmt = self.query(filters)
        for condition in conditions or []:
            stmt = stmt.where(condition)
        if order_by is not None:
            stmt = stmt.order_by(order_by)
        if offset:
            stmt = stmt.offset(offset)
        if limit is not None:
            stmt = stmt.limit(limit)
        return list(session.scalars(stmt).all())

    def count(self, session: Session, **filters: Any) -> int:
        stmt = select(func.count()).select_from(self.model)
        for column_name, value in filters.items():
            stmt = stmt.where(getattr(self.model, column_name) == value)
        return int(session.scalar(stmt) or 0)

    def add(self, session: Session, entity: ModelT) -> ModelT:
        session.add(entity)
        self.flush(session, f"{self.resource}.create")
        return entity

    def delete(self, session: Session, entity: ModelT) -> None:
        session.delete(entity)
        self.flush(session, f"{self.resource}.delete")

    def update_versioned(
        self,
        session: Session,
        entity: ModelT,
        values: dict[str, Any],
        expected_row_version: int | None = None,
    ) -> ModelT:
        """Apply ``values`` only if the stored row version still matches.

        ``expected_row_version`` defaults to the version loaded into ``entity``
        in this session, so interleaved writes are detected either way.
        """
        model: Any = self.model
        expected = expected_row_version if expected_row_version is not None else entity.row_version  # type: ignore[attr-defined]
        try:
            result = session.execute(
                update(model)
                .where(model.id == entity.id, model.row_version == expected)  # type: ignore[attr-defined]
                .values(**values, row_version=model.row_version + 1)
                .execution_options(synchronize_session=False)
            )
        except SQLAlchemyError as exc:
            self._fail(session, f"{self.resource}.update", exc)
        if result.rowcount == 0:
            session.rollback()
            raise ConflictError("row_version conflict", details={"expected_row_version": expected})
        session.refresh(entity)
        return entity

    def flush(self, session: Session, operation: str) -> None:
        try:
            session.flush()
        except SQLAlchemyError as exc:
            self._fail(session, operation, exc)

    def commit(self, session: Session, operation: str) -> None:
        try:
            session.commit()
        except SQLAlchemyError as exc:
            self._fail(session, operation, exc)

    @staticmethod
    def _fail(session: Session, operation: str, exc: SQLAlchemyError) -> NoReturn:
        session.rollback()
        logger.exception("store.operation_failed", extra={"operation": operation, "error": str(exc)})
        raise PersistenceError(operation) from exc
