"""Repository implementations backed by SQLAlchemy sessions."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError

from homesync.adapters.sqlalchemy.mappings import entity_table
from homesync.domain.errors import ConstraintViolation
from homesync.domain.model import RegistryEntity

if TYPE_CHECKING:
    import uuid
    from collections.abc import Collection

    from sqlalchemy.orm import Session

    from homesync.domain.model import EntitySource


class SqlAlchemyEntityRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, entity: RegistryEntity) -> None:
        entity.check_invariants()
        self._ensure_unique(entity)
        self.session.add(entity)
        self._flush(entity)

    def get(self, entity_uuid: uuid.UUID) -> RegistryEntity | None:
        return self.session.get(RegistryEntity, entity_uuid)

    def get_by_external_id(self, external_id: str) -> RegistryEntity | None:
        stmt = select(RegistryEntity).where(entity_table.c.external_id == external_id)
        return self.session.execute(stmt).scalar_one_or_none()

    def get_by_entity_id(self, entity_id: str) -> RegistryEntity | None:
        stmt = select(RegistryEntity).where(entity_table.c.entity_id == entity_id)
        return self.session.execute(stmt).scalar_one_or_none()

    def list_by_source_and_domain(
        self,
        *,
        sources: Collection[EntitySource] | None = None,
        domain: str | None = None,
    ) -> list[RegistryEntity]:
        stmt = select(RegistryEntity).order_by(entity_table.c.entity_id)
        if sources is not None:
            stmt = stmt.where(entity_table.c.source.in_(list(sources)))
        if domain is not None:
            stmt = stmt.where(entity_table.c.domain == domain)
        return list(self.session.execute(stmt).scalars())

    def save(self, entity: RegistryEntity) -> None:
        entity.check_invariants()
        self._ensure_unique(entity)
        self._flush(entity)

    def remove(self, entity: RegistryEntity) -> None:
        self.session.delete(entity)
        self._flush(entity)

    def _ensure_unique(self, entity: RegistryEntity) -> None:
        conditions = [entity_table.c.entity_id == entity.entity_id]
        if entity.external_id is not None:
            conditions.append(entity_table.c.external_id == entity.external_id)
        stmt = (
            select(entity_table.c.entity_id, entity_table.c.external_id)
            .where(or_(*conditions))
            .where(entity_table.c.id != entity.id)
        )
        # the mutated entity must not be flushed before the check
        with self.session.no_autoflush:
            holder = self.session.execute(stmt).first()
        if holder is not None:
            raise ConstraintViolation(
                f"Entity {entity.entity_id!r} would duplicate {holder.entity_id!r}",
                entity_id=entity.entity_id,
                external_id=entity.external_id,
            )

    def _flush(self, entity: RegistryEntity) -> None:
        try:
            self.session.flush()
        except IntegrityError as exc:
            raise ConstraintViolation(
                f"Integrity error while writing {entity.entity_id!r}: {exc.orig}",
                entity_id=entity.entity_id,
                external_id=entity.external_id,
            ) from exc
