"""Operator-requested source transitions."""

from __future__ import annotations

from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING, Final

from homesync.domain.errors import (
    ConstraintViolation,
    NotFoundError,
    RegistryError,
    ValidationError,
)
from homesync.domain.model import EntitySource, is_valid_external_id

from .contracts import MigrationResult

if TYPE_CHECKING:
    from uuid import UUID

    from homesync.domain.model import RegistryEntity
    from homesync.domain.ports import EntityRepository

log = getLogger(__name__)

ALLOWED_TRANSITIONS: Final[dict[EntitySource, frozenset[EntitySource]]] = {
    EntitySource.INTERNAL: frozenset({EntitySource.EXTERNAL, EntitySource.HYBRID}),
    EntitySource.EXTERNAL: frozenset({EntitySource.INTERNAL, EntitySource.HYBRID}),
    EntitySource.HYBRID: frozenset({EntitySource.INTERNAL, EntitySource.EXTERNAL}),
}


def can_transition(current: EntitySource, target: EntitySource) -> bool:
    return current is target or target in ALLOWED_TRANSITIONS[current]


@dataclass(slots=True)
class SourceMigrationService:
    entities: EntityRepository

    def migrate(
        self,
        entity_uuid: UUID,
        target: EntitySource,
        external_id: str | None = None,
    ) -> MigrationResult:
        """Validate and apply a source transition. Nothing changes on failure."""

        try:
            entity = self._get(entity_uuid)
            if entity.source is target:
                return MigrationResult(
                    success=True, message=f"Entity already {target}", entity=entity
                )
            resolved_external_id = self._validate(entity, target, external_id)
            previous = entity.source
            entity.change_source(target, external_id=resolved_external_id)
            self.entities.save(entity)
        except RegistryError as exc:
            log.warning("Source migration of %s rejected: %s", entity_uuid, exc.message)
            return MigrationResult(success=False, message=exc.message, error=exc)

        log.info("Migrated %s from %s to %s", entity.entity_id, previous, target)
        return MigrationResult(
            success=True,
            message=f"Migrated {entity.entity_id} from {previous} to {target}",
            entity=entity,
        )

    def _get(self, entity_uuid: UUID) -> RegistryEntity:
        entity = self.entities.get(entity_uuid)
        if entity is None:
            raise NotFoundError(f"No entity with id {entity_uuid}")
        return entity

    def _validate(
        self,
        entity: RegistryEntity,
        target: EntitySource,
        external_id: str | None,
    ) -> str | None:
        if not can_transition(entity.source, target):
            raise ValidationError(
                f"Cannot migrate from {entity.source} to {target}", entity_id=entity.entity_id
            )

        if target is EntitySource.INTERNAL:
            if external_id is not None:
                raise ValidationError(
                    "Internal entities cannot carry an external id",
                    entity_id=entity.entity_id,
                    external_id=external_id,
                )
            return None

        # keep the current link when moving between external and hybrid
        candidate = external_id or entity.external_id
        if candidate is None:
            raise ValidationError(
                f"An external id is required for {target} entities", entity_id=entity.entity_id
            )
        if not is_valid_external_id(candidate):
            raise ValidationError(
                f"Malformed external id {candidate!r}",
                entity_id=entity.entity_id,
                external_id=candidate,
            )
        holder = self.entities.get_by_external_id(candidate)
        if holder is not None and holder.id != entity.id:
            raise ConstraintViolation(
                f"External id {candidate!r} already linked to {holder.entity_id!r}",
                entity_id=entity.entity_id,
                external_id=candidate,
            )
        return candidate
