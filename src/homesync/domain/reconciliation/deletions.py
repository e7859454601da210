"""Handling of registry records whose external counterpart disappeared."""

from __future__ import annotations

from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING

from homesync.domain.clock import Clock, utcnow
from homesync.domain.errors import NotFoundError
from homesync.domain.model import UNAVAILABLE, DeletionStrategy, EntitySource

from .contracts import DeletionResult

if TYPE_CHECKING:
    from collections.abc import Collection
    from uuid import UUID

    from homesync.domain.model import RegistryEntity
    from homesync.domain.ports import EntityRepository

log = getLogger(__name__)

LINKED_SOURCES = (EntitySource.EXTERNAL, EntitySource.HYBRID)


@dataclass(slots=True)
class DeletionDetector:
    entities: EntityRepository
    clock: Clock = field(default=utcnow)

    def find_missing(self, snapshot_ids: Collection[str]) -> list[RegistryEntity]:
        """Linked records whose external id is absent from ``snapshot_ids``."""

        return [
            entity
            for entity in self.entities.list_by_source_and_domain(sources=LINKED_SOURCES)
            if entity.external_id not in snapshot_ids
        ]

    def handle(
        self,
        entity: RegistryEntity,
        strategy: DeletionStrategy,
        result: DeletionResult,
    ) -> None:
        match strategy:
            case DeletionStrategy.PRESERVE:
                return
            case DeletionStrategy.HARD:
                self.entities.remove(entity)
                result.deleted += 1
                log.info("Deleted %s (%s) from registry", entity.entity_id, entity.external_id)
            case DeletionStrategy.SOFT:
                if entity.is_soft_deleted:
                    log.debug("%s is already marked unavailable", entity.entity_id)
                    return
                external_id = entity.external_id
                demoted = entity.mark_deleted(self.clock())
                self.entities.save(entity)
                result.marked_unavailable += 1
                if demoted:
                    result.converted_to_internal += 1
                log.info(
                    "Marked %s unavailable (%s gone from source%s)",
                    entity.entity_id,
                    external_id,
                    ", demoted to internal" if demoted else "",
                )

    def cleanup(self) -> int:
        """Hard-delete soft-deleted external records that are still unavailable."""

        removed = 0
        for entity in self.entities.list_by_source_and_domain(sources=(EntitySource.EXTERNAL,)):
            if entity.state == UNAVAILABLE and entity.is_soft_deleted:
                self.entities.remove(entity)
                removed += 1
        if removed:
            log.info("Cleaned up %d soft-deleted entities", removed)
        return removed

    def restore(self, entity_uuid: UUID) -> RegistryEntity:
        entity = self.entities.get(entity_uuid)
        if entity is None:
            raise NotFoundError(f"No entity with id {entity_uuid}")
        entity.clear_deletion_markers()
        self.entities.save(entity)
        log.info("Restored %s", entity.entity_id)
        return entity
