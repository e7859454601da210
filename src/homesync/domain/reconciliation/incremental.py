"""Real-time updates applied between full passes.

This path only updates records that already exist. Anything it cannot place is
remembered in the shared :class:`SyncState` for the next full pass, which is the
only place where records are created.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING

from homesync.domain.clock import Clock, utcnow
from homesync.domain.model import (
    DeletionStrategy,
    EntityRemoved,
    EntityRenamed,
    EntitySource,
    StateUpdate,
)

from .conflicts import ConflictResolver
from .contracts import DEFAULT_DEVICE_ID, DeletionResult
from .deletions import DeletionDetector
from .hybrid import HybridEntityManager
from .state import SyncState

if TYPE_CHECKING:
    from homesync.domain.model import ExternalEvent, ExternalState, RegistryEntity
    from homesync.domain.ports import EntityRepository, RegistryUnitOfWorkFactory

log = getLogger(__name__)


@dataclass(slots=True)
class IncrementalUpdateHandler:
    unit_of_work_factory: RegistryUnitOfWorkFactory
    state: SyncState = field(default_factory=SyncState)
    clock: Clock = field(default=utcnow)
    device_id: str = DEFAULT_DEVICE_ID

    def handle(self, event: ExternalEvent) -> RegistryEntity | None:
        match event:
            case StateUpdate(new=new, previous=previous):
                return self.apply_update(new, previous)
            case EntityRenamed(old_external_id=old, new_external_id=new_id):
                return self.apply_rename(old, new_id)
            case EntityRemoved(external_id=external_id):
                return self.apply_deletion(external_id)

    def apply_update(
        self, new: ExternalState, previous: ExternalState | None = None
    ) -> RegistryEntity | None:
        """Apply one pushed state; returns the updated record or ``None``."""

        external_id = new.external_id
        if not external_id:
            log.warning("Ignoring incremental update without an external identifier")
            return None
        previous_id = previous.external_id if previous is not None else None
        try:
            with self.unit_of_work_factory() as uow:
                entities = uow.repositories.entities
                resolver = self._resolver(entities)

                entity = entities.get_by_external_id(external_id)
                if entity is None and previous_id and previous_id != external_id:
                    entity = entities.get_by_external_id(previous_id)
                if entity is None:
                    self._defer(entities, external_id)
                    return None

                if entity.external_id != external_id:
                    log.info("Renaming %s to %s", entity.external_id, external_id)
                    resolver.link_identity(entity, external_id)
                elif entity.entity_id != external_id:
                    if entities.get_by_entity_id(external_id) is None:
                        resolver.link_identity(entity, external_id)
                if entity.domain != new.domain:
                    entity.domain = new.domain

                entity.apply_state(new)
                entities.save(entity)
                uow.commit()
                return entity
        except Exception:  # noqa: BLE001
            log.exception("Incremental update for %s failed", external_id)
            return None

    def apply_rename(self, old_external_id: str, new_external_id: str) -> RegistryEntity | None:
        try:
            with self.unit_of_work_factory() as uow:
                entities = uow.repositories.entities
                entity = entities.get_by_external_id(old_external_id)
                if entity is None:
                    self._defer(entities, new_external_id)
                    return None
                self._resolver(entities).link_identity(entity, new_external_id)
                entities.save(entity)
                uow.commit()
                log.info("Renamed %s to %s", old_external_id, new_external_id)
                return entity
        except Exception:  # noqa: BLE001
            log.exception("Rename of %s to %s failed", old_external_id, new_external_id)
            return None

    def apply_deletion(self, external_id: str) -> RegistryEntity | None:
        """Soft-delete the record linked to ``external_id``, as a full pass would."""

        try:
            with self.unit_of_work_factory() as uow:
                entities = uow.repositories.entities
                entity = entities.get_by_external_id(external_id)
                if entity is None:
                    log.debug("Deletion of unknown %s ignored", external_id)
                    return None
                detector = DeletionDetector(entities, self.clock)
                detector.handle(entity, DeletionStrategy.SOFT, DeletionResult())
                uow.commit()
                return entity
        except Exception:  # noqa: BLE001
            log.exception("Incremental deletion of %s failed", external_id)
            return None

    def _resolver(self, entities: EntityRepository) -> ConflictResolver:
        return ConflictResolver(entities, HybridEntityManager(entities), self.device_id)

    def _defer(self, entities: EntityRepository, external_id: str) -> None:
        collision = entities.get_by_entity_id(external_id)
        if collision is not None and collision.source is EntitySource.INTERNAL:
            self.state.defer_merge_candidate(external_id)
            log.warning(
                "%s matches internal entity %s; merge deferred to next full sync",
                external_id,
                collision.entity_id,
            )
        else:
            self.state.defer_unseen(external_id)
            log.warning("%s not in registry; awaiting full sync", external_id)
