"""Classification and resolution of identity conflicts.

An external record is compared with the registry record it is linked to (same
external id) or collides with (same local entity id). Conflicts are checked in
precedence order:

1. same external id, different local entity id
2. same local entity id, different external id
3. domain changed
4. name changed
5. an internal record matches the external one (hybrid merge candidate)

Resolution never raises for per-record problems; failures come back as a
:class:`Resolution` with ``action=ERROR``.
"""

from __future__ import annotations

from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

from homesync.domain.errors import ConflictError, RegistryError, ValidationError
from homesync.domain.model import (
    ConflictType,
    EntitySource,
    RegistryEntity,
    ResolutionAction,
)
from homesync.domain.model.identifiers import disambiguated

from .contracts import DEFAULT_DEVICE_ID, Resolution

if TYPE_CHECKING:
    from homesync.domain.model import ExternalState
    from homesync.domain.ports import EntityRepository

    from .hybrid import HybridEntityManager

log = getLogger(__name__)


@dataclass(slots=True)
class ConflictResolver:
    entities: EntityRepository
    hybrids: HybridEntityManager
    device_id: str = DEFAULT_DEVICE_ID

    def detect(self, external: ExternalState, entity: RegistryEntity) -> ConflictType | None:
        external_id = external.external_id
        if entity.external_id == external_id and entity.entity_id != external_id:
            return ConflictType.EXTERNAL_ID_MISMATCH
        if entity.entity_id == external_id and entity.external_id != external_id:
            return ConflictType.ENTITY_ID_COLLISION
        if entity.domain != external.domain:
            return ConflictType.DOMAIN_CHANGED
        if entity.name != external.display_name:
            return ConflictType.NAME_CHANGED
        if entity.source is EntitySource.INTERNAL and self.hybrids.matches(entity, external):
            return ConflictType.INTERNAL_MATCHES_EXTERNAL
        return None

    def predict(self, external: ExternalState, entity: RegistryEntity) -> ResolutionAction:
        """Action :meth:`resolve` would take, without touching the registry."""

        match self.detect(external, entity):
            case ConflictType.EXTERNAL_ID_MISMATCH if entity.source is EntitySource.INTERNAL:
                return ResolutionAction.CREATE
            case ConflictType.ENTITY_ID_COLLISION:
                if entity.source is not EntitySource.INTERNAL:
                    return ResolutionAction.ERROR
                # a collision means the local id equals the external id
                taken = self.entities.get_by_entity_id(disambiguated(entity.entity_id))
                return ResolutionAction.ERROR if taken is not None else ResolutionAction.CREATE
            case ConflictType.INTERNAL_MATCHES_EXTERNAL:
                return ResolutionAction.MERGE
            case _:
                return ResolutionAction.UPDATE

    def resolve(self, external: ExternalState, entity: RegistryEntity) -> Resolution:
        conflict = self.detect(external, entity)
        try:
            external_id = external.external_id
            if external_id is None:
                raise ValidationError("External record has no identifier")
            match conflict:
                case None:
                    return self._update(external, entity)
                case ConflictType.EXTERNAL_ID_MISMATCH:
                    return self._resolve_external_id_mismatch(external, external_id, entity)
                case ConflictType.ENTITY_ID_COLLISION:
                    return self._resolve_entity_id_collision(external, external_id, entity)
                case ConflictType.DOMAIN_CHANGED:
                    previous = entity.domain
                    entity.domain = external.domain
                    return self._update(
                        external,
                        entity,
                        conflict=conflict,
                        message=f"Domain changed from {previous!r} to {external.domain!r}",
                    )
                case ConflictType.NAME_CHANGED:
                    previous = entity.name
                    entity.name = external.display_name
                    return self._update(
                        external,
                        entity,
                        conflict=conflict,
                        message=f"Name changed from {previous!r} to {entity.name!r}",
                    )
                case ConflictType.INTERNAL_MATCHES_EXTERNAL:
                    merged = self.hybrids.merge(entity, external)
                    return Resolution(
                        action=ResolutionAction.MERGE,
                        entity=merged,
                        conflict_type=conflict,
                        message=f"Merged internal entity {merged.entity_id} as hybrid",
                    )
        except RegistryError as exc:
            log.warning("Could not resolve %s: %s", external.external_id, exc.message)
            return Resolution(
                action=ResolutionAction.ERROR,
                entity=entity,
                conflict_type=conflict,
                message=exc.message,
                error=exc,
            )

    def link_identity(self, entity: RegistryEntity, external_id: str) -> None:
        """Rewrite local id, external id and domain, refusing to take another record's ids."""

        for holder in (
            self.entities.get_by_external_id(external_id),
            self.entities.get_by_entity_id(external_id),
        ):
            if holder is not None and holder.id != entity.id:
                raise ConflictError(
                    f"{external_id!r} is already held by entity {holder.entity_id!r}",
                    external_id=external_id,
                    entity_id=entity.entity_id,
                )
        entity.relink(external_id)

    def _update(
        self,
        external: ExternalState,
        entity: RegistryEntity,
        *,
        conflict: ConflictType | None = None,
        message: str | None = None,
    ) -> Resolution:
        entity.apply_state(external)
        self.entities.save(entity)
        return Resolution(
            action=ResolutionAction.UPDATE,
            entity=entity,
            conflict_type=conflict,
            message=message or f"Updated state of {entity.entity_id}",
        )

    def _resolve_external_id_mismatch(
        self, external: ExternalState, external_id: str, entity: RegistryEntity
    ) -> Resolution:
        conflict = ConflictType.EXTERNAL_ID_MISMATCH

        if entity.source is EntitySource.INTERNAL:
            # never overwrite a locally owned record; add an external one next to it
            created = self._create(external, entity_id=external_id)
            log.warning(
                "Internal entity %s claims %s; created %s for review",
                entity.entity_id,
                external_id,
                created.entity_id,
            )
            return Resolution(
                action=ResolutionAction.CREATE,
                entity=created,
                conflict_type=conflict,
                requires_review=True,
                message=f"Internal entity {entity.entity_id} left untouched; review required",
            )

        holder = self.entities.get_by_entity_id(external_id)
        if holder is not None and holder.id != entity.id:
            # the plain id belongs to another record, e.g. a disambiguated pair
            return self._update(
                external,
                entity,
                conflict=conflict,
                message=(
                    f"Kept entity id {entity.entity_id}; {external_id} is held by another record"
                ),
            )

        previous = entity.entity_id
        self.link_identity(entity, external_id)
        return self._update(
            external,
            entity,
            conflict=conflict,
            message=f"Entity id corrected from {previous} to {external_id}",
        )

    def _resolve_entity_id_collision(
        self, external: ExternalState, external_id: str, entity: RegistryEntity
    ) -> Resolution:
        conflict = ConflictType.ENTITY_ID_COLLISION

        if entity.source is not EntitySource.INTERNAL:
            raise ConflictError(
                f"Entity id {external_id!r} is already linked to {entity.external_id!r}",
                external_id=external_id,
                entity_id=entity.entity_id,
            )

        alternative = disambiguated(external_id)
        if self.entities.get_by_entity_id(alternative) is not None:
            raise ConflictError(
                f"Entity id {external_id!r} and its alternative {alternative!r} are both taken",
                external_id=external_id,
                entity_id=entity.entity_id,
            )
        created = self._create(external, entity_id=alternative)
        log.info("Entity id %s taken by internal record; created %s", external_id, alternative)
        return Resolution(
            action=ResolutionAction.CREATE,
            entity=created,
            conflict_type=conflict,
            message=f"Created {alternative} next to internal entity {entity.entity_id}",
        )

    def _create(self, external: ExternalState, *, entity_id: str) -> RegistryEntity:
        created = RegistryEntity.from_external(external, device_id=self.device_id)
        created.entity_id = entity_id
        self.entities.add(created)
        return created
