"""Merging locally created records with matching external ones."""

from __future__ import annotations

from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

from homesync.domain.errors import ConstraintViolation, ValidationError
from homesync.domain.model import EntitySource, display_name_from_id, object_id

from .matching import fuzzy_match

if TYPE_CHECKING:
    from homesync.domain.model import ExternalState, RegistryEntity
    from homesync.domain.ports import EntityRepository

log = getLogger(__name__)


def is_default_name(entity: RegistryEntity) -> bool:
    """Whether ``entity.name`` looks generated rather than chosen by a user.

    There is no explicit "customized" flag, so a user who happened to pick the
    generated name loses it on merge. A kept custom name is also not protected
    afterwards: once a later pass relinks the hybrid to the external id, any name
    that differs from the external display name is overwritten as a name change.
    """

    name = entity.name.strip()
    if not name:
        return True
    generated = display_name_from_id(entity.entity_id)
    return name in {
        generated,
        f"{generated} Power",
        f"{object_id(entity.entity_id)} Power",
    }


@dataclass(slots=True)
class HybridEntityManager:
    entities: EntityRepository

    def matches(self, entity: RegistryEntity, external: ExternalState) -> bool:
        if entity.domain != external.domain:
            return False
        return fuzzy_match(entity.name, external.display_name) or fuzzy_match(
            object_id(entity.entity_id), external.object_id
        )

    def find_candidates(self, external: ExternalState) -> list[RegistryEntity]:
        candidates = self.entities.list_by_source_and_domain(
            sources=(EntitySource.INTERNAL,), domain=external.domain
        )
        return [entity for entity in candidates if self.matches(entity, external)]

    def merge(self, entity: RegistryEntity, external: ExternalState) -> RegistryEntity:
        """Promote ``entity`` to hybrid, adopting identity and state from ``external``."""

        external_id = external.external_id
        if external_id is None:
            raise ValidationError("External record has no identifier", entity_id=entity.entity_id)
        holder = self.entities.get_by_external_id(external_id)
        if holder is not None and holder.id != entity.id:
            raise ConstraintViolation(
                f"External id {external_id!r} already linked to {holder.entity_id!r}",
                external_id=external_id,
                entity_id=entity.entity_id,
            )

        keep_name = not is_default_name(entity)
        keep_icon = entity.icon is not None
        entity.promote_to_hybrid(external)
        if not keep_name:
            entity.name = external.display_name
        if not keep_icon:
            entity.icon = external.icon
        self.entities.save(entity)

        log.info(
            "Merged internal entity %s with %s (name %s)",
            entity.entity_id,
            external_id,
            "kept" if keep_name else "replaced",
        )
        return entity
