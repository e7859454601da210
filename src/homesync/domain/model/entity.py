"""Registry entity: the locally owned record of one device capability."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from homesync.domain.clock import utcnow
from homesync.domain.errors import ValidationError

from .attributes import (
    DELETED_AT,
    DELETED_FROM_SOURCE,
    has_deletion_marker,
    strip_deletion_markers,
)
from .enums import EntitySource
from .identifiers import extract_domain

if TYPE_CHECKING:
    from datetime import datetime

    from .attributes import Attributes
    from .external import ExternalState

UNAVAILABLE = "unavailable"


def new_id() -> UUID:
    return uuid4()


@dataclass(eq=False, kw_only=True)
class RegistryEntity:
    """A controllable/observable device capability tracked by the registry.

    ``external_id`` is set exactly when ``source`` is external or hybrid, and the
    ``domain`` then follows the identifier's prefix. Mutations go through the methods
    below; repositories call :meth:`check_invariants` before persisting.
    """

    entity_id: str
    device_id: str
    name: str
    domain: str
    source: EntitySource = EntitySource.INTERNAL
    external_id: str | None = None
    icon: str | None = None
    state: str = "unknown"
    attributes: Attributes = field(default_factory=dict)
    last_changed: datetime | None = None
    last_updated: datetime | None = None
    created_at: datetime = field(default_factory=utcnow)
    id: UUID = field(default_factory=new_id)

    @classmethod
    def from_external(cls, external: ExternalState, *, device_id: str) -> RegistryEntity:
        if external.external_id is None:
            raise ValidationError("External record has no identifier")
        entity = cls(
            entity_id=external.external_id,
            device_id=device_id,
            name=external.display_name,
            domain=external.domain,
            source=EntitySource.EXTERNAL,
            external_id=external.external_id,
            icon=external.icon,
        )
        entity.apply_state(external)
        return entity

    @property
    def is_soft_deleted(self) -> bool:
        return has_deletion_marker(self.attributes)

    def apply_state(self, external: ExternalState) -> None:
        # attributes are replaced wholesale, which also drops any deletion markers
        self.state = external.state
        self.attributes = dict(external.attributes)
        self.last_changed = external.last_changed
        self.last_updated = external.last_updated

    def relink(self, external_id: str) -> None:
        """Point local id, external id and domain at ``external_id``."""

        self.entity_id = external_id
        self.external_id = external_id
        self.domain = extract_domain(external_id)

    def promote_to_hybrid(self, external: ExternalState) -> None:
        if external.external_id is None:
            raise ValidationError(
                "Cannot merge a record without an identifier", entity_id=self.entity_id
            )
        self.source = EntitySource.HYBRID
        self.external_id = external.external_id
        self.domain = external.domain
        self.apply_state(external)

    def mark_deleted(self, at: datetime) -> bool:
        """Soft delete; returns ``True`` when a hybrid record was demoted to internal."""

        self.state = UNAVAILABLE
        self.attributes = {
            **self.attributes,
            DELETED_FROM_SOURCE: True,
            DELETED_AT: at.isoformat(),
        }
        if self.source is EntitySource.HYBRID:
            self.source = EntitySource.INTERNAL
            self.external_id = None
            return True
        return False

    def clear_deletion_markers(self) -> None:
        self.attributes = strip_deletion_markers(self.attributes)

    def change_source(self, target: EntitySource, *, external_id: str | None) -> None:
        self.source = target
        self.external_id = external_id
        if external_id is not None:
            self.domain = extract_domain(external_id)

    def check_invariants(self) -> None:
        if self.source.is_linked and self.external_id is None:
            raise ValidationError(
                f"{self.source} record must carry an external id", entity_id=self.entity_id
            )
        if not self.source.is_linked and self.external_id is not None:
            raise ValidationError(
                "internal record must not carry an external id",
                entity_id=self.entity_id,
                external_id=self.external_id,
            )
        if self.external_id is not None and self.domain != extract_domain(self.external_id):
            raise ValidationError(
                f"domain {self.domain!r} does not match {self.external_id!r}",
                entity_id=self.entity_id,
                external_id=self.external_id,
            )
