"""Ports for persisting registry entities."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

from homesync.domain.model import EntitySource, RegistryEntity

if TYPE_CHECKING:
    from collections.abc import Collection
    from uuid import UUID


@runtime_checkable
class Repository[TEntity](Protocol):
    """Minimal repository contract for a persistent aggregate store."""

    def add(self, entity: TEntity) -> None: ...


@runtime_checkable
class EntityRepository(Repository[RegistryEntity], Protocol):
    """Registry store contract; every call is atomic for a single record.

    ``add`` and ``save`` verify the entity's invariants and the registry-wide
    uniqueness of ``entity_id``/``external_id`` and raise ``ConstraintViolation``
    instead of overwriting another record.
    """

    def get(self, entity_uuid: UUID) -> RegistryEntity | None: ...

    def get_by_external_id(self, external_id: str) -> RegistryEntity | None: ...

    def get_by_entity_id(self, entity_id: str) -> RegistryEntity | None: ...

    def list_by_source_and_domain(
        self,
        *,
        sources: Collection[EntitySource] | None = None,
        domain: str | None = None,
    ) -> list[RegistryEntity]: ...

    def save(self, entity: RegistryEntity) -> None: ...

    def remove(self, entity: RegistryEntity) -> None: ...
