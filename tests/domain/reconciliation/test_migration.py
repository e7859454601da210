from __future__ import annotations

import uuid

import pytest

from homesync.domain.errors import ConstraintViolation, NotFoundError, ValidationError
from homesync.domain.model import EntitySource, RegistryEntity
from homesync.domain.reconciliation import SourceMigrationService, can_transition
from tests.support.registry import InMemoryEntityRepository, make_entity


def _service(*entities: RegistryEntity) -> SourceMigrationService:
    return SourceMigrationService(InMemoryEntityRepository({e.id: e for e in entities}))


@pytest.mark.parametrize("current", list(EntitySource))
@pytest.mark.parametrize("target", list(EntitySource))
def test_every_transition_is_allowed(current: EntitySource, target: EntitySource) -> None:
    assert can_transition(current, target)


def test_internal_to_hybrid_links_external_id() -> None:
    entity = make_entity("switch.desk_local", name="Desk")
    service = _service(entity)

    result = service.migrate(entity.id, EntitySource.HYBRID, "switch.desk_plug")

    assert result.success
    assert result.error is None
    assert entity.source is EntitySource.HYBRID
    assert entity.external_id == "switch.desk_plug"
    assert entity.domain == "switch"


def test_external_to_hybrid_keeps_current_link() -> None:
    entity = make_entity("light.kitchen", source=EntitySource.EXTERNAL)

    result = _service(entity).migrate(entity.id, EntitySource.HYBRID)

    assert result.success
    assert entity.source is EntitySource.HYBRID
    assert entity.external_id == "light.kitchen"


def test_hybrid_to_internal_clears_external_id() -> None:
    entity = make_entity("light.kitchen", source=EntitySource.HYBRID)

    result = _service(entity).migrate(entity.id, EntitySource.INTERNAL)

    assert result.success
    assert entity.source is EntitySource.INTERNAL
    assert entity.external_id is None
    entity.check_invariants()


def test_same_source_is_a_successful_no_op() -> None:
    entity = make_entity("light.kitchen")

    result = _service(entity).migrate(entity.id, EntitySource.INTERNAL)

    assert result.success
    assert result.entity is entity
    assert entity.source is EntitySource.INTERNAL


def test_internal_target_rejects_external_id() -> None:
    entity = make_entity("light.kitchen", source=EntitySource.EXTERNAL)

    result = _service(entity).migrate(entity.id, EntitySource.INTERNAL, "light.kitchen")

    assert not result.success
    assert isinstance(result.error, ValidationError)
    assert entity.source is EntitySource.EXTERNAL
    assert entity.external_id == "light.kitchen"


def test_linked_target_requires_external_id() -> None:
    entity = make_entity("light.kitchen")

    result = _service(entity).migrate(entity.id, EntitySource.EXTERNAL)

    assert not result.success
    assert isinstance(result.error, ValidationError)
    assert entity.source is EntitySource.INTERNAL


def test_malformed_external_id_is_rejected() -> None:
    entity = make_entity("light.kitchen")

    result = _service(entity).migrate(entity.id, EntitySource.HYBRID, "Kitchen Light")

    assert not result.success
    assert isinstance(result.error, ValidationError)
    assert entity.external_id is None


def test_external_id_held_by_another_record_is_rejected() -> None:
    holder = make_entity("light.kitchen", source=EntitySource.EXTERNAL)
    entity = make_entity("light.kitchen_local")
    service = _service(holder, entity)

    result = service.migrate(entity.id, EntitySource.HYBRID, "light.kitchen")

    assert not result.success
    assert isinstance(result.error, ConstraintViolation)
    assert entity.source is EntitySource.INTERNAL
    assert entity.external_id is None
    with pytest.raises(ConstraintViolation):
        result.raise_for_error()


def test_unknown_record_fails_with_not_found() -> None:
    result = _service().migrate(uuid.uuid4(), EntitySource.HYBRID, "light.kitchen")

    assert not result.success
    assert isinstance(result.error, NotFoundError)
