from __future__ import annotations

import pytest

from homesync.domain.errors import ValidationError
from homesync.domain.model import (
    DELETED_AT,
    DELETED_FROM_SOURCE,
    UNAVAILABLE,
    EntitySource,
    RegistryEntity,
)
from tests.support.registry import FIXED_NOW, make_entity, make_state


def test_from_external_links_identity_and_copies_state() -> None:
    external = make_state(
        "light.living_room", "on", attributes={"brightness": 200, "icon": "mdi:lamp"}
    )

    entity = RegistryEntity.from_external(external, device_id="home_assistant")

    assert entity.entity_id == "light.living_room"
    assert entity.external_id == "light.living_room"
    assert entity.domain == "light"
    assert entity.source is EntitySource.EXTERNAL
    assert entity.name == "Living Room"
    assert entity.icon == "mdi:lamp"
    assert entity.state == "on"
    assert entity.attributes["brightness"] == 200
    assert entity.last_changed == FIXED_NOW
    entity.check_invariants()


def test_from_external_requires_identifier() -> None:
    with pytest.raises(ValidationError):
        RegistryEntity.from_external(make_state(None), device_id="home_assistant")


@pytest.mark.parametrize(
    ("source", "external_id"),
    [
        (EntitySource.INTERNAL, "light.kitchen"),
        (EntitySource.EXTERNAL, None),
        (EntitySource.HYBRID, None),
    ],
)
def test_check_invariants_ties_external_id_to_source(
    source: EntitySource, external_id: str | None
) -> None:
    entity = make_entity("light.kitchen")
    entity.source = source
    entity.external_id = external_id

    with pytest.raises(ValidationError):
        entity.check_invariants()


def test_check_invariants_requires_domain_to_follow_external_id() -> None:
    entity = make_entity("light.kitchen", source=EntitySource.EXTERNAL)
    entity.domain = "switch"

    with pytest.raises(ValidationError):
        entity.check_invariants()


def test_mark_deleted_keeps_external_source() -> None:
    entity = make_entity("sensor.temp", source=EntitySource.EXTERNAL, state="21.5")

    demoted = entity.mark_deleted(FIXED_NOW)

    assert demoted is False
    assert entity.state == UNAVAILABLE
    assert entity.source is EntitySource.EXTERNAL
    assert entity.external_id == "sensor.temp"
    assert entity.attributes[DELETED_FROM_SOURCE] is True
    assert entity.attributes[DELETED_AT] == FIXED_NOW.isoformat()
    assert entity.is_soft_deleted


def test_mark_deleted_demotes_hybrid_to_internal() -> None:
    entity = make_entity("light.desk", source=EntitySource.HYBRID)

    demoted = entity.mark_deleted(FIXED_NOW)

    assert demoted is True
    assert entity.source is EntitySource.INTERNAL
    assert entity.external_id is None
    entity.check_invariants()


def test_apply_state_replaces_attributes_and_drops_markers() -> None:
    entity = make_entity("light.desk", source=EntitySource.EXTERNAL)
    entity.mark_deleted(FIXED_NOW)

    entity.apply_state(make_state("light.desk", "off", attributes={"brightness": 0}))

    assert entity.state == "off"
    assert entity.attributes == {"brightness": 0}
    assert not entity.is_soft_deleted


def test_relink_rewrites_local_id_external_id_and_domain() -> None:
    entity = make_entity("light.old", source=EntitySource.EXTERNAL)

    entity.relink("switch.new")

    assert entity.entity_id == "switch.new"
    assert entity.external_id == "switch.new"
    assert entity.domain == "switch"
