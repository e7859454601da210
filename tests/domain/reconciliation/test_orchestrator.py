from __future__ import annotations

import pytest

from homesync.domain.errors import ConnectivityError
from homesync.domain.model import (
    ConflictPolicy,
    ConflictType,
    DeletionStrategy,
    EntitySource,
)
from homesync.domain.reconciliation import SyncOptions, SyncOrchestrator, SyncState
from tests.support.registry import (
    FIXED_NOW,
    FakeSnapshotFetcher,
    FakeUnitOfWork,
    InMemoryRegistry,
    assert_registry_invariants,
    fixed_clock,
    make_entity,
    make_state,
    unreachable_fetcher,
)


def _orchestrator(
    registry: InMemoryRegistry,
    fetcher: FakeSnapshotFetcher,
    state: SyncState | None = None,
) -> SyncOrchestrator:
    return SyncOrchestrator(
        fetcher=fetcher,
        unit_of_work_factory=registry.unit_of_work,
        state=state or SyncState(),
        clock=fixed_clock,
    )


def _five_states() -> FakeSnapshotFetcher:
    return FakeSnapshotFetcher(
        [
            make_state("light.kitchen", friendly_name="Kitchen"),
            make_state("light.porch", "off", friendly_name="Porch"),
            make_state("switch.heater", friendly_name="Heater"),
            make_state("sensor.temperature", "21.5", attributes={"unit_of_measurement": "°C"}),
            make_state("binary_sensor.front_door", "off", friendly_name="Front Door"),
        ]
    )


def test_empty_registry_creates_every_record_once(registry: InMemoryRegistry) -> None:
    orchestrator = _orchestrator(registry, _five_states())

    first = orchestrator.run()

    assert (first.created, first.updated, first.merged, first.skipped) == (5, 0, 0, 0)
    assert first.total == 5
    assert first.errors == []
    assert first.success
    assert len(registry.all()) == 5
    assert all(entity.source is EntitySource.EXTERNAL for entity in registry.all())
    assert all(entity.device_id == "home_assistant" for entity in registry.all())

    second = orchestrator.run()

    assert (second.created, second.merged) == (0, 0)
    assert second.updated == 5
    assert len(registry.all()) == 5
    assert_registry_invariants(registry.all())


def test_internal_record_is_merged_into_single_hybrid(registry: InMemoryRegistry) -> None:
    lamp = make_entity("light.lamp_local", name="Living Room Lamp", icon="mdi:floor-lamp")
    registry.entities[lamp.id] = lamp
    fetcher = FakeSnapshotFetcher(
        [make_state("light.living_room_lamp", "on", friendly_name="Living Room Lamp")]
    )
    orchestrator = _orchestrator(registry, fetcher)

    result = orchestrator.run()

    assert (result.created, result.merged) == (0, 1)
    [entity] = registry.all()
    assert entity.id == lamp.id
    assert entity.source is EntitySource.HYBRID
    assert entity.external_id == "light.living_room_lamp"
    assert entity.icon == "mdi:floor-lamp"
    assert [c.conflict_type for c in result.conflicts] == [ConflictType.INTERNAL_MATCHES_EXTERNAL]

    rerun = orchestrator.run()

    assert (rerun.created, rerun.merged) == (0, 0)
    [entity] = registry.all()
    assert entity.source is EntitySource.HYBRID
    assert entity.entity_id == "light.living_room_lamp"
    assert_registry_invariants(registry.all())


def test_entity_id_collision_creates_disambiguated_record_without_merging(
    registry: InMemoryRegistry,
) -> None:
    internal = make_entity("light.kitchen", name="Kitchen")
    registry.entities[internal.id] = internal
    fetcher = FakeSnapshotFetcher([make_state("light.kitchen", friendly_name="Kitchen")])
    orchestrator = _orchestrator(registry, fetcher)
    options = SyncOptions(merge_hybrids=False)

    first = orchestrator.run(options)
    second = orchestrator.run(options)

    assert first.created == 1
    assert (second.created, second.updated) == (0, 1)
    local = registry.by_entity_id("light.kitchen")
    linked = registry.by_external_id("light.kitchen")
    assert local is not None
    assert local.source is EntitySource.INTERNAL
    assert linked is not None
    assert linked.entity_id == "light.kitchen_ha"
    assert_registry_invariants(registry.all())


def test_invalid_records_are_reported_and_do_not_stop_the_pass(
    registry: InMemoryRegistry,
) -> None:
    fetcher = FakeSnapshotFetcher(
        [make_state(None), make_state("Not An Id"), make_state("light.kitchen")]
    )

    result = _orchestrator(registry, fetcher).run()

    assert result.created == 1
    assert result.total == 3
    assert [error.kind for error in result.errors] == ["validation", "validation"]
    assert result.errors[0].external_id == "UNKNOWN"
    assert result.errors[1].external_id == "Not An Id"
    assert not result.success


def test_collision_with_linked_record_is_a_non_retryable_error(
    registry: InMemoryRegistry,
) -> None:
    linked = make_entity(
        "light.kitchen", source=EntitySource.EXTERNAL, external_id="light.other_kitchen"
    )
    registry.entities[linked.id] = linked
    fetcher = FakeSnapshotFetcher([make_state("light.kitchen", friendly_name="Kitchen")])

    result = _orchestrator(registry, fetcher).run(SyncOptions(handle_deletions=False))

    [error] = result.errors
    assert error.kind == "conflict"
    assert error.retryable is False
    assert [c.conflict_type for c in result.conflicts] == [ConflictType.ENTITY_ID_COLLISION]
    stored = registry.by_entity_id("light.kitchen")
    assert stored is not None
    assert stored.external_id == "light.other_kitchen"
    assert len(registry.all()) == 1


def test_unexpected_failure_is_isolated_to_one_record(registry: InMemoryRegistry) -> None:
    calls = 0

    def flaky_unit_of_work() -> FakeUnitOfWork:
        nonlocal calls
        calls += 1
        if calls == 1:
            raise RuntimeError("database is locked")
        return registry.unit_of_work()

    fetcher = FakeSnapshotFetcher([make_state("light.kitchen"), make_state("light.porch")])
    orchestrator = SyncOrchestrator(fetcher, flaky_unit_of_work, clock=fixed_clock)

    result = orchestrator.run(SyncOptions(handle_deletions=False))

    assert result.created == 1
    [error] = result.errors
    assert error.external_id == "light.kitchen"
    assert error.kind == "unexpected"
    assert registry.by_external_id("light.porch") is not None


def test_unreachable_source_aborts_pass_and_marks_offline(registry: InMemoryRegistry) -> None:
    existing = make_entity("light.kitchen", source=EntitySource.EXTERNAL, state="on")
    registry.entities[existing.id] = existing
    state = SyncState()

    with pytest.raises(ConnectivityError):
        _orchestrator(registry, unreachable_fetcher(), state).run()

    assert state.source_online is False
    assert state.last_full_sync_at is None
    assert registry.commits == 0
    stored = registry.by_entity_id("light.kitchen")
    assert stored is not None
    assert stored.state == "on"


def test_successful_pass_updates_sync_state(registry: InMemoryRegistry) -> None:
    state = SyncState()
    state.defer_unseen("light.porch")
    state.defer_merge_candidate("light.kitchen")
    fetcher = FakeSnapshotFetcher([make_state("light.porch")])

    _orchestrator(registry, fetcher, state).run()

    assert state.source_online is True
    assert state.last_full_sync_at == FIXED_NOW
    assert state.unseen_external_ids == set()
    assert state.deferred_merge_candidates == {"light.kitchen"}


def test_dry_run_predicts_without_mutating(registry: InMemoryRegistry) -> None:
    internal = make_entity("light.kitchen", name="Kitchen")
    registry.entities[internal.id] = internal
    fetcher = FakeSnapshotFetcher(
        [
            make_state("light.kitchen", friendly_name="Kitchen"),
            make_state("light.porch", friendly_name="Porch"),
            make_state(None),
        ]
    )

    result = _orchestrator(registry, fetcher).run(SyncOptions(dry_run=True))

    assert result.dry_run
    assert (result.created, result.merged) == (1, 1)
    assert len(result.errors) == 1
    assert result.deletions is None
    assert [c.conflict_type for c in result.conflicts] == [ConflictType.INTERNAL_MATCHES_EXTERNAL]
    assert registry.commits == 0
    [entity] = registry.all()
    assert entity.source is EntitySource.INTERNAL


def test_skip_policy_skips_high_confidence_duplicates(registry: InMemoryRegistry) -> None:
    existing = make_entity("light.kitchen", source=EntitySource.EXTERNAL, name="Kitchen")
    registry.entities[existing.id] = existing
    fetcher = FakeSnapshotFetcher(
        [make_state("light.kitchen", "off", friendly_name="Kitchen"), make_state("light.porch")]
    )

    result = _orchestrator(registry, fetcher).run(
        SyncOptions(conflict_policy=ConflictPolicy.SKIP)
    )

    assert (result.skipped, result.created, result.updated) == (1, 1, 0)
    stored = registry.by_entity_id("light.kitchen")
    assert stored is not None
    assert stored.state == "unknown"


def test_vanished_records_are_soft_deleted(registry: InMemoryRegistry) -> None:
    porch = make_entity("light.porch", source=EntitySource.EXTERNAL, state="on")
    heater = make_entity("switch.heater", source=EntitySource.HYBRID, name="Bathroom heater")
    registry.entities.update({porch.id: porch, heater.id: heater})
    fetcher = FakeSnapshotFetcher([make_state("light.kitchen")])

    result = _orchestrator(registry, fetcher).run()

    assert result.deletions is not None
    assert result.deletions.marked_unavailable == 2
    assert result.deletions.converted_to_internal == 1
    stored_porch = registry.by_entity_id("light.porch")
    stored_heater = registry.by_entity_id("switch.heater")
    assert stored_porch is not None
    assert stored_porch.state == "unavailable"
    assert stored_porch.source is EntitySource.EXTERNAL
    assert stored_heater is not None
    assert stored_heater.source is EntitySource.INTERNAL
    assert stored_heater.external_id is None
    assert_registry_invariants(registry.all())


def test_hard_deletion_strategy_removes_vanished_records(registry: InMemoryRegistry) -> None:
    porch = make_entity("light.porch", source=EntitySource.EXTERNAL)
    registry.entities[porch.id] = porch

    result = _orchestrator(registry, FakeSnapshotFetcher()).run(
        SyncOptions(deletion_strategy=DeletionStrategy.HARD)
    )

    assert result.deletions is not None
    assert result.deletions.deleted == 1
    assert registry.all() == []


def test_deletion_handling_can_be_disabled(registry: InMemoryRegistry) -> None:
    porch = make_entity("light.porch", source=EntitySource.EXTERNAL, state="on")
    registry.entities[porch.id] = porch

    result = _orchestrator(registry, FakeSnapshotFetcher()).run(
        SyncOptions(handle_deletions=False)
    )

    assert result.deletions is not None
    assert result.deletions.marked_unavailable == 0
    stored = registry.by_entity_id("light.porch")
    assert stored is not None
    assert stored.state == "on"


def test_reappearing_record_is_restored(registry: InMemoryRegistry) -> None:
    porch = make_entity("light.porch", source=EntitySource.EXTERNAL, name="Porch")
    porch.mark_deleted(FIXED_NOW)
    registry.entities[porch.id] = porch
    fetcher = FakeSnapshotFetcher([make_state("light.porch", "on", friendly_name="Porch")])

    result = _orchestrator(registry, fetcher).run()

    assert result.updated == 1
    assert result.deletions is not None
    assert result.deletions.restored == 1
    stored = registry.by_entity_id("light.porch")
    assert stored is not None
    assert stored.state == "on"
    assert not stored.is_soft_deleted


def test_full_sync_picks_up_deferred_records(
    registry: InMemoryRegistry, caplog: pytest.LogCaptureFixture
) -> None:
    state = SyncState()
    state.defer_unseen("light.garage")
    fetcher = FakeSnapshotFetcher([make_state("light.garage", friendly_name="Garage")])

    with caplog.at_level("INFO", logger="homesync.domain.reconciliation.orchestrator"):
        result = _orchestrator(registry, fetcher, state).run()

    assert result.created == 1
    assert "1 external ids deferred" in caplog.text
    assert state.deferred_ids() == frozenset()
