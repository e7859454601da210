from __future__ import annotations

import uuid
from datetime import timedelta

import pytest

from homesync.domain.errors import NotFoundError
from homesync.domain.model import (
    DELETED_AT,
    DELETED_FROM_SOURCE,
    DeletionStrategy,
    EntitySource,
    RegistryEntity,
)
from homesync.domain.reconciliation import DeletionDetector, DeletionResult
from tests.support.registry import (
    FIXED_NOW,
    InMemoryEntityRepository,
    fixed_clock,
    make_entity,
)


def _detector(*entities: RegistryEntity) -> tuple[DeletionDetector, InMemoryEntityRepository]:
    repo = InMemoryEntityRepository({e.id: e for e in entities})
    return DeletionDetector(repo, fixed_clock), repo


def _handle_missing(
    detector: DeletionDetector, strategy: DeletionStrategy, snapshot_ids: set[str] | None = None
) -> DeletionResult:
    result = DeletionResult()
    for entity in detector.find_missing(snapshot_ids or set()):
        detector.handle(entity, strategy, result)
    return result


def test_find_missing_ignores_internal_and_present_records() -> None:
    present = make_entity("light.kitchen", source=EntitySource.EXTERNAL)
    missing = make_entity("light.porch", source=EntitySource.EXTERNAL)
    internal = make_entity("light.local")
    detector, _ = _detector(present, missing, internal)

    assert detector.find_missing({"light.kitchen"}) == [missing]


def test_soft_delete_marks_external_record_unavailable() -> None:
    gone = make_entity("light.porch", source=EntitySource.EXTERNAL, attributes={"brightness": 10})
    detector, repo = _detector(gone)

    result = _handle_missing(detector, DeletionStrategy.SOFT)

    assert result.marked_unavailable == 1
    assert result.converted_to_internal == 0
    stored = repo.get(gone.id)
    assert stored is not None
    assert stored.state == "unavailable"
    assert stored.attributes[DELETED_FROM_SOURCE] is True
    assert stored.attributes[DELETED_AT] == FIXED_NOW.isoformat()
    assert stored.attributes["brightness"] == 10
    assert stored.source is EntitySource.EXTERNAL


def test_soft_delete_is_idempotent_across_passes() -> None:
    gone = make_entity("light.gone", source=EntitySource.EXTERNAL)
    repo = InMemoryEntityRepository({gone.id: gone})
    ticks = iter([FIXED_NOW, FIXED_NOW + timedelta(days=1)])
    detector = DeletionDetector(repo, lambda: next(ticks))

    first = _handle_missing(detector, DeletionStrategy.SOFT)
    second = _handle_missing(detector, DeletionStrategy.SOFT)

    assert first.marked_unavailable == 1
    assert second.marked_unavailable == 0
    stored = repo.get(gone.id)
    assert stored is not None
    assert stored.attributes[DELETED_AT] == FIXED_NOW.isoformat()


def test_soft_delete_demotes_hybrid_to_internal() -> None:
    hybrid = make_entity("switch.heater", source=EntitySource.HYBRID, name="Bathroom heater")
    detector, _ = _detector(hybrid)

    result = _handle_missing(detector, DeletionStrategy.SOFT)

    assert result.marked_unavailable == 1
    assert result.converted_to_internal == 1
    assert hybrid.source is EntitySource.INTERNAL
    assert hybrid.external_id is None
    assert hybrid.name == "Bathroom heater"
    hybrid.check_invariants()


def test_hard_delete_removes_records() -> None:
    gone = make_entity("light.porch", source=EntitySource.EXTERNAL)
    hybrid = make_entity("switch.heater", source=EntitySource.HYBRID)
    detector, repo = _detector(gone, hybrid)

    result = _handle_missing(detector, DeletionStrategy.HARD)

    assert result.deleted == 2
    assert repo.get(gone.id) is None
    assert repo.get(hybrid.id) is None


def test_preserve_leaves_records_untouched() -> None:
    gone = make_entity("light.porch", source=EntitySource.EXTERNAL, state="on")
    detector, _ = _detector(gone)

    result = _handle_missing(detector, DeletionStrategy.PRESERVE)

    assert result.deleted == result.marked_unavailable == 0
    assert gone.state == "on"
    assert not gone.is_soft_deleted


def test_cleanup_only_purges_soft_deleted_external_records() -> None:
    soft_deleted = make_entity("light.porch", source=EntitySource.EXTERNAL)
    soft_deleted.mark_deleted(FIXED_NOW)
    demoted = make_entity("switch.heater", source=EntitySource.HYBRID)
    demoted.mark_deleted(FIXED_NOW)
    live = make_entity("light.kitchen", source=EntitySource.EXTERNAL, state="on")
    detector, repo = _detector(soft_deleted, demoted, live)

    assert detector.cleanup() == 1
    assert repo.get(soft_deleted.id) is None
    assert repo.get(demoted.id) is demoted
    assert repo.get(live.id) is live


def test_restore_strips_markers_but_keeps_state() -> None:
    entity = make_entity("light.porch", source=EntitySource.EXTERNAL)
    entity.mark_deleted(FIXED_NOW)
    detector, _ = _detector(entity)

    restored = detector.restore(entity.id)

    assert not restored.is_soft_deleted
    assert DELETED_AT not in restored.attributes
    assert restored.state == "unavailable"


def test_restore_unknown_record_raises() -> None:
    detector, _ = _detector()

    with pytest.raises(NotFoundError):
        detector.restore(uuid.uuid4())
