"""Full reconciliation pass over an external snapshot.

Each record is processed in its own unit of work, so a crash mid-pass leaves a
consistent prefix that a re-run completes. Only this pass creates registry records.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING

from homesync.domain.clock import Clock, utcnow
from homesync.domain.errors import ConnectivityError, RegistryError, ValidationError
from homesync.domain.model import (
    Confidence,
    ConflictPolicy,
    ConflictType,
    RegistryEntity,
    ResolutionAction,
    is_valid_external_id,
)

from .conflicts import ConflictResolver
from .contracts import (
    DEFAULT_DEVICE_ID,
    UNKNOWN_EXTERNAL_ID,
    ConflictRecord,
    DeletionResult,
    RecordError,
    Resolution,
    SyncOptions,
    SyncResult,
)
from .deletions import DeletionDetector
from .duplicates import DuplicatePreventer
from .hybrid import HybridEntityManager
from .state import SyncState

if TYPE_CHECKING:
    from uuid import UUID

    from homesync.domain.model import ExternalState
    from homesync.domain.ports import (
        EntityRepository,
        RegistryUnitOfWorkFactory,
        StateSnapshotFetcher,
    )

log = getLogger(__name__)


@dataclass(slots=True)
class _Components:
    duplicates: DuplicatePreventer
    hybrids: HybridEntityManager
    resolver: ConflictResolver


@dataclass(slots=True, frozen=True)
class _Outcome:
    """Plain-value summary of a resolution, taken while its unit of work is open."""

    action: ResolutionAction
    error: RecordError | None = None
    conflict: ConflictRecord | None = None

    @classmethod
    def of(cls, external_id: str, resolution: Resolution) -> _Outcome:
        error: RecordError | None = None
        if resolution.action is ResolutionAction.ERROR:
            error = (
                RecordError.from_error(resolution.error, external_id=external_id)
                if resolution.error is not None
                else RecordError(
                    external_id=external_id, message=resolution.message, kind="conflict"
                )
            )
        conflict: ConflictRecord | None = None
        if resolution.conflict_type is not None:
            entity = resolution.entity
            conflict = ConflictRecord(
                conflict_type=resolution.conflict_type,
                external_id=external_id,
                entity_id=entity.entity_id if entity is not None else None,
                message=resolution.message,
                requires_review=resolution.requires_review,
            )
        return cls(action=resolution.action, error=error, conflict=conflict)

    def record(self, result: SyncResult) -> None:
        result.tally(self.action)
        if self.error is not None:
            result.errors.append(self.error)
        if self.conflict is not None:
            result.conflicts.append(self.conflict)
            if self.conflict.requires_review:
                log.warning(
                    "%s needs review: %s", self.conflict.external_id, self.conflict.message
                )


@dataclass(slots=True)
class SyncOrchestrator:
    fetcher: StateSnapshotFetcher
    unit_of_work_factory: RegistryUnitOfWorkFactory
    state: SyncState = field(default_factory=SyncState)
    clock: Clock = field(default=utcnow)
    device_id: str = DEFAULT_DEVICE_ID

    def run(self, options: SyncOptions | None = None) -> SyncResult:
        """Fetch the snapshot and reconcile every record.

        Raises ``ConnectivityError`` when the snapshot cannot be fetched; every other
        failure is reported per record in the result.
        """

        opts = options or SyncOptions()
        snapshot = self._fetch()
        log.info(
            "Starting %s over %d external records (policy=%s)",
            "dry run" if opts.dry_run else "full sync",
            len(snapshot),
            opts.conflict_policy,
        )
        if opts.dry_run:
            result = self._dry_run(snapshot, opts)
        else:
            result = self._sync(snapshot, opts)
        log.info(
            "Finished: %d created, %d updated, %d merged, %d skipped, %d errors of %d",
            result.created,
            result.updated,
            result.merged,
            result.skipped,
            len(result.errors),
            result.total,
        )
        return result

    def _fetch(self) -> list[ExternalState]:
        try:
            snapshot = self.fetcher()
        except ConnectivityError:
            self.state.mark_offline()
            log.exception("External snapshot unreachable; aborting pass")
            raise
        self.state.mark_online()
        return snapshot

    def _sync(self, snapshot: list[ExternalState], opts: SyncOptions) -> SyncResult:
        result = SyncResult(total=len(snapshot))
        deletions = DeletionResult()
        seen: set[str] = set()
        deferred = self.state.deferred_ids()
        if deferred:
            log.info("%d external ids deferred by incremental updates", len(deferred))

        for external in snapshot:
            external_id = external.external_id
            if external_id:
                seen.add(external_id)
            try:
                valid_id = self._validate(external)
                with self.unit_of_work_factory() as uow:
                    resolution, restored = self._process(
                        uow.repositories.entities, external, valid_id, opts
                    )
                    # rollback expires the resolved entity
                    outcome = _Outcome.of(valid_id, resolution)
                    if resolution.action is ResolutionAction.ERROR:
                        uow.rollback()
                    else:
                        uow.commit()
                outcome.record(result)
            except RegistryError as exc:
                log.warning("Record %s failed: %s", external_id or UNKNOWN_EXTERNAL_ID, exc)
                result.errors.append(RecordError.from_error(exc, external_id=external_id))
                continue
            except Exception as exc:  # noqa: BLE001
                log.warning("Record %s failed unexpectedly", external_id, exc_info=True)
                result.errors.append(
                    RecordError(
                        external_id=external_id or UNKNOWN_EXTERNAL_ID,
                        message=str(exc),
                        kind="unexpected",
                    )
                )
                continue

            if restored and outcome.action is not ResolutionAction.ERROR:
                deletions.restored += 1

        if opts.handle_deletions:
            self._handle_deletions(seen, opts, deletions)
        result.deletions = deletions
        self.state.complete_full_sync(self.clock(), seen)
        return result

    def _validate(self, external: ExternalState) -> str:
        external_id = external.external_id
        if not external_id:
            raise ValidationError("Entity missing external identifier")
        if not is_valid_external_id(external_id):
            raise ValidationError(
                f"Malformed external identifier {external_id!r}", external_id=external_id
            )
        return external_id

    def _components(self, entities: EntityRepository) -> _Components:
        hybrids = HybridEntityManager(entities)
        return _Components(
            duplicates=DuplicatePreventer(entities),
            hybrids=hybrids,
            resolver=ConflictResolver(entities, hybrids, self.device_id),
        )

    def _process(
        self,
        entities: EntityRepository,
        external: ExternalState,
        external_id: str,
        opts: SyncOptions,
    ) -> tuple[Resolution, bool]:
        """Route one validated record; returns the resolution and a restored flag."""

        parts = self._components(entities)

        duplicate = parts.duplicates.check(external_id, external.domain, external.display_name)
        if duplicate.confidence is Confidence.HIGH and opts.conflict_policy is ConflictPolicy.SKIP:
            log.debug("Skipping %s: high-confidence duplicate", external_id)
            return Resolution(action=ResolutionAction.SKIP, message="duplicate skipped"), False

        existing = entities.get_by_external_id(external_id)
        if existing is not None:
            log.debug("Resolving %s against %s", external_id, existing.entity_id)
            was_deleted = existing.is_soft_deleted
            resolution = parts.resolver.resolve(external, existing)
            restored = (
                was_deleted and resolution.entity is existing and not existing.is_soft_deleted
            )
            return resolution, restored

        if opts.merge_hybrids:
            candidates = parts.hybrids.find_candidates(external)
            if candidates:
                target = candidates[0]
                restored = target.is_soft_deleted
                log.debug("Merging %s into internal entity %s", external_id, target.entity_id)
                merged = parts.hybrids.merge(target, external)
                return Resolution(
                    action=ResolutionAction.MERGE,
                    entity=merged,
                    conflict_type=ConflictType.INTERNAL_MATCHES_EXTERNAL,
                    message=f"Merged with internal entity {merged.entity_id}",
                ), restored

        collision = entities.get_by_entity_id(external_id)
        if collision is not None:
            log.debug("Entity id %s collides with %s", external_id, collision.entity_id)
            return parts.resolver.resolve(external, collision), False

        created = RegistryEntity.from_external(external, device_id=self.device_id)
        entities.add(created)
        log.debug("Created %s", external_id)
        return Resolution(
            action=ResolutionAction.CREATE, entity=created, message=f"Created {external_id}"
        ), False

    def _handle_deletions(
        self,
        seen: set[str],
        opts: SyncOptions,
        deletions: DeletionResult,
    ) -> None:
        with self.unit_of_work_factory() as uow:
            detector = DeletionDetector(uow.repositories.entities, self.clock)
            missing: list[UUID] = [entity.id for entity in detector.find_missing(seen)]
        if missing:
            log.info("%d registry entities are gone from the source", len(missing))

        for entity_uuid in missing:
            external_id: str | None = None
            try:
                with self.unit_of_work_factory() as uow:
                    entities = uow.repositories.entities
                    entity = entities.get(entity_uuid)
                    if entity is None:
                        continue
                    external_id = entity.external_id
                    DeletionDetector(entities, self.clock).handle(
                        entity, opts.deletion_strategy, deletions
                    )
                    uow.commit()
            except RegistryError as exc:
                deletions.errors.append(RecordError.from_error(exc, external_id=external_id))

    def _dry_run(self, snapshot: list[ExternalState], opts: SyncOptions) -> SyncResult:
        result = SyncResult(total=len(snapshot), dry_run=True)
        with self.unit_of_work_factory() as uow:
            entities = uow.repositories.entities
            parts = self._components(entities)
            for external in snapshot:
                try:
                    external_id = self._validate(external)
                except ValidationError as exc:
                    result.errors.append(
                        RecordError.from_error(exc, external_id=external.external_id)
                    )
                    continue
                action, conflict, entity = self._predict(
                    parts, entities, external, external_id, opts
                )
                result.tally(action)
                if conflict is not None:
                    log.info("[dry run] %s detected for %s", conflict, external_id)
                    result.conflicts.append(
                        ConflictRecord(
                            conflict_type=conflict,
                            external_id=external_id,
                            entity_id=entity.entity_id if entity is not None else None,
                            message=f"would {action}",
                        )
                    )
            uow.rollback()
        return result

    def _predict(
        self,
        parts: _Components,
        entities: EntityRepository,
        external: ExternalState,
        external_id: str,
        opts: SyncOptions,
    ) -> tuple[ResolutionAction, ConflictType | None, RegistryEntity | None]:
        duplicate = parts.duplicates.check(external_id, external.domain, external.display_name)
        if duplicate.confidence is Confidence.HIGH and opts.conflict_policy is ConflictPolicy.SKIP:
            return ResolutionAction.SKIP, None, None

        existing = entities.get_by_external_id(external_id)
        if existing is not None:
            conflict = parts.resolver.detect(external, existing)
            return parts.resolver.predict(external, existing), conflict, existing

        if opts.merge_hybrids:
            candidates = parts.hybrids.find_candidates(external)
            if candidates:
                return (
                    ResolutionAction.MERGE,
                    ConflictType.INTERNAL_MATCHES_EXTERNAL,
                    candidates[0],
                )

        collision = entities.get_by_entity_id(external_id)
        if collision is not None:
            conflict = parts.resolver.detect(external, collision)
            return parts.resolver.predict(external, collision), conflict, collision

        return ResolutionAction.CREATE, None, None
