"""Application entry points wiring the adapters to the reconciliation engine."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING, Final

from homesync.adapters.home_assistant import HomeAssistantStateFetcher, parse_event
from homesync.adapters.sqlalchemy.unit_of_work import (
    SqlAlchemyRegistryUnitOfWork,
    is_started,
    startup,
)
from homesync.config import SyncConfig, get_sync_config
from homesync.domain.errors import ValidationError
from homesync.domain.model import (
    EntitySource,
    RegistryEntity,
    extract_domain,
    is_valid_external_id,
)
from homesync.domain.reconciliation import (
    DeletionDetector,
    DuplicateCheckResult,
    DuplicatePreventer,
    IncrementalUpdateHandler,
    MigrationResult,
    SourceMigrationService,
    SyncOptions,
    SyncOrchestrator,
    SyncResult,
    SyncState,
)

if TYPE_CHECKING:
    from collections.abc import Mapping
    from uuid import UUID

    from homesync.domain.model import ExternalState
    from homesync.domain.ports import RegistryUnitOfWorkFactory, StateSnapshotFetcher

log = getLogger(__name__)

LOCAL_DEVICE_ID: Final[str] = "local"


def _ensure_started() -> None:
    if not is_started():
        startup()


def _unit_of_work_factory(
    unit_of_work_factory: RegistryUnitOfWorkFactory | None,
) -> RegistryUnitOfWorkFactory:
    if unit_of_work_factory is not None:
        return unit_of_work_factory
    _ensure_started()
    return SqlAlchemyRegistryUnitOfWork


def run_full_sync(
    options: SyncOptions | None = None,
    *,
    fetcher: StateSnapshotFetcher | None = None,
    unit_of_work_factory: RegistryUnitOfWorkFactory | None = None,
    state: SyncState | None = None,
    config: SyncConfig | None = None,
) -> SyncResult:
    """Reconcile the registry against a fresh Home Assistant snapshot."""

    sync_config = config or get_sync_config()
    orchestrator = SyncOrchestrator(
        fetcher=fetcher or HomeAssistantStateFetcher(),
        unit_of_work_factory=_unit_of_work_factory(unit_of_work_factory),
        state=state or SyncState(),
        device_id=sync_config.device_id,
    )
    return orchestrator.run(options or sync_config.to_options())


def _incremental_handler(
    unit_of_work_factory: RegistryUnitOfWorkFactory | None,
    state: SyncState | None,
    config: SyncConfig | None,
) -> IncrementalUpdateHandler:
    return IncrementalUpdateHandler(
        unit_of_work_factory=_unit_of_work_factory(unit_of_work_factory),
        state=state or SyncState(),
        device_id=(config or get_sync_config()).device_id,
    )


def apply_incremental_update(
    update: ExternalState,
    previous: ExternalState | None = None,
    *,
    unit_of_work_factory: RegistryUnitOfWorkFactory | None = None,
    state: SyncState | None = None,
    config: SyncConfig | None = None,
) -> RegistryEntity | None:
    handler = _incremental_handler(unit_of_work_factory, state, config)
    return handler.apply_update(update, previous)


def apply_incremental_deletion(
    external_id: str,
    *,
    unit_of_work_factory: RegistryUnitOfWorkFactory | None = None,
    state: SyncState | None = None,
    config: SyncConfig | None = None,
) -> RegistryEntity | None:
    handler = _incremental_handler(unit_of_work_factory, state, config)
    return handler.apply_deletion(external_id)


def handle_event(
    message: Mapping[str, object],
    *,
    unit_of_work_factory: RegistryUnitOfWorkFactory | None = None,
    state: SyncState | None = None,
    config: SyncConfig | None = None,
) -> RegistryEntity | None:
    """Apply one Home Assistant websocket message; unrelated messages are ignored."""

    event = parse_event(message)
    if event is None:
        return None
    handler = _incremental_handler(unit_of_work_factory, state, config)
    return handler.handle(event)


def migrate_source(
    entity_uuid: UUID,
    target: EntitySource,
    external_id: str | None = None,
    *,
    unit_of_work_factory: RegistryUnitOfWorkFactory | None = None,
) -> MigrationResult:
    factory = _unit_of_work_factory(unit_of_work_factory)
    with factory() as uow:
        result = SourceMigrationService(uow.repositories.entities).migrate(
            entity_uuid, target, external_id
        )
        if result.success:
            uow.commit()
        else:
            uow.rollback()
    return result


def check_duplicates(
    external_id: str,
    domain: str | None = None,
    name: str | None = None,
    *,
    unit_of_work_factory: RegistryUnitOfWorkFactory | None = None,
) -> DuplicateCheckResult:
    factory = _unit_of_work_factory(unit_of_work_factory)
    with factory() as uow:
        return DuplicatePreventer(uow.repositories.entities).check(
            external_id, domain or extract_domain(external_id), name
        )


def register_internal_entity(
    *,
    entity_id: str,
    name: str,
    domain: str | None = None,
    device_id: str = LOCAL_DEVICE_ID,
    icon: str | None = None,
    unit_of_work_factory: RegistryUnitOfWorkFactory | None = None,
) -> RegistryEntity:
    """Create a locally owned record; raises on invalid input or a certain duplicate."""

    if not is_valid_external_id(entity_id):
        raise ValidationError(f"Malformed entity id {entity_id!r}", entity_id=entity_id)
    if not name.strip():
        raise ValidationError("Entity name must not be blank", entity_id=entity_id)
    resolved_domain = domain or extract_domain(entity_id)

    factory = _unit_of_work_factory(unit_of_work_factory)
    with factory() as uow:
        entities = uow.repositories.entities
        DuplicatePreventer(entities).validate_before_create(entity_id, resolved_domain, name)
        entity = RegistryEntity(
            entity_id=entity_id,
            device_id=device_id,
            name=name.strip(),
            domain=resolved_domain,
            source=EntitySource.INTERNAL,
            icon=icon,
        )
        entities.add(entity)
        uow.commit()
    log.info("Registered internal entity %s", entity_id)
    return entity


def list_deleted_entities(
    *,
    fetcher: StateSnapshotFetcher | None = None,
    unit_of_work_factory: RegistryUnitOfWorkFactory | None = None,
) -> list[RegistryEntity]:
    """Linked records whose external id is absent from the current snapshot."""

    snapshot = (fetcher or HomeAssistantStateFetcher())()
    snapshot_ids = {state.external_id for state in snapshot if state.external_id}
    factory = _unit_of_work_factory(unit_of_work_factory)
    with factory() as uow:
        return DeletionDetector(uow.repositories.entities).find_missing(snapshot_ids)


def cleanup_deleted_entities(
    *,
    unit_of_work_factory: RegistryUnitOfWorkFactory | None = None,
) -> int:
    factory = _unit_of_work_factory(unit_of_work_factory)
    with factory() as uow:
        removed = DeletionDetector(uow.repositories.entities).cleanup()
        uow.commit()
    return removed


def restore_deleted_entity(
    entity_uuid: UUID,
    *,
    unit_of_work_factory: RegistryUnitOfWorkFactory | None = None,
) -> RegistryEntity:
    factory = _unit_of_work_factory(unit_of_work_factory)
    with factory() as uow:
        entity = DeletionDetector(uow.repositories.entities).restore(entity_uuid)
        uow.commit()
    return entity
