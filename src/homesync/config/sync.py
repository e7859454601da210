"""Synchronization defaults for reconciliation passes."""

from __future__ import annotations

from dataclasses import dataclass

from homesync.domain.model.enums import ConflictPolicy, DeletionStrategy
from homesync.domain.reconciliation.contracts import DEFAULT_DEVICE_ID, SyncOptions


@dataclass(frozen=True, slots=True)
class SyncConfig:
    conflict_policy: ConflictPolicy = ConflictPolicy.AUTO
    handle_deletions: bool = True
    merge_hybrids: bool = True
    deletion_strategy: DeletionStrategy = DeletionStrategy.SOFT
    dry_run: bool = False
    device_id: str = DEFAULT_DEVICE_ID

    def to_options(self) -> SyncOptions:
        return SyncOptions(
            conflict_policy=self.conflict_policy,
            handle_deletions=self.handle_deletions,
            merge_hybrids=self.merge_hybrids,
            deletion_strategy=self.deletion_strategy,
            dry_run=self.dry_run,
        )


def get_sync_config() -> SyncConfig:
    return SyncConfig()
