"""Result and option types exchanged by the reconciliation components."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Final

from homesync.domain.model import (
    Confidence,
    ConflictPolicy,
    ConflictType,
    DeletionStrategy,
    ResolutionAction,
)

if TYPE_CHECKING:
    from homesync.domain.errors import RegistryError
    from homesync.domain.model import RegistryEntity

DEFAULT_DEVICE_ID: Final[str] = "home_assistant"
UNKNOWN_EXTERNAL_ID: Final[str] = "UNKNOWN"


@dataclass(slots=True, frozen=True)
class DuplicateMatch:
    entity: RegistryEntity
    reason: str
    confidence: Confidence


@dataclass(slots=True, frozen=True)
class DuplicateCheckResult:
    duplicates: tuple[DuplicateMatch, ...] = ()
    confidence: Confidence = Confidence.NONE

    @property
    def is_duplicate(self) -> bool:
        return bool(self.duplicates)


@dataclass(slots=True, kw_only=True)
class Resolution:
    """Outcome of resolving one external record against the registry."""

    action: ResolutionAction
    message: str
    entity: RegistryEntity | None = None
    conflict_type: ConflictType | None = None
    requires_review: bool = False
    error: RegistryError | None = None


@dataclass(slots=True, frozen=True, kw_only=True)
class ConflictRecord:
    conflict_type: ConflictType
    external_id: str
    entity_id: str | None
    message: str
    requires_review: bool = False


@dataclass(slots=True, frozen=True, kw_only=True)
class RecordError:
    external_id: str
    message: str
    kind: str
    retryable: bool = False

    @classmethod
    def from_error(cls, error: RegistryError, *, external_id: str | None) -> RecordError:
        return cls(
            external_id=external_id or error.external_id or UNKNOWN_EXTERNAL_ID,
            message=error.message,
            kind=error.kind,
            retryable=error.retryable,
        )


@dataclass(slots=True, frozen=True)
class SyncOptions:
    conflict_policy: ConflictPolicy = ConflictPolicy.AUTO
    handle_deletions: bool = True
    merge_hybrids: bool = True
    deletion_strategy: DeletionStrategy = DeletionStrategy.SOFT
    dry_run: bool = False


@dataclass(slots=True)
class DeletionResult:
    deleted: int = 0
    marked_unavailable: int = 0
    converted_to_internal: int = 0
    restored: int = 0
    errors: list[RecordError] = field(default_factory=list)


@dataclass(slots=True)
class SyncResult:
    """Aggregate of one full pass. In dry-run mode the tallies are predictions."""

    created: int = 0
    updated: int = 0
    merged: int = 0
    skipped: int = 0
    total: int = 0
    errors: list[RecordError] = field(default_factory=list)
    conflicts: list[ConflictRecord] = field(default_factory=list)
    deletions: DeletionResult | None = None
    dry_run: bool = False

    @property
    def success(self) -> bool:
        return not self.errors and (self.deletions is None or not self.deletions.errors)

    def tally(self, action: ResolutionAction) -> None:
        match action:
            case ResolutionAction.CREATE:
                self.created += 1
            case ResolutionAction.UPDATE:
                self.updated += 1
            case ResolutionAction.MERGE:
                self.merged += 1
            case ResolutionAction.SKIP:
                self.skipped += 1
            case ResolutionAction.ERROR:
                pass


@dataclass(slots=True, kw_only=True)
class MigrationResult:
    success: bool
    message: str
    entity: RegistryEntity | None = None
    error: RegistryError | None = None

    def raise_for_error(self) -> None:
        if self.error is not None:
            raise self.error
