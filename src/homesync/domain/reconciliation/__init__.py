"""Entity synchronization and conflict resolution."""

from __future__ import annotations

from .conflicts import ConflictResolver
from .contracts import (
    DEFAULT_DEVICE_ID,
    ConflictRecord,
    DeletionResult,
    DuplicateCheckResult,
    DuplicateMatch,
    MigrationResult,
    RecordError,
    Resolution,
    SyncOptions,
    SyncResult,
)
from .deletions import DeletionDetector
from .duplicates import DuplicatePreventer
from .hybrid import HybridEntityManager, is_default_name
from .incremental import IncrementalUpdateHandler
from .matching import FUZZY_MATCH_THRESHOLD, fuzzy_match, normalize_text, similarity
from .migration import SourceMigrationService, can_transition
from .orchestrator import SyncOrchestrator
from .state import SyncState

__all__ = [
    "DEFAULT_DEVICE_ID",
    "FUZZY_MATCH_THRESHOLD",
    "ConflictRecord",
    "ConflictResolver",
    "DeletionDetector",
    "DeletionResult",
    "DuplicateCheckResult",
    "DuplicateMatch",
    "DuplicatePreventer",
    "HybridEntityManager",
    "IncrementalUpdateHandler",
    "MigrationResult",
    "RecordError",
    "Resolution",
    "SourceMigrationService",
    "SyncOptions",
    "SyncOrchestrator",
    "SyncResult",
    "SyncState",
    "can_transition",
    "fuzzy_match",
    "is_default_name",
    "normalize_text",
    "similarity",
]
