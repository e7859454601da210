"""Lifecycle-scoped synchronization state shared by both entry points."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable
    from datetime import datetime


@dataclass(slots=True)
class SyncState:
    """What the engine knows about the external source between passes.

    One instance is shared by the orchestrator and the incremental handler of the
    same engine; separate engines get separate instances.
    """

    source_online: bool | None = None
    last_full_sync_at: datetime | None = None
    deferred_merge_candidates: set[str] = field(default_factory=set)
    unseen_external_ids: set[str] = field(default_factory=set)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def mark_online(self) -> None:
        self.source_online = True

    def mark_offline(self) -> None:
        self.source_online = False

    def defer_merge_candidate(self, external_id: str) -> None:
        with self._lock:
            self.deferred_merge_candidates.add(external_id)

    def defer_unseen(self, external_id: str) -> None:
        with self._lock:
            self.unseen_external_ids.add(external_id)

    def deferred_ids(self) -> frozenset[str]:
        with self._lock:
            return frozenset(self.deferred_merge_candidates | self.unseen_external_ids)

    def complete_full_sync(self, at: datetime, seen: Iterable[str]) -> None:
        seen_ids = set(seen)
        with self._lock:
            self.deferred_merge_candidates -= seen_ids
            self.unseen_external_ids -= seen_ids
            self.last_full_sync_at = at
