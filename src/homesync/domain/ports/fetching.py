"""Ports for fetching external entity state."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from homesync.domain.model import ExternalState


@runtime_checkable
class StateSnapshotFetcher(Protocol):
    """Callable port returning the complete current snapshot of the external source.

    Implementations raise ``ConnectivityError`` when the snapshot is unreachable.
    """

    def __call__(self) -> list[ExternalState]: ...


__all__ = ["StateSnapshotFetcher"]
