"""Domain port definitions for adapters."""

from __future__ import annotations

from .fetching import StateSnapshotFetcher
from .persistence import EntityRepository, Repository
from .unit_of_work import (
    RegistryRepositories,
    RegistryUnitOfWork,
    RegistryUnitOfWorkFactory,
    RepositoryCollection,
    UnitOfWork,
)

__all__ = [
    "EntityRepository",
    "RegistryRepositories",
    "RegistryUnitOfWork",
    "RegistryUnitOfWorkFactory",
    "Repository",
    "RepositoryCollection",
    "StateSnapshotFetcher",
    "UnitOfWork",
]
