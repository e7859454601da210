"""SQLAlchemy adapter package for homesync."""

from __future__ import annotations

from .mappings import entity_table, mapper_registry, start_mappers
from .repositories import SqlAlchemyEntityRepository

__all__ = [
    "SqlAlchemyEntityRepository",
    "entity_table",
    "mapper_registry",
    "start_mappers",
]
