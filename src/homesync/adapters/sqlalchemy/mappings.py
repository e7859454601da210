"""SQLAlchemy mapping metadata for the registry model."""

from __future__ import annotations

import json
import logging
import uuid
from datetime import UTC, datetime
from functools import cache
from typing import TYPE_CHECKING, Any, cast

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    Dialect,
    Enum,
    Index,
    String,
    Table,
    Text,
    TypeDecorator,
    Uuid,
    orm,
)

from homesync.domain.model import EntitySource, RegistryEntity

if TYPE_CHECKING:
    from homesync.domain.model import Attributes

log = logging.getLogger(__name__)

UUIDColumnType = Uuid[uuid.UUID]


class UTCDateTime(TypeDecorator[datetime]):
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    def process_result_value(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        return value if value.tzinfo else value.replace(tzinfo=UTC)


class AttributesType(TypeDecorator[dict[str, Any]]):
    """Attribute maps stored as canonical (sorted-key) JSON text."""

    impl = Text
    cache_ok = True

    def process_bind_param(self, value: Attributes | None, dialect: Dialect) -> str:
        _ = dialect
        return json.dumps(value or {}, sort_keys=True, separators=(",", ":"))

    def process_result_value(self, value: str | None, dialect: Dialect) -> Attributes:
        _ = dialect
        if not value:
            return {}
        loaded = json.loads(value)
        if not isinstance(loaded, dict):
            return {}
        return cast("Attributes", cast(dict[str, Any], loaded))


mapper_registry = orm.registry()
mapper_registry.metadata.naming_convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_label)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_label)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

SOURCE_EXTERNAL_ID_CHECK = (
    "(source IN ('external', 'hybrid') AND external_id IS NOT NULL) "
    "OR (source = 'internal' AND external_id IS NULL)"
)

entity_table = Table(
    "entity",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column("entity_id", String(255), nullable=False, unique=True),
    Column("device_id", String(255), nullable=False),
    Column("external_id", String(255), nullable=True, unique=True),
    Column("domain", String(64), nullable=False),
    Column("name", String(255), nullable=False),
    Column("icon", String(255), nullable=True),
    Column("state", String(255), nullable=False),
    Column("attributes", AttributesType, nullable=False),
    Column(
        "source",
        Enum(
            EntitySource,
            native_enum=False,
            length=16,
            values_callable=lambda members: [member.value for member in members],
        ),
        nullable=False,
    ),
    Column("last_changed", UTCDateTime, nullable=True),
    Column("last_updated", UTCDateTime, nullable=True),
    Column("created_at", UTCDateTime, nullable=False),
    CheckConstraint(SOURCE_EXTERNAL_ID_CHECK, name="source_external_id"),
    Index("ix_entity_domain_source", "domain", "source"),
)


@cache
def start_mappers() -> orm.registry:
    """Configure SQLAlchemy mappers for the registry model."""

    log.info("Starting SQLAlchemy mappers")
    mapper_registry.map_imperatively(RegistryEntity, entity_table)
    return mapper_registry
