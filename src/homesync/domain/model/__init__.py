"""Public domain model surface."""

from __future__ import annotations

from homesync.domain.model.attributes import (
    DELETED_AT,
    DELETED_FROM_SOURCE,
    AttributeValue,
    Attributes,
    normalize_attributes,
)
from homesync.domain.model.entity import UNAVAILABLE, RegistryEntity
from homesync.domain.model.enums import (
    Confidence,
    ConflictPolicy,
    ConflictType,
    DeletionStrategy,
    EntitySource,
    ResolutionAction,
)
from homesync.domain.model.external import (
    EntityRemoved,
    EntityRenamed,
    ExternalEvent,
    ExternalState,
    StateUpdate,
)
from homesync.domain.model.identifiers import (
    DISAMBIGUATION_SUFFIX,
    UNKNOWN_DOMAIN,
    display_name_from_id,
    extract_domain,
    is_valid_external_id,
    object_id,
)

__all__ = [
    "DELETED_AT",
    "DELETED_FROM_SOURCE",
    "DISAMBIGUATION_SUFFIX",
    "UNAVAILABLE",
    "UNKNOWN_DOMAIN",
    "AttributeValue",
    "Attributes",
    "Confidence",
    "ConflictPolicy",
    "ConflictType",
    "DeletionStrategy",
    "EntityRemoved",
    "EntityRenamed",
    "EntitySource",
    "ExternalEvent",
    "ExternalState",
    "RegistryEntity",
    "ResolutionAction",
    "StateUpdate",
    "display_name_from_id",
    "extract_domain",
    "is_valid_external_id",
    "normalize_attributes",
    "object_id",
]
