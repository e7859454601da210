"""Domain enums (pure, dependency-light)."""

from __future__ import annotations

from enum import StrEnum


class EntitySource(StrEnum):
    """Provenance of a registry record; decides who owns identity and state."""

    INTERNAL = "internal"
    EXTERNAL = "external"
    HYBRID = "hybrid"

    @property
    def is_linked(self) -> bool:
        return self is not EntitySource.INTERNAL


class Confidence(StrEnum):
    HIGH = "high"
    MEDIUM = "medium"
    NONE = "none"

    @property
    def rank(self) -> int:
        return _CONFIDENCE_RANK[self]


_CONFIDENCE_RANK = {Confidence.NONE: 0, Confidence.MEDIUM: 1, Confidence.HIGH: 2}


class ConflictType(StrEnum):
    """Identity/attribute discrepancies, listed in resolution precedence order."""

    EXTERNAL_ID_MISMATCH = "external_id_mismatch"  # same external id, different entity id
    ENTITY_ID_COLLISION = "entity_id_collision"  # same entity id, different external id
    DOMAIN_CHANGED = "domain_changed"
    NAME_CHANGED = "name_changed"
    INTERNAL_MATCHES_EXTERNAL = "internal_matches_external"


class ResolutionAction(StrEnum):
    UPDATE = "update"
    CREATE = "create"
    MERGE = "merge"
    SKIP = "skip"
    ERROR = "error"


class ConflictPolicy(StrEnum):
    AUTO = "auto"
    SKIP = "skip"


class DeletionStrategy(StrEnum):
    SOFT = "soft"
    HARD = "hard"
    PRESERVE = "preserve"
