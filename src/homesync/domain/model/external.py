"""Snapshot records and change events reported by the external source."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from .identifiers import UNKNOWN_NAME, display_name_from_id, extract_domain, object_id

if TYPE_CHECKING:
    from datetime import datetime

    from .attributes import Attributes


@dataclass(frozen=True, kw_only=True)
class ExternalState:
    """One entity as the external source currently reports it."""

    external_id: str | None
    state: str
    attributes: Attributes = field(default_factory=dict)
    last_changed: datetime | None = None
    last_updated: datetime | None = None

    @property
    def domain(self) -> str:
        return extract_domain(self.external_id)

    @property
    def object_id(self) -> str:
        return object_id(self.external_id)

    @property
    def display_name(self) -> str:
        friendly = self.attributes.get("friendly_name")
        if isinstance(friendly, str) and friendly.strip():
            return friendly.strip()
        if self.external_id:
            return display_name_from_id(self.external_id)
        return UNKNOWN_NAME

    @property
    def icon(self) -> str | None:
        icon = self.attributes.get("icon")
        return icon if isinstance(icon, str) and icon else None


@dataclass(frozen=True, kw_only=True)
class StateUpdate:
    """A real-time state change; ``previous`` is absent for first sightings."""

    new: ExternalState
    previous: ExternalState | None = None


@dataclass(frozen=True, kw_only=True)
class EntityRenamed:
    old_external_id: str
    new_external_id: str


@dataclass(frozen=True, kw_only=True)
class EntityRemoved:
    external_id: str


type ExternalEvent = StateUpdate | EntityRenamed | EntityRemoved
