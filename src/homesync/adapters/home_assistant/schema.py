"""Pydantic models describing Home Assistant REST and websocket payloads."""

from __future__ import annotations

from datetime import datetime  # noqa: TC003
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator


def _blank_to_none(value: object) -> object:
    if isinstance(value, str):
        stripped = value.strip()
        return stripped or None
    return value


class HomeAssistantBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class StatePayload(HomeAssistantBaseModel):
    """One entry of ``GET /api/states``; also embedded in ``state_changed`` events."""

    entity_id: str | None = None
    state: str = "unknown"
    attributes: dict[str, Any] = Field(default_factory=dict)
    last_changed: datetime | None = None
    last_updated: datetime | None = None

    _normalize_entity_id = field_validator("entity_id", mode="before")(_blank_to_none)

    @field_validator("state", mode="before")
    @classmethod
    def _coerce_state(cls, value: object) -> object:
        if value is None:
            return "unknown"
        if isinstance(value, bool | int | float):
            return str(value)
        return value

    @field_validator("attributes", mode="before")
    @classmethod
    def _default_attributes(cls, value: object) -> object:
        return {} if value is None else value


StatesAdapter: TypeAdapter[list[StatePayload]] = TypeAdapter(list[StatePayload])


class StateChangedData(HomeAssistantBaseModel):
    entity_id: str | None = None
    old_state: StatePayload | None = None
    new_state: StatePayload | None = None


class RegistryUpdatedData(HomeAssistantBaseModel):
    action: str
    entity_id: str
    old_entity_id: str | None = None


class EventPayload(HomeAssistantBaseModel):
    event_type: str
    data: dict[str, Any] = Field(default_factory=dict)


class EventMessage(HomeAssistantBaseModel):
    """Websocket envelope: ``{"type": "event", "id": 1, "event": {...}}``."""

    type: str
    id: int | None = None
    event: EventPayload | None = None
