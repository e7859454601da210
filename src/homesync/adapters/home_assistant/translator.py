"""Translate Home Assistant payloads into domain state records and events."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

from pydantic import ValidationError as PydanticValidationError

from homesync.domain.model import (
    EntityRemoved,
    EntityRenamed,
    ExternalEvent,
    ExternalState,
    StateUpdate,
    normalize_attributes,
)

from .schema import (
    EventMessage,
    EventPayload,
    RegistryUpdatedData,
    StateChangedData,
    StatePayload,
    StatesAdapter,
)

if TYPE_CHECKING:
    from collections.abc import Mapping

log = getLogger(__name__)

STATE_CHANGED = "state_changed"
ENTITY_REGISTRY_UPDATED = "entity_registry_updated"


def parse_state(payload: StatePayload | Mapping[str, object]) -> ExternalState:
    model = (
        payload if isinstance(payload, StatePayload) else StatePayload.model_validate(payload)
    )
    return ExternalState(
        external_id=model.entity_id,
        state=model.state,
        attributes=normalize_attributes(model.attributes),
        last_changed=model.last_changed,
        last_updated=model.last_updated,
    )


def parse_states(raw: object) -> list[ExternalState]:
    """Validate a ``/api/states`` body. Raises pydantic's ``ValidationError`` on bad shape."""

    return [parse_state(payload) for payload in StatesAdapter.validate_python(raw)]


def parse_event(message: Mapping[str, object]) -> ExternalEvent | None:
    """Translate a websocket message (or bare event) into a domain event.

    Returns ``None`` for messages the engine does not care about.
    """

    try:
        event = _extract_event(message)
        if event is None:
            return None
        if event.event_type == STATE_CHANGED:
            return _state_changed(StateChangedData.model_validate(event.data))
        if event.event_type == ENTITY_REGISTRY_UPDATED:
            return _registry_updated(RegistryUpdatedData.model_validate(event.data))
    except PydanticValidationError:
        log.warning("Ignoring malformed event message", exc_info=True)
    return None


def _extract_event(message: Mapping[str, object]) -> EventPayload | None:
    if "event_type" in message:
        return EventPayload.model_validate(message)
    envelope = EventMessage.model_validate(message)
    if envelope.type != "event":
        return None
    return envelope.event


def _state_changed(data: StateChangedData) -> ExternalEvent | None:
    if data.new_state is None:
        entity_id = data.entity_id or (data.old_state.entity_id if data.old_state else None)
        return EntityRemoved(external_id=entity_id) if entity_id else None

    new = data.new_state
    if new.entity_id is None and data.entity_id:
        new = new.model_copy(update={"entity_id": data.entity_id})
    previous = parse_state(data.old_state) if data.old_state is not None else None
    return StateUpdate(new=parse_state(new), previous=previous)


def _registry_updated(data: RegistryUpdatedData) -> ExternalEvent | None:
    if data.action == "remove":
        return EntityRemoved(external_id=data.entity_id)
    if data.action == "update" and data.old_entity_id and data.old_entity_id != data.entity_id:
        return EntityRenamed(old_external_id=data.old_entity_id, new_external_id=data.entity_id)
    return None
