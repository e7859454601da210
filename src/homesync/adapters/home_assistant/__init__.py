"""Home Assistant adapter: REST snapshot fetcher and websocket event translation."""

from __future__ import annotations

from .client import HomeAssistantStateFetcher
from .schema import EventMessage, StateChangedData, StatePayload
from .translator import parse_event, parse_state, parse_states

__all__ = [
    "EventMessage",
    "HomeAssistantStateFetcher",
    "StateChangedData",
    "StatePayload",
    "parse_event",
    "parse_state",
    "parse_states",
]
