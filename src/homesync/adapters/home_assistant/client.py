"""Snapshot fetcher for the Home Assistant REST API."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING

import httpx
from pydantic import ValidationError as PydanticValidationError

from homesync.adapters.http_resilience import ResilientClient
from homesync.config import HomeAssistantConfig
from homesync.domain.errors import ConnectivityError

from .translator import parse_states

if TYPE_CHECKING:
    from collections.abc import Callable

    from homesync.config import ResilienceConfig
    from homesync.domain.model import ExternalState
    from homesync.domain.ports import StateSnapshotFetcher

log = getLogger(__name__)

STATES_PATH = "/api/states"


def _default_client_factory(config: ResilienceConfig) -> ResilientClient:
    return ResilientClient(config)


@dataclass(slots=True)
class HomeAssistantStateFetcher:
    """Fetch every entity state Home Assistant currently knows about."""

    config: HomeAssistantConfig = field(default_factory=HomeAssistantConfig.from_environment)
    client_factory: Callable[[ResilienceConfig], ResilientClient] = field(
        default=_default_client_factory
    )

    def __call__(self) -> list[ExternalState]:
        return asyncio.run(self.fetch_states())

    async def fetch_states(self) -> list[ExternalState]:
        url = f"{self.config.base_url}{STATES_PATH}"
        headers = {
            "Authorization": f"Bearer {self.config.access_token}",
            "Content-Type": "application/json",
        }
        try:
            async with self.client_factory(self.config.resilience) as client:
                response = await client.get(url, headers=headers)
        except httpx.HTTPError as exc:
            raise ConnectivityError(f"Home Assistant unreachable at {url}: {exc}") from exc

        if response.status_code in {httpx.codes.UNAUTHORIZED, httpx.codes.FORBIDDEN}:
            raise ConnectivityError(
                f"Home Assistant rejected the access token ({response.status_code})"
            )
        if response.is_error:
            raise ConnectivityError(
                f"Home Assistant returned {response.status_code} for {STATES_PATH}"
            )

        try:
            states = parse_states(response.json())
        except (ValueError, PydanticValidationError) as exc:
            raise ConnectivityError(f"Unexpected Home Assistant payload: {exc}") from exc

        log.info("Fetched %d states from Home Assistant", len(states))
        return states


if TYPE_CHECKING:
    _fetcher_check: StateSnapshotFetcher = HomeAssistantStateFetcher()
