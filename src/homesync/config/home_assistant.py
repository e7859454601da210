"""Home Assistant connection settings."""

from __future__ import annotations

from dataclasses import dataclass
from urllib.parse import urlsplit

from .env import require_env_vars
from .errors import ConfigurationError
from .http_resilience import RateLimit, ResilienceConfig

HOME_ASSISTANT_TIMEOUT_SECONDS = 10.0


@dataclass(frozen=True)
class HomeAssistantConfig:
    """Holds the base URL and long-lived access token of a Home Assistant instance."""

    base_url: str
    access_token: str
    resilience: ResilienceConfig

    @classmethod
    def from_environment(cls) -> HomeAssistantConfig:
        return get_home_assistant_config()


def normalize_base_url(value: str) -> str:
    url = value.strip().rstrip("/")
    parts = urlsplit(url)
    if parts.scheme not in {"http", "https"} or not parts.netloc:
        raise ConfigurationError(f"Home Assistant URL must be http(s): {value!r}")
    return url


def get_home_assistant_config(*, resilience: ResilienceConfig | None = None) -> HomeAssistantConfig:
    values = require_env_vars(("HOMESYNC_HA_URL", "HOMESYNC_HA_TOKEN"))
    base_url = normalize_base_url(values["HOMESYNC_HA_URL"])
    return HomeAssistantConfig(
        base_url=base_url,
        access_token=values["HOMESYNC_HA_TOKEN"].strip(),
        resilience=resilience
        or ResilienceConfig(
            name="home_assistant",
            base_url=base_url,
            timeout_seconds=HOME_ASSISTANT_TIMEOUT_SECONDS,
            ratelimit=RateLimit(max_calls=10, per_seconds=1.0),
        ),
    )
