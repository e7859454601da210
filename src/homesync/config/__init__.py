"""Application configuration helpers."""

from __future__ import annotations

from .env import require_env_vars
from .errors import ConfigurationError, MissingConfigurationError
from .home_assistant import HomeAssistantConfig, get_home_assistant_config, normalize_base_url
from .http_resilience import RateLimit, ResilienceConfig, RetryPolicy
from .logging import configure_logging
from .storage import DatabaseConfig, StorageConfig, get_database_config, get_storage_config
from .sync import DEFAULT_DEVICE_ID, SyncConfig, get_sync_config

__all__ = [
    "DEFAULT_DEVICE_ID",
    "ConfigurationError",
    "DatabaseConfig",
    "HomeAssistantConfig",
    "MissingConfigurationError",
    "RateLimit",
    "ResilienceConfig",
    "RetryPolicy",
    "StorageConfig",
    "SyncConfig",
    "configure_logging",
    "get_database_config",
    "get_home_assistant_config",
    "get_storage_config",
    "get_sync_config",
    "normalize_base_url",
    "require_env_vars",
]
