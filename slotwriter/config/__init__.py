"""Configuration schemas and persistence helpers for the slot writer."""

from .schema import MAX_SLOTS, DestinationSettings, DispatchSettings, SlotSettings, WebApiSettings, WriterConfig
from .store import (
    apply_env_overrides,
    config_from_env,
    config_path,
    default_config,
    load_config,
    load_env_file,
    resolve_config,
    save_config,
)

__all__ = [
    "MAX_SLOTS",
    "DestinationSettings",
    "DispatchSettings",
    "SlotSettings",
    "WebApiSettings",
    "WriterConfig",
    "apply_env_overrides",
    "config_from_env",
    "config_path",
    "default_config",
    "load_config",
    "load_env_file",
    "resolve_config",
    "save_config",
]
