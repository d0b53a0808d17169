"""Helpers to load, validate and persist configuration files."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, Mapping, MutableMapping, Optional

import yaml
from dotenv import dotenv_values

from .schema import WriterConfig

CONFIG_DIR = Path(__file__).resolve().parent
CONFIG_FILENAME = "writer.yaml"

_ENV_DESTINATION_KEYS = {
    "SLOTWRITER_HOST": "host",
    "SLOTWRITER_PORT": "port",
    "SLOTWRITER_URL": "url",
    "SLOTWRITER_ORG": "org",
    "SLOTWRITER_BUCKET": "bucket",
    "SLOTWRITER_TOKEN": "token",
    "SLOTWRITER_TIMEOUT_S": "timeout_s",
    "SLOTWRITER_VERIFY_SSL": "verify_ssl",
}

_ENV_WEBAPI_KEYS = {
    "SLOTWRITER_WEBAPI_HOST": "host",
    "SLOTWRITER_WEBAPI_PORT": "port",
    "SLOTWRITER_WEBAPI_TOKEN": "token",
    "SLOTWRITER_WEBAPI_TOKEN_FILE": "token_file",
    "SLOTWRITER_WEBAPI_LOG_LEVEL": "log_level",
}


def _read_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        raise FileNotFoundError(path)
    with path.open("r", encoding="utf-8") as fh:
        data = yaml.safe_load(fh) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Expected a mapping at {path}, found {type(data).__name__}")
    return data


def _write_yaml(path: Path, payload: Mapping[str, Any]):
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as fh:
        yaml.safe_dump(payload, fh, sort_keys=False, allow_unicode=True)


def config_path() -> Path:
    """Location of the configuration file, overridable with SLOTWRITER_CONFIG."""

    override = os.environ.get("SLOTWRITER_CONFIG")
    if override:
        return Path(override)
    return CONFIG_DIR / CONFIG_FILENAME


def apply_env_overrides(raw: Mapping[str, Any], env: Mapping[str, Any]) -> Dict[str, Any]:
    """Return a copy of ``raw`` with SLOTWRITER_* variables merged in."""

    payload: Dict[str, Any] = {key: value for key, value in raw.items()}
    destination: MutableMapping[str, Any] = dict(payload.get("destination") or {})
    for env_key, field_name in _ENV_DESTINATION_KEYS.items():
        value = env.get(env_key)
        if value not in (None, ""):
            destination[field_name] = value
    payload["destination"] = destination

    slot_count = env.get("SLOTWRITER_SLOT_COUNT")
    if slot_count not in (None, ""):
        slots = dict(payload.get("slots") or {})
        slots["count"] = slot_count
        payload["slots"] = slots

    max_workers = env.get("SLOTWRITER_MAX_WORKERS")
    if max_workers not in (None, ""):
        dispatch = dict(payload.get("dispatch") or {})
        dispatch["max_workers"] = max_workers
        payload["dispatch"] = dispatch

    webapi = dict(payload.get("webapi") or {})
    for env_key, field_name in _ENV_WEBAPI_KEYS.items():
        value = env.get(env_key)
        if value not in (None, ""):
            webapi[field_name] = value
    if webapi:
        payload["webapi"] = webapi
    return payload


def load_config(path: Optional[Path] = None, env: Optional[Mapping[str, Any]] = None) -> WriterConfig:
    """Read writer.yaml, apply environment overrides and validate it."""

    cfg_path = path or config_path()
    raw = _read_yaml(cfg_path)
    payload = apply_env_overrides(raw, os.environ if env is None else env)
    return WriterConfig.from_mapping(payload)


def resolve_config(path: Optional[Path] = None, env: Optional[Mapping[str, Any]] = None) -> WriterConfig:
    """Load writer.yaml when present, otherwise build the config from SLOTWRITER_* variables."""

    env = os.environ if env is None else env
    cfg_path = path or config_path()
    if cfg_path.exists():
        return load_config(cfg_path, env)
    return config_from_env(env)


def save_config(config: WriterConfig, path: Optional[Path] = None):
    """Persist the configuration using the canonical schema."""

    cfg_path = path or config_path()
    _write_yaml(cfg_path, config.to_dict())


def config_from_env(env: Mapping[str, Any]) -> WriterConfig:
    """Create a configuration purely from environment variables."""

    templates = []
    index = 1
    while env.get(f"SLOTWRITER_TEMPLATE_{index}") is not None:
        templates.append(env[f"SLOTWRITER_TEMPLATE_{index}"])
        index += 1
    payload = apply_env_overrides({"slots": {"templates": templates}}, env)
    return WriterConfig.from_mapping(payload)


def default_config() -> WriterConfig:
    """Return a template configuration with placeholder values."""

    payload = {
        "destination": {
            "host": "127.0.0.1",
            "port": 8086,
            "url": None,
            "org": "myInfluxdbOrganizationName",
            "bucket": "myInfluxdbBucketName",
            "token": "TokenWithWriteAccess",
            "timeout_s": 5.0,
            "verify_ssl": True,
        },
        "slots": {"count": 1, "templates": []},
        "dispatch": {"max_workers": 8, "metrics_log_interval_s": 60.0},
        "webapi": {"host": "0.0.0.0", "port": 8000, "log_level": "info"},
    }
    return WriterConfig.from_mapping(payload)


def load_env_file(path: Path) -> Mapping[str, str]:
    """Load key/value pairs from a dotenv file."""

    values = dotenv_values(str(path))
    return {k: v for k, v in values.items() if v is not None}
