"""Typed configuration models implemented with dataclasses."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence

MAX_SLOTS = 80
_LOG_LEVELS = ("critical", "error", "warning", "info", "debug", "trace")


def _as_str(value: Any, field_name: str, *, optional: bool = False) -> Optional[str]:
    if value is None:
        if optional:
            return None
        raise ValueError(f"'{field_name}' es obligatorio")
    text = str(value).strip()
    if not text and not optional:
        raise ValueError(f"'{field_name}' no puede estar vacío")
    return text or None


def _as_int(value: Any, field_name: str) -> int:
    if value is None:
        raise ValueError(f"'{field_name}' es obligatorio")
    try:
        result = int(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"'{field_name}' debe ser un entero válido") from exc
    return result


def _as_float(value: Any, field_name: str) -> float:
    if value is None:
        raise ValueError(f"'{field_name}' es obligatorio")
    try:
        result = float(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"'{field_name}' debe ser numérico") from exc
    return result


def _as_bool(value: Any, default: bool = True) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in {"1", "true", "yes", "si", "sí"}:
        return True
    if text in {"0", "false", "no"}:
        return False
    return default


@dataclass
class DestinationSettings:
    org: str
    bucket: str
    token: str
    host: str = "127.0.0.1"
    port: int = 8086
    url: Optional[str] = None
    timeout_s: float = 5.0
    verify_ssl: bool = True

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "DestinationSettings":
        org = _as_str(data.get("org", data.get("organization")), "destination.org")
        bucket = _as_str(data.get("bucket"), "destination.bucket")
        token = _as_str(data.get("token"), "destination.token")
        host = _as_str(data.get("host", data.get("ip", "127.0.0.1")), "destination.host")
        port = _as_int(data.get("port", 8086), "destination.port")
        if not 0 < port < 65536:
            raise ValueError("destination.port debe estar entre 1 y 65535")
        url_raw = data.get("url")
        url = _as_str(url_raw, "destination.url", optional=True) if url_raw is not None else None
        if url is not None and not url.lower().startswith(("http://", "https://")):
            raise ValueError("destination.url debe comenzar con http:// o https://")
        timeout_s = _as_float(data.get("timeout_s", 5.0), "destination.timeout_s")
        if timeout_s <= 0:
            raise ValueError("destination.timeout_s debe ser > 0")
        verify_ssl = _as_bool(data.get("verify_ssl"), True)
        return cls(
            org=org,
            bucket=bucket,
            token=token,
            host=host,
            port=port,
            url=url,
            timeout_s=timeout_s,
            verify_ssl=verify_ssl,
        )

    @property
    def base_url(self) -> str:
        """Cloud URL when configured, otherwise ``http://host:port``."""

        if self.url:
            return self.url.rstrip("/")
        return f"http://{self.host}:{self.port}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "host": self.host,
            "port": self.port,
            "url": self.url,
            "org": self.org,
            "bucket": self.bucket,
            "token": self.token,
            "timeout_s": self.timeout_s,
            "verify_ssl": self.verify_ssl,
        }


@dataclass
class SlotSettings:
    count: int = 1
    templates: List[Optional[str]] = field(default_factory=list)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None) -> "SlotSettings":
        if not data:
            return cls()
        templates_raw = data.get("templates") or []
        if isinstance(templates_raw, str) or not isinstance(templates_raw, Sequence):
            raise ValueError("slots.templates debe ser una lista")
        templates = [None if item is None else str(item) for item in templates_raw]
        count = _as_int(data.get("count", max(len(templates), 1)), "slots.count")
        if not 1 <= count <= MAX_SLOTS:
            raise ValueError(f"slots.count debe estar entre 1 y {MAX_SLOTS}")
        if len(templates) > count:
            raise ValueError("slots.templates tiene más entradas que slots.count")
        return cls(count=count, templates=templates)

    def template_for(self, index: int) -> Optional[str]:
        if index < len(self.templates):
            return self.templates[index]
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {"count": self.count, "templates": list(self.templates)}


@dataclass
class DispatchSettings:
    max_workers: int = 8
    metrics_log_interval_s: float = 60.0

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None) -> "DispatchSettings":
        if not data:
            return cls()
        max_workers = _as_int(data.get("max_workers", 8), "dispatch.max_workers")
        if max_workers < 1:
            raise ValueError("dispatch.max_workers debe ser >= 1")
        interval = _as_float(data.get("metrics_log_interval_s", 60.0), "dispatch.metrics_log_interval_s")
        if interval < 0:
            raise ValueError("dispatch.metrics_log_interval_s debe ser >= 0")
        return cls(max_workers=max_workers, metrics_log_interval_s=interval)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "max_workers": self.max_workers,
            "metrics_log_interval_s": self.metrics_log_interval_s,
        }


@dataclass
class WebApiSettings:
    host: str = "0.0.0.0"
    port: int = 8000
    token: Optional[str] = None
    token_file: Optional[str] = None
    log_level: str = "info"

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None) -> "WebApiSettings":
        if not data:
            return cls()
        host = _as_str(data.get("host", "0.0.0.0"), "webapi.host")
        port = _as_int(data.get("port", 8000), "webapi.port")
        if not 0 < port < 65536:
            raise ValueError("webapi.port debe estar entre 1 y 65535")
        token = _as_str(data.get("token"), "webapi.token", optional=True)
        token_file = _as_str(data.get("token_file"), "webapi.token_file", optional=True)
        log_level = _as_str(data.get("log_level", "info"), "webapi.log_level").lower()
        if log_level not in _LOG_LEVELS:
            raise ValueError(f"webapi.log_level debe ser uno de {', '.join(_LOG_LEVELS)}")
        return cls(host=host, port=port, token=token, token_file=token_file, log_level=log_level)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "host": self.host,
            "port": self.port,
            "token": self.token,
            "token_file": self.token_file,
            "log_level": self.log_level,
        }


@dataclass
class WriterConfig:
    destination: DestinationSettings
    slots: SlotSettings = field(default_factory=SlotSettings)
    dispatch: DispatchSettings = field(default_factory=DispatchSettings)
    webapi: WebApiSettings = field(default_factory=WebApiSettings)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "WriterConfig":
        destination_payload = data.get("destination")
        if not isinstance(destination_payload, Mapping):
            raise ValueError("El bloque 'destination' es obligatorio")
        return cls(
            destination=DestinationSettings.from_mapping(destination_payload),
            slots=SlotSettings.from_mapping(data.get("slots")),
            dispatch=DispatchSettings.from_mapping(data.get("dispatch")),
            webapi=WebApiSettings.from_mapping(data.get("webapi")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "destination": self.destination.to_dict(),
            "slots": self.slots.to_dict(),
            "dispatch": self.dispatch.to_dict(),
            "webapi": self.webapi.to_dict(),
        }
