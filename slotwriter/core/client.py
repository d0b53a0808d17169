"""HTTP client that writes single line protocol records to InfluxDB v2."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Literal, Optional
from urllib.parse import urlencode

import requests

logger = logging.getLogger("sender")

TRANSPORT_ERROR_CODE = 998
UNKNOWN_ERROR_CODE = 999

FailureKind = Literal["rejected", "unreachable", "unknown"]


@dataclass(frozen=True)
class Destination:
    """Where and how records are written. Built once at startup."""

    base_url: str
    org: str
    bucket: str
    token: str
    timeout_s: float = 5.0
    verify_ssl: bool = True

    @classmethod
    def from_host(cls, host: str, port: int | str, **kwargs) -> "Destination":
        return cls(base_url=f"http://{host}:{port}", **kwargs)

    @property
    def write_url(self) -> str:
        query = urlencode({"org": self.org, "bucket": self.bucket, "precision": "ms"})
        return f"{self.base_url.rstrip('/')}/api/v2/write?{query}"

    @property
    def headers(self) -> dict:
        return {
            "Authorization": f"Token {self.token}",
            "Content-Type": "text/plain; charset=utf-8",
        }


@dataclass(frozen=True)
class WriteResult:
    """Outcome of one write. ``code``/``message`` are only set on failure."""

    ok: bool
    code: Optional[int] = None
    message: Optional[str] = None
    kind: Optional[FailureKind] = None

    @classmethod
    def success(cls) -> "WriteResult":
        return cls(ok=True)

    @classmethod
    def rejected(cls, status_code: int, body: str) -> "WriteResult":
        return cls(ok=False, code=status_code, message=body, kind="rejected")

    @classmethod
    def unreachable(cls, description: str) -> "WriteResult":
        return cls(ok=False, code=TRANSPORT_ERROR_CODE, message=description, kind="unreachable")

    @classmethod
    def unknown(cls, description: str) -> "WriteResult":
        return cls(ok=False, code=UNKNOWN_ERROR_CODE, message=description, kind="unknown")


class WriteClient:
    """Issue one POST per record against a fixed :class:`Destination`."""

    def __init__(self, destination: Destination, *, session: Optional[requests.Session] = None) -> None:
        self.destination = destination
        self.session = session or requests.Session()
        self.session.verify = destination.verify_ssl
        self._closed = False

    def send(self, body: str) -> WriteResult:
        destination = self.destination
        try:
            response = self.session.post(
                destination.write_url,
                headers=destination.headers,
                data=body.encode("utf-8"),
                timeout=destination.timeout_s,
            )
        except requests.RequestException as exc:
            if getattr(exc, "response", None) is not None:
                return self._classify(exc.response, body)
            reason = f"{type(exc).__name__}: {exc}"
            logger.warning("InfluxDB unreachable at %s (%s).", destination.base_url, reason)
            return WriteResult.unreachable(reason)
        except Exception as exc:
            logger.exception("Unexpected error while writing %r", body)
            return WriteResult.unknown(str(exc) or type(exc).__name__)

        return self._classify(response, body)

    def _classify(self, response: requests.Response, body: str) -> WriteResult:
        if 200 <= response.status_code < 300:
            logger.debug("Wrote %r (HTTP %s).", body, response.status_code)
            return WriteResult.success()
        text = self._extract_body(response)
        logger.warning("InfluxDB rejected %r: status=%s body=%s", body, response.status_code, text)
        return WriteResult.rejected(response.status_code, text)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self.session.close()

    @staticmethod
    def _extract_body(response: requests.Response, limit: int = 512) -> str:
        try:
            body = response.text or ""
        except Exception as exc:  # pragma: no cover - extremely rare
            return f"<unable to decode body: {exc}>"
        if len(body) <= limit:
            return body
        return f"{body[:limit]}... [truncated {len(body) - limit} chars]"


def send(destination: Destination, body: str, *, session: Optional[requests.Session] = None) -> WriteResult:
    """Write ``body`` once to ``destination`` using a throwaway client."""

    client = WriteClient(destination, session=session)
    try:
        return client.send(body)
    finally:
        if session is None:
            client.close()
