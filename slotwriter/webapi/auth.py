"""Bearer token check for the slot writer API.

The expected token comes from the ``webapi`` block of the active
configuration: ``token`` wins over ``token_file``. Both can be set through
``SLOTWRITER_WEBAPI_TOKEN`` and ``SLOTWRITER_WEBAPI_TOKEN_FILE``. Without
either, every request is accepted.
"""

from __future__ import annotations

import hmac
from pathlib import Path
from typing import Optional

from fastapi import HTTPException, Security, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from slotwriter.config import WebApiSettings

from . import runtime

_bearer_scheme = HTTPBearer(auto_error=False)


def _read_token_file(path: str) -> Optional[str]:
    try:
        token = Path(path).read_text(encoding="utf-8").strip()
    except FileNotFoundError:
        return None
    except OSError as exc:
        raise RuntimeError(f"No se pudo leer el token desde {path}: {exc}") from exc
    return token or None


def expected_token(settings: WebApiSettings) -> Optional[str]:
    if settings.token:
        return settings.token
    if settings.token_file:
        return _read_token_file(settings.token_file)
    return None


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def require_token(
    credentials: HTTPAuthorizationCredentials | None = Security(_bearer_scheme),
) -> None:
    config = await runtime.gateway_manager.config()
    expected = expected_token(config.webapi)
    if expected is None:
        return
    if credentials is None:
        raise _unauthorized("Token requerido")
    if not hmac.compare_digest(credentials.credentials.encode("utf-8"), expected.encode("utf-8")):
        raise _unauthorized("Token inválido")
