"""Status and configuration inspection endpoints."""

from __future__ import annotations

from typing import Any, Dict, Literal, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from . import runtime
from .auth import require_token

router = APIRouter(tags=["status"])


class StatusResponse(BaseModel):
    last_code: Optional[int] = Field(None, description="Último código HTTP o centinela (998/999)")
    last_message: Optional[str] = Field(None, description="Último mensaje de error")
    last_slot: Optional[int] = None
    state: Literal["idle", "dispatching", "stopped"]
    slot_count: int
    metrics: Dict[str, int] = Field(default_factory=dict)


@router.get("/status", response_model=StatusResponse)
async def get_status(_: None = Depends(require_token)) -> Dict[str, Any]:
    gateway = await runtime.gateway_manager.get()
    return gateway.status_payload()


@router.get("/config", response_model=Dict[str, Any])
async def get_config(_: None = Depends(require_token)) -> Dict[str, Any]:
    """Return the active configuration with the token redacted."""

    gateway = await runtime.gateway_manager.get()
    payload = gateway.config.to_dict()
    payload["destination"]["token"] = "***"
    if payload["webapi"]["token"]:
        payload["webapi"]["token"] = "***"
    payload["slots"]["templates"] = gateway.registry.raw_templates()
    payload["slots"]["count"] = gateway.registry.count
    if gateway.destination is not None:
        payload["destination"]["write_url"] = gateway.destination.write_url
    return payload
