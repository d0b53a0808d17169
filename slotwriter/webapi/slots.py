"""Slot management and value activation endpoints."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Union

import anyio
from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from slotwriter.config import MAX_SLOTS
from slotwriter.core import MalformedTemplate, SlotSnapshot

from . import runtime
from .auth import require_token

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/slots", tags=["slots"])

SlotValue = Union[bool, int, float, str]


class SlotInfo(BaseModel):
    index: int
    value: Any = None
    template: Optional[str] = Field(None, description="Cadena de configuración tal como se recibió")
    bound: bool
    measurement: Optional[str] = None
    tags: Dict[str, str] = Field(default_factory=dict)
    field_keys: List[str] = Field(default_factory=list)
    error: Optional[str] = None


class CountRequest(BaseModel):
    count: int = Field(..., ge=1, le=MAX_SLOTS, description="Cantidad de slots")


class TemplateRequest(BaseModel):
    template: Optional[str] = Field(
        None,
        description="measurement,tagKey=tagValue,... fieldKey1,fieldKey2",
    )


class ValuesRequest(BaseModel):
    values: Dict[int, SlotValue] = Field(..., description="Valores nuevos por índice de slot")


class ValuesResponse(BaseModel):
    dispatched: List[int]


def _slot_info(snapshot: SlotSnapshot) -> Dict[str, Any]:
    template = snapshot.template
    return {
        "index": snapshot.index,
        "value": snapshot.value,
        "template": snapshot.raw_template,
        "bound": snapshot.bound,
        "measurement": template.measurement if template else None,
        "tags": template.tag_map if template else {},
        "field_keys": list(template.field_keys) if template else [],
        "error": snapshot.error,
    }


@router.get("", response_model=List[SlotInfo])
async def list_slots(_: None = Depends(require_token)) -> List[Dict[str, Any]]:
    gateway = await runtime.gateway_manager.get()
    return [_slot_info(snapshot) for snapshot in gateway.registry.slots()]


@router.put("/count", response_model=List[SlotInfo])
async def update_count(request: CountRequest, _: None = Depends(require_token)) -> List[Dict[str, Any]]:
    gateway = await runtime.gateway_manager.get()
    gateway.resize(request.count)
    logger.info("Slot count set to %d", request.count)
    return [_slot_info(snapshot) for snapshot in gateway.registry.slots()]


@router.put("/{index}/template", response_model=SlotInfo)
async def update_template(
    index: int,
    request: TemplateRequest,
    _: None = Depends(require_token),
) -> Dict[str, Any]:
    gateway = await runtime.gateway_manager.get()
    try:
        gateway.set_template(index, request.template)
    except IndexError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except MalformedTemplate as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return _slot_info(gateway.registry.snapshot(index))


@router.post("/values", response_model=ValuesResponse, status_code=status.HTTP_202_ACCEPTED)
async def push_values(request: ValuesRequest, _: None = Depends(require_token)) -> Dict[str, Any]:
    """Store the received values and launch one write per changed slot."""

    gateway = await runtime.gateway_manager.get()
    try:
        dispatched = await anyio.to_thread.run_sync(gateway.push_values, request.values)
    except IndexError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return {"dispatched": dispatched}
