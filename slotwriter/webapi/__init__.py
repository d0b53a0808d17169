"""FastAPI application exposing slot configuration, activation and status."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from . import runtime
from .slots import router as slots_router
from .status import router as status_router


@asynccontextmanager
async def _lifespan(_: FastAPI) -> AsyncIterator[None]:
    yield
    await runtime.gateway_manager.shutdown()


app = FastAPI(title="Slot Writer Web API", version="1.0.0", lifespan=_lifespan)

app.include_router(slots_router)
app.include_router(status_router)


__all__ = ["app"]
