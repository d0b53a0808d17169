"""Process-wide gateway instance shared by the routers."""

from __future__ import annotations

import asyncio
from typing import Callable, Optional

import anyio

from slotwriter.config import WriterConfig, resolve_config
from slotwriter.core import Gateway

GatewayFactory = Callable[[WriterConfig], Gateway]


class GatewayManager:
    """Start the gateway on first use and stop it on application shutdown.

    The configuration is loaded once and shared by the gateway and the
    authentication dependency, unless it was handed over with
    :meth:`use_config` before the first request.
    """

    def __init__(
        self,
        *,
        config_loader: Callable[[], WriterConfig] = resolve_config,
        gateway_factory: GatewayFactory = Gateway,
    ) -> None:
        self._config_loader = config_loader
        self._gateway_factory = gateway_factory
        self._lock = asyncio.Lock()
        self._config: Optional[WriterConfig] = None
        self._gateway: Optional[Gateway] = None

    def use_config(self, config: WriterConfig) -> None:
        """Serve ``config`` instead of loading one. Ignored once the gateway runs."""

        if self._gateway is None:
            self._config = config

    async def config(self) -> WriterConfig:
        async with self._lock:
            return await self._load_config()

    async def get(self) -> Gateway:
        async with self._lock:
            if self._gateway is None:
                config = await self._load_config()
                gateway = self._gateway_factory(config)
                await anyio.to_thread.run_sync(gateway.start)
                self._gateway = gateway
            return self._gateway

    async def shutdown(self) -> None:
        async with self._lock:
            gateway = self._gateway
            self._gateway = None
        if gateway is not None:
            await anyio.to_thread.run_sync(gateway.close)

    async def _load_config(self) -> WriterConfig:
        if self._config is None:
            self._config = await anyio.to_thread.run_sync(self._config_loader)
        return self._config


gateway_manager = GatewayManager()
