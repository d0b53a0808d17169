"""Serve the slot writer API with uvicorn using the ``webapi`` settings."""

from __future__ import annotations

from typing import Optional

import uvicorn

from slotwriter.config import WriterConfig, resolve_config

from . import app, runtime


def main(config: Optional[WriterConfig] = None) -> None:
    """Run the API until interrupted.

    A ``config`` validated by the caller is reused by the gateway so the file
    is not read twice.
    """

    if config is None:
        config = resolve_config()
    runtime.gateway_manager.use_config(config)
    settings = config.webapi
    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level)


if __name__ == "__main__":
    main()
