"""Command line entry point: validate the configuration and serve the Web API."""

from __future__ import annotations

import argparse
import logging
import os
from pathlib import Path
from typing import Optional, Sequence

from slotwriter.config import config_path, default_config, load_env_file, resolve_config, save_config
from slotwriter.webapi.main import main as serve

logger = logging.getLogger(__name__)


def _running_under_systemd() -> bool:
    return any(os.getenv(var) for var in ("INVOCATION_ID", "SYSTEMD_EXEC_PID", "JOURNAL_STREAM"))


def _load_dotenv_if_needed(env_path: Optional[Path]) -> None:
    if _running_under_systemd():
        return
    path = env_path or Path.cwd() / ".env"
    if not path.exists():
        return
    for key, value in load_env_file(path).items():
        os.environ.setdefault(key, value)
    logger.info("Variables cargadas desde %s", path)


def _write_default_config(path: Path) -> int:
    if path.exists():
        logger.error("%s ya existe; no se sobrescribe.", path)
        return 1
    save_config(default_config(), path)
    logger.info("Configuración de ejemplo escrita en %s", path)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Write slot values to InfluxDB v2.")
    parser.add_argument("--config", type=Path, help="Ruta a writer.yaml")
    parser.add_argument("--env-file", type=Path, help="Archivo .env con variables SLOTWRITER_*")
    parser.add_argument("--host", default=None, help="Interfaz de escucha del Web API")
    parser.add_argument("--port", type=int, default=None, help="Puerto del Web API")
    parser.add_argument("--log-level", default="INFO")
    parser.add_argument(
        "--write-default-config",
        action="store_true",
        help="Escribe una configuración de ejemplo en --config (o la ruta por defecto) y termina",
    )
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    if not logging.getLogger().hasHandlers():
        logging.basicConfig(
            level=getattr(logging, str(args.log_level).upper(), logging.INFO),
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )

    if args.write_default_config:
        return _write_default_config(args.config or config_path())

    _load_dotenv_if_needed(args.env_file)
    if args.config is not None:
        os.environ["SLOTWRITER_CONFIG"] = str(args.config)
    if args.host:
        os.environ["SLOTWRITER_WEBAPI_HOST"] = args.host
    if args.port:
        os.environ["SLOTWRITER_WEBAPI_PORT"] = str(args.port)

    try:
        config = resolve_config()
    except ValueError as exc:
        logger.error("Configuración inválida: %s", exc)
        return 2
    logger.info(
        "Destino %s (org=%s bucket=%s), %d slot(s)",
        config.destination.base_url,
        config.destination.org,
        config.destination.bucket,
        config.slots.count,
    )

    try:
        serve(config)
    except KeyboardInterrupt:
        logger.info("Interrumpido por el usuario.")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
