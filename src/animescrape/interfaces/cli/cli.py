"""``animescrape`` console entrypoint: serve the scraping API with uvicorn."""

from __future__ import annotations

import argparse
import os
import sys
from collections.abc import Iterable
from pathlib import Path
from typing import Any

import structlog
import uvicorn

from animescrape.infrastructure.config import load_config
from animescrape.infrastructure.logging.setup import configure_logging
from animescrape.interfaces.app import create_app

log = structlog.get_logger(__name__)

DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 3001

# argparse dest -> flat config key understood by load_config
_OVERRIDE_FLAGS: dict[str, str] = {
    "base_url": "upstream_base_url",
    "cache_backend": "cache_backend",
    "max_concurrency": "scraper_max_concurrency",
    "log_level": "log_level",
    "log_format": "log_format",
}


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="animescrape",
        description="Anime episode resolution and stream scraping API.",
    )

    server = parser.add_argument_group("server")
    server.add_argument("--host", help=f"Bind host (default: $HOST or {DEFAULT_HOST}).")
    server.add_argument(
        "--port", type=int, help=f"Bind port (default: $PORT or {DEFAULT_PORT})."
    )

    files = parser.add_argument_group("configuration files")
    files.add_argument("--config", type=Path, help="YAML config file.")
    files.add_argument("--dotenv", type=Path, help=".env file loaded before env overrides.")

    scraping = parser.add_argument_group("scraping")
    scraping.add_argument("--base-url", help="Upstream site base URL.")
    scraping.add_argument(
        "--cache-backend", choices=["memory", "diskcache", "redis"], help="Cache backend."
    )
    scraping.add_argument(
        "--max-concurrency", type=int, help="Concurrent browser extractions."
    )
    scraping.add_argument(
        "--headed",
        action="store_true",
        help="Run Chromium with a visible window (debugging).",
    )

    logging_group = parser.add_argument_group("logging")
    logging_group.add_argument(
        "--log-level", choices=["DEBUG", "INFO", "WARNING", "ERROR"]
    )
    logging_group.add_argument("--log-format", choices=["json", "console"])

    return parser


def _cli_overrides(args: argparse.Namespace) -> dict[str, Any]:
    overrides = {
        config_key: getattr(args, dest)
        for dest, config_key in _OVERRIDE_FLAGS.items()
        if getattr(args, dest) is not None
    }
    if args.headed:
        overrides["playwright_headless"] = False
    return overrides


def _bind_address(args: argparse.Namespace) -> tuple[str, int]:
    host = args.host or os.getenv("HOST", DEFAULT_HOST)
    port = args.port if args.port is not None else int(os.getenv("PORT", DEFAULT_PORT))
    return host, port


def start(argv: Iterable[str] | None = None) -> None:
    """Load config once, configure logging, then run uvicorn on the app."""
    args = _build_parser().parse_args(list(sys.argv[1:] if argv is None else argv))
    host, port = _bind_address(args)

    config = load_config(
        config_path=args.config,
        dotenv_path=args.dotenv,
        cli_overrides=_cli_overrides(args),
    )
    log_config = configure_logging(config)
    log.info(
        "server_starting",
        host=host,
        port=port,
        environment=config.environment,
        upstream=config.upstream_base_url,
    )

    uvicorn.run(create_app(config), host=host, port=port, log_config=log_config)


if __name__ == "__main__":
    raise SystemExit(start())
