"""Command line entry point running the signaling server under uvicorn."""

from __future__ import annotations

import argparse
import dataclasses
import logging

import uvicorn

from callrelay.backend.api import create_app
from callrelay.backend.config import RelaySettings, load_settings
from callrelay.backend.relay import RelayServer

logger = logging.getLogger(__name__)


def parse_args(settings: RelaySettings, argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Call signaling relay")
    parser.add_argument("--host", default=settings.host)
    parser.add_argument("--port", type=int, default=settings.port)
    parser.add_argument(
        "--offline-grace",
        type=float,
        default=settings.offline_grace_seconds,
        help="seconds a dropped connection may take to re-register before going offline",
    )
    parser.add_argument("--log-level", default=settings.log_level)
    return parser.parse_args(argv)


def build_settings(argv: list[str] | None = None) -> RelaySettings:
    settings = load_settings()
    args = parse_args(settings, argv)
    return dataclasses.replace(
        settings,
        host=args.host,
        port=args.port,
        offline_grace_seconds=args.offline_grace,
        log_level=args.log_level.upper(),
    )


def main(argv: list[str] | None = None) -> int:
    settings = build_settings(argv)
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    app = create_app(server=RelayServer(settings=settings))
    logger.info("Signaling server running on %s:%d", settings.host, settings.port)
    logger.info("Health check: http://%s:%d/health", settings.host, settings.port)
    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level.lower())
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
