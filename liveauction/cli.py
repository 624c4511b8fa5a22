"""Command line launcher for the auction server."""

from __future__ import annotations

import argparse
import logging
import os

from .config import get_server_config
from .logging_config import configure_logging

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Live auction server: real-time bidding over WebSocket and HTTP"
    )
    parser.add_argument(
        "--host",
        default=None,
        help="Host to bind to (default: listen.host from config)"
    )
    parser.add_argument(
        "--port", "-p",
        type=int,
        default=None,
        help="Port to run on (default: PORT env or listen.port from config)"
    )
    parser.add_argument(
        "--config", "-c",
        default=None,
        help="Path to server.yaml (default: LIVEAUCTION_CONFIG_PATH or bundled config)"
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Override logging.level from config"
    )
    return parser


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    # The app re-reads config in its lifespan, so overrides travel through the environment.
    if args.config:
        os.environ["LIVEAUCTION_CONFIG_PATH"] = args.config
    if args.log_level:
        os.environ["LIVEAUCTION_LOG_LEVEL"] = args.log_level
    get_server_config.cache_clear()
    settings = get_server_config()
    level = settings.logging.level
    configure_logging(level)

    host = args.host or settings.listen.host
    port = args.port or settings.listen.port
    logger.info("starting live auction server on http://%s:%d", host, port)

    import uvicorn

    uvicorn.run("liveauction.main:app", host=host, port=port, log_level=level.lower())


if __name__ == "__main__":
    main()
