"""Configuration helpers for the auction server."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml

_DEFAULT_SERVER_CONFIG = Path(__file__).resolve().parent / "server.yaml"
_DEFAULT_CATALOG = Path(__file__).resolve().parent / "catalog.yaml"

LOCK_MODES = ("global", "per_item")


@dataclass(frozen=True)
class ListenConfig:
    host: str
    port: int


@dataclass(frozen=True)
class AuctionConfig:
    catalog_path: Path
    lock_mode: str
    enforce_closing: bool
    default_duration_ms: int
    max_bidder_name_length: int


@dataclass(frozen=True)
class GatewayConfig:
    max_pending_events: int


@dataclass(frozen=True)
class CorsConfig:
    allow_origins: tuple[str, ...]


@dataclass(frozen=True)
class LoggingConfig:
    level: str


@dataclass(frozen=True)
class ServerConfig:
    listen: ListenConfig
    auction: AuctionConfig
    gateway: GatewayConfig
    cors: CorsConfig
    logging: LoggingConfig


def _load_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        raise FileNotFoundError(path)
    return yaml.safe_load(path.read_text()) or {}


def get_config_path() -> Path:
    return Path(os.getenv("LIVEAUCTION_CONFIG_PATH", _DEFAULT_SERVER_CONFIG))


def load_server_config(path: Path) -> ServerConfig:
    data = _load_yaml(path)
    listen = data.get("listen", {})
    auction = data.get("auction", {})
    gateway = data.get("gateway", {})
    cors = data.get("cors", {})
    logging_section = data.get("logging", {})

    lock_mode = str(auction.get("lock_mode", "global"))
    if lock_mode not in LOCK_MODES:
        raise ValueError(f"unknown lock_mode {lock_mode}")
    catalog_path = (
        os.getenv("LIVEAUCTION_CATALOG_PATH")
        or auction.get("catalog_path")
        or _DEFAULT_CATALOG
    )
    port = os.getenv("PORT") or listen.get("port", 3001)
    return ServerConfig(
        listen=ListenConfig(
            host=str(listen.get("host", "0.0.0.0")),
            port=int(port),
        ),
        auction=AuctionConfig(
            catalog_path=Path(catalog_path),
            lock_mode=lock_mode,
            enforce_closing=bool(auction.get("enforce_closing", False)),
            default_duration_ms=int(auction.get("default_duration_ms", 900000)),
            max_bidder_name_length=int(auction.get("max_bidder_name_length", 64)),
        ),
        gateway=GatewayConfig(
            max_pending_events=int(gateway.get("max_pending_events", 1000)),
        ),
        cors=CorsConfig(
            allow_origins=tuple(cors.get("allow_origins") or ("*",)),
        ),
        logging=LoggingConfig(
            level=str(
                os.getenv("LIVEAUCTION_LOG_LEVEL") or logging_section.get("level", "INFO")
            ).upper(),
        ),
    )


@lru_cache(maxsize=1)
def get_server_config() -> ServerConfig:
    return load_server_config(get_config_path())
