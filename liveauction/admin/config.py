"""Expose currently loaded server config for debugging."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from ..config import ServerConfig

router = APIRouter(prefix="/admin", tags=["admin"])


def _get_config(request: Request) -> ServerConfig:
    return request.app.state.server_config


@router.get("/config")
async def config(
    request: Request,
    config: ServerConfig = Depends(_get_config),
) -> dict:
    return {
        "version": request.app.version,
        "catalog_path": str(config.auction.catalog_path),
        "lock_mode": config.auction.lock_mode,
        "enforce_closing": config.auction.enforce_closing,
        "default_duration_ms": config.auction.default_duration_ms,
        "max_bidder_name_length": config.auction.max_bidder_name_length,
        "max_pending_events": config.gateway.max_pending_events,
        "cors_allow_origins": list(config.cors.allow_origins),
    }
