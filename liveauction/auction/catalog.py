"""Seed catalog loading."""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Any

import yaml

from ..transport.timestamps import to_epoch_ms
from ..validation.validator import SchemaRegistry
from .models import AuctionItem

logger = logging.getLogger(__name__)


def load_catalog(
    path: Path,
    schemas: SchemaRegistry,
    *,
    seeded_at_ms: int,
    default_duration_ms: int,
) -> list[AuctionItem]:
    if not path.exists():
        raise FileNotFoundError(path)
    data = yaml.safe_load(path.read_text()) or {}
    return parse_catalog(
        data,
        schemas,
        seeded_at_ms=seeded_at_ms,
        default_duration_ms=default_duration_ms,
    )


def parse_catalog(
    data: dict[str, Any],
    schemas: SchemaRegistry,
    *,
    seeded_at_ms: int,
    default_duration_ms: int,
) -> list[AuctionItem]:
    # PyYAML turns unquoted timestamps into datetimes
    for entry in data.get("items") or []:
        if isinstance(entry, dict) and isinstance(entry.get("ends_at"), datetime):
            entry["ends_at"] = entry["ends_at"].isoformat()
    schemas.validate("catalog", data)

    items: list[AuctionItem] = []
    seen: set[Any] = set()
    for entry in data["items"]:
        item_id = entry["id"]
        if item_id in seen:
            raise ValueError(f"duplicate item id {item_id!r} in catalog")
        seen.add(item_id)
        if entry.get("ends_at"):
            ends_at = to_epoch_ms(entry["ends_at"])
        else:
            ends_at = seeded_at_ms + int(entry.get("duration_ms", default_duration_ms))
        items.append(
            AuctionItem(
                id=item_id,
                title=entry["title"],
                current_bid=entry["opening_bid"],
                auction_ends_at=ends_at,
                image=entry.get("image"),
            )
        )
    logger.info("seeded %d auction items", len(items))
    return items
