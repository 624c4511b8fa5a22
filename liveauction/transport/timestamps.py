"""Auction end times are carried as epoch milliseconds."""

from __future__ import annotations

import time
from datetime import datetime


def now_ms() -> int:
    return int(time.time() * 1000)


def to_epoch_ms(ends_at: str | datetime) -> int:
    """Convert a zoned ISO-8601 string (``Z`` allowed) or aware datetime to epoch ms."""
    if isinstance(ends_at, str):
        ends_at = datetime.fromisoformat(ends_at.replace("Z", "+00:00"))
    if ends_at.tzinfo is None:
        raise ValueError(f"end time {ends_at.isoformat()} has no timezone")
    return int(ends_at.timestamp() * 1000)
