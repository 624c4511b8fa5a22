"""Wire codec for message-channel frames.

Every frame is a JSON envelope ``{"event": <name>, "data": <payload>}``.
"""

from __future__ import annotations

from typing import Any

import orjson

INITIAL_STATE = "initialState"
PLACE_BID = "placeBid"
BID_UPDATE = "bidUpdate"
BID_SUCCESS = "bidSuccess"
BID_ERROR = "bidError"


class FrameError(ValueError):
    """Raised when an inbound frame cannot be decoded into an envelope."""


def envelope(event: str, data: Any) -> dict[str, Any]:
    return {"event": event, "data": data}


def encode_frame(message: dict[str, Any]) -> str:
    return orjson.dumps(message).decode("utf-8")


def decode_frame(raw: str | bytes) -> dict[str, Any]:
    try:
        message = orjson.loads(raw)
    except orjson.JSONDecodeError as exc:
        raise FrameError("frame is not valid JSON") from exc
    if not isinstance(message, dict):
        raise FrameError("frame must be a JSON object")
    return message
