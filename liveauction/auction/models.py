"""Shared auction data structures."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Union

ItemId = Union[int, str]
Amount = Union[int, float]


@dataclass(frozen=True)
class AuctionItem:
    """Immutable snapshot of one auction item.

    The store replaces the whole snapshot on every accepted bid, so
    ``current_bid`` and ``highest_bidder`` are always observed together.
    """

    id: ItemId
    title: str
    current_bid: Amount
    auction_ends_at: int
    highest_bidder: str | None = None
    image: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "currentBid": self.current_bid,
            "highestBidder": self.highest_bidder,
            "auctionEndsAt": self.auction_ends_at,
            "image": self.image,
        }


@dataclass(frozen=True)
class BidRequest:
    item_id: Any
    amount: Any
    bidder_name: Any

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "BidRequest":
        return cls(
            item_id=payload.get("itemId"),
            amount=payload.get("amount"),
            bidder_name=payload.get("bidderName"),
        )


class RejectionReason(str, Enum):
    INVALID_REQUEST = "invalid_request"
    ITEM_NOT_FOUND = "item_not_found"
    BID_TOO_LOW = "bid_too_low"
    AUCTION_CLOSED = "auction_closed"


@dataclass(frozen=True)
class Accepted:
    item: AuctionItem


@dataclass(frozen=True)
class Rejected:
    reason: RejectionReason
    error: str
    item_id: Any = None
    current_bid: Amount | None = None


Outcome = Union[Accepted, Rejected]


def format_amount(amount: Amount) -> str:
    if isinstance(amount, float) and amount.is_integer():
        return str(int(amount))
    return str(amount)
