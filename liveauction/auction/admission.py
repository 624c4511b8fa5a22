"""Bid admission: the single serialized read-validate-write section."""

from __future__ import annotations

import asyncio
import logging
import math
from collections import Counter
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Callable

from ..realtime.gateway import BroadcastGateway, Subscriber
from ..storage import AuctionStore, ItemNotFoundError
from ..transport.timestamps import now_ms
from .models import (
    Accepted,
    BidRequest,
    Outcome,
    Rejected,
    RejectionReason,
    format_amount,
)

logger = logging.getLogger(__name__)

MISSING_FIELDS = "Missing required fields"
INVALID_AMOUNT = "Bid amount must be a positive number"
INVALID_ITEM_ID = "Invalid item id"
ITEM_NOT_FOUND = "Item not found"
AUCTION_CLOSED = "Auction has ended"

# Largest integer the frame codec can encode.
MAX_WIRE_INT = 2**63 - 1


class BidAdmissionController:
    """Serializes bid attempts and applies the strictly-increasing rule.

    In ``global`` mode one lock covers every item. In ``per_item`` mode each
    seeded item has its own lock; the check and the write always happen under
    the same hold either way. ``asyncio.Lock`` wakes waiters in arrival order.
    """

    def __init__(
        self,
        store: AuctionStore,
        *,
        gateway: BroadcastGateway | None = None,
        lock_mode: str = "global",
        enforce_closing: bool = False,
        max_bidder_name_length: int = 64,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self._store = store
        self._gateway = gateway
        self._lock_mode = lock_mode
        self._enforce_closing = enforce_closing
        self._max_name_length = max_bidder_name_length
        self._clock = clock
        if lock_mode == "global":
            self._global_lock: asyncio.Lock | None = asyncio.Lock()
            self._item_locks: dict[Any, asyncio.Lock] = {}
        elif lock_mode == "per_item":
            self._global_lock = None
            self._item_locks = {item_id: asyncio.Lock() for item_id in store.ids()}
        else:
            raise ValueError(f"unknown lock_mode {lock_mode}")
        self._accepted = 0
        self._rejected: Counter[str] = Counter()

    @property
    def lock_mode(self) -> str:
        return self._lock_mode

    @property
    def enforce_closing(self) -> bool:
        return self._enforce_closing

    def stats(self) -> dict[str, Any]:
        return {
            "accepted": self._accepted,
            "rejected": {reason.value: self._rejected[reason.value] for reason in RejectionReason},
        }

    async def submit_request(
        self, request: BidRequest, origin: Subscriber | None = None
    ) -> Outcome:
        return await self.submit_bid(
            request.item_id, request.amount, request.bidder_name, origin=origin
        )

    async def submit_bid(
        self,
        item_id: Any,
        amount: Any,
        bidder_name: Any,
        *,
        origin: Subscriber | None = None,
    ) -> Outcome:
        """Evaluate one bid attempt; always returns exactly one outcome."""
        if isinstance(item_id, float) and item_id.is_integer():
            item_id = int(item_id)
        invalid = self._validate(item_id, amount, bidder_name)
        if invalid is not None:
            return self._finish(invalid, origin)
        bidder_name = bidder_name.strip()
        async with self._hold(item_id):
            return self._finish(self._admit(item_id, amount, bidder_name), origin)

    @asynccontextmanager
    async def _hold(self, item_id: Any) -> AsyncIterator[None]:
        lock = self._global_lock
        if lock is None:
            lock = self._item_locks.get(item_id)
        if lock is None:
            # Items are fixed at seed time; an unknown id has no state to guard.
            yield
            return
        async with lock:
            yield

    def _admit(self, item_id: Any, amount: Any, bidder_name: str) -> Outcome:
        try:
            item = self._store.get(item_id)
        except ItemNotFoundError:
            return Rejected(RejectionReason.ITEM_NOT_FOUND, ITEM_NOT_FOUND, item_id=item_id)
        if self._enforce_closing and self._clock() >= item.auction_ends_at:
            return Rejected(
                RejectionReason.AUCTION_CLOSED,
                AUCTION_CLOSED,
                item_id=item_id,
                current_bid=item.current_bid,
            )
        if amount <= item.current_bid:
            return Rejected(
                RejectionReason.BID_TOO_LOW,
                f"Bid must be higher than current bid of ${format_amount(item.current_bid)}",
                item_id=item_id,
                current_bid=item.current_bid,
            )
        return Accepted(self._store.apply_bid(item_id, amount, bidder_name))

    def _finish(self, outcome: Outcome, origin: Subscriber | None) -> Outcome:
        if isinstance(outcome, Accepted):
            self._accepted += 1
            logger.info(
                "accepted bid item=%s amount=%s bidder=%s",
                outcome.item.id,
                outcome.item.current_bid,
                outcome.item.highest_bidder,
            )
        else:
            self._rejected[outcome.reason.value] += 1
            logger.info(
                "rejected bid item=%s reason=%s", outcome.item_id, outcome.reason.value
            )
        if self._gateway is not None:
            self._gateway.on_bid_outcome(origin, outcome)
        return outcome

    def _validate(self, item_id: Any, amount: Any, bidder_name: Any) -> Rejected | None:
        if item_id is None or item_id == "" or amount is None or not bidder_name:
            return Rejected(
                RejectionReason.INVALID_REQUEST, MISSING_FIELDS, item_id=_echo_id(item_id)
            )
        if _echo_id(item_id) is None:
            return Rejected(RejectionReason.INVALID_REQUEST, INVALID_ITEM_ID, item_id=None)
        if (
            isinstance(amount, bool)
            or not isinstance(amount, (int, float))
            or amount <= 0
            or amount > MAX_WIRE_INT
            or not math.isfinite(amount)
        ):
            return Rejected(RejectionReason.INVALID_REQUEST, INVALID_AMOUNT, item_id=item_id)
        if (
            not isinstance(bidder_name, str)
            or not bidder_name.strip()
            or len(bidder_name.strip()) > self._max_name_length
        ):
            return Rejected(
                RejectionReason.INVALID_REQUEST,
                "Bidder name must be a non-empty string of at most "
                f"{self._max_name_length} characters",
                item_id=item_id,
            )
        return None


def _echo_id(item_id: Any) -> int | str | None:
    """Return the id if it can be sent back on the wire, else None."""
    if isinstance(item_id, str):
        return item_id
    if isinstance(item_id, int) and not isinstance(item_id, bool) and abs(item_id) <= MAX_WIRE_INT:
        return item_id
    return None
