"""Broadcast gateway: subscriber registry and outcome fan-out."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Iterable
from uuid import uuid4

from ..auction.models import Accepted, AuctionItem, Outcome, Rejected
from ..transport.codec import (
    BID_ERROR,
    BID_SUCCESS,
    BID_UPDATE,
    INITIAL_STATE,
    envelope,
)

logger = logging.getLogger(__name__)

Send = Callable[[dict[str, Any]], Awaitable[None]]

_CLOSE = object()


class SubscriberOverflow(RuntimeError):
    """Raised when a subscriber's outbound queue is full."""


class Subscriber:
    """A connected session with its own ordered outbound queue.

    ``deliver`` never blocks; a writer task running ``pump`` drains the
    queue into the underlying connection.
    """

    def __init__(self, subscriber_id: str | None = None, *, max_pending: int = 0) -> None:
        self.id = subscriber_id or f"sub_{uuid4().hex[:12]}"
        self._outbox: asyncio.Queue[Any] = asyncio.Queue(maxsize=max_pending)
        self._closed = False
        self.evicted = False

    @property
    def closed(self) -> bool:
        return self._closed

    def deliver(self, event: str, data: Any) -> None:
        if self._closed:
            return
        try:
            self._outbox.put_nowait(envelope(event, data))
        except asyncio.QueueFull as exc:
            raise SubscriberOverflow(f"subscriber {self.id} outbox full") from exc

    def drain(self) -> list[dict[str, Any]]:
        """Pop every queued message without sending it."""
        messages = []
        while not self._outbox.empty():
            message = self._outbox.get_nowait()
            if message is not _CLOSE:
                messages.append(message)
        return messages

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._outbox.full():
            self.drain()
        self._outbox.put_nowait(_CLOSE)

    async def pump(self, send: Send) -> None:
        while True:
            message = await self._outbox.get()
            if message is _CLOSE:
                return
            try:
                await send(message)
            except Exception:
                logger.warning("send to subscriber %s failed", self.id, exc_info=True)
                self._closed = True
                return


class BroadcastGateway:
    def __init__(self, snapshot: Callable[[], Iterable[AuctionItem]]) -> None:
        self._snapshot = snapshot
        self._subscribers: dict[str, Subscriber] = {}

    def __len__(self) -> int:
        return len(self._subscribers)

    def subscribers(self) -> list[Subscriber]:
        return list(self._subscribers.values())

    def on_subscriber_join(self, subscriber: Subscriber) -> None:
        """Register the subscriber and queue the full item list as its first event."""
        items = [item.to_dict() for item in self._snapshot()]
        subscriber.deliver(INITIAL_STATE, {"items": items})
        self._subscribers[subscriber.id] = subscriber
        logger.info("subscriber %s joined (%d connected)", subscriber.id, len(self._subscribers))

    async def serve(self, subscriber: Subscriber, send: Send) -> None:
        """Run the subscriber's writer; unregister it however the writer stops."""
        try:
            await subscriber.pump(send)
        finally:
            self.on_subscriber_leave(subscriber)
            subscriber.close()

    def on_subscriber_leave(self, subscriber: Subscriber) -> None:
        if self._subscribers.pop(subscriber.id, None) is not None:
            logger.info("subscriber %s left (%d connected)", subscriber.id, len(self._subscribers))

    def on_bid_outcome(self, subscriber: Subscriber | None, outcome: Outcome) -> None:
        """Publish an admission outcome.

        Accepted bids go to every subscriber as ``bidUpdate`` plus a
        ``bidSuccess`` to the originator; rejections go to the originator only.
        ``subscriber`` is None for callers outside the message channel.
        """
        if isinstance(outcome, Accepted):
            payload = outcome.item.to_dict()
            for target in self.subscribers():
                self._send(target, BID_UPDATE, payload)
            if subscriber is not None:
                self._send(subscriber, BID_SUCCESS, payload)
        elif isinstance(outcome, Rejected):
            if subscriber is not None:
                self.send_error(subscriber, outcome.error, outcome.item_id)

    def send_error(self, subscriber: Subscriber, error: str, item_id: Any = None) -> None:
        self._send(subscriber, BID_ERROR, {"error": error, "itemId": item_id})

    def _send(self, subscriber: Subscriber, event: str, data: Any) -> None:
        try:
            subscriber.deliver(event, data)
        except SubscriberOverflow:
            logger.warning("evicting subscriber %s: outbound queue overflow", subscriber.id)
            subscriber.evicted = True
            self.on_subscriber_leave(subscriber)
            subscriber.close()
