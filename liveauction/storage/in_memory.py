"""In-memory auction store."""

from __future__ import annotations

from dataclasses import replace
from typing import Iterable

from ..auction.models import Amount, AuctionItem, ItemId


class ItemNotFoundError(KeyError):
    """Raised when an item id is not part of the seeded catalog."""


class InMemoryAuctionStore:
    """Owns the seeded items; assumes a single writer at any instant.

    Writers must hold the admission lock. Snapshots are swapped whole, so
    readers never see a bid amount paired with the wrong bidder.
    """

    def __init__(self, items: Iterable[AuctionItem]) -> None:
        self._items: dict[ItemId, AuctionItem] = {}
        for item in items:
            if item.id in self._items:
                raise ValueError(f"duplicate item id {item.id!r}")
            self._items[item.id] = item

    def __contains__(self, item_id: object) -> bool:
        return item_id in self._items

    def __len__(self) -> int:
        return len(self._items)

    def ids(self) -> list[ItemId]:
        return list(self._items)

    def get(self, item_id: ItemId) -> AuctionItem:
        try:
            return self._items[item_id]
        except (KeyError, TypeError) as exc:
            raise ItemNotFoundError(f"item {item_id!r} not found") from exc

    def list_all(self) -> list[AuctionItem]:
        return list(self._items.values())

    def apply_bid(self, item_id: ItemId, amount: Amount, bidder_name: str) -> AuctionItem:
        current = self.get(item_id)
        updated = replace(current, current_bid=amount, highest_bidder=bidder_name)
        self._items[item_id] = updated
        return updated
