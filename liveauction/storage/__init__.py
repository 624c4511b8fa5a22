"""Auction store factory."""

from __future__ import annotations

from typing import Protocol

from ..auction.catalog import load_catalog
from ..auction.models import Amount, AuctionItem, ItemId
from ..config import ServerConfig
from ..transport.timestamps import now_ms
from ..validation.validator import SchemaRegistry
from .in_memory import InMemoryAuctionStore, ItemNotFoundError


class AuctionStore(Protocol):
    def get(self, item_id: ItemId) -> AuctionItem: ...

    def list_all(self) -> list[AuctionItem]: ...

    def apply_bid(self, item_id: ItemId, amount: Amount, bidder_name: str) -> AuctionItem: ...

    def ids(self) -> list[ItemId]: ...


def build_store(config: ServerConfig, schemas: SchemaRegistry) -> InMemoryAuctionStore:
    """Seed a fresh store from the configured catalog."""
    items = load_catalog(
        config.auction.catalog_path,
        schemas,
        seeded_at_ms=now_ms(),
        default_duration_ms=config.auction.default_duration_ms,
    )
    return InMemoryAuctionStore(items)


__all__ = ["AuctionStore", "InMemoryAuctionStore", "ItemNotFoundError", "build_store"]
