from __future__ import annotations

import pytest

from liveauction.auction.models import AuctionItem
from liveauction.storage import InMemoryAuctionStore

FAR_FUTURE_MS = 4_102_444_800_000  # 2100-01-01


def make_items() -> list[AuctionItem]:
    return [
        AuctionItem(id=1, title="Vintage Camera", current_bid=100, auction_ends_at=FAR_FUTURE_MS),
        AuctionItem(id=2, title="Rare Painting", current_bid=500, auction_ends_at=FAR_FUTURE_MS),
        AuctionItem(id=3, title="Antique Vase", current_bid=250, auction_ends_at=1_000),
    ]


@pytest.fixture
def store() -> InMemoryAuctionStore:
    return InMemoryAuctionStore(make_items())
