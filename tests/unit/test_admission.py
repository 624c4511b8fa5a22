"""Unit tests for the bid admission controller."""

from __future__ import annotations

import asyncio
import random

import pytest

from liveauction.auction.admission import BidAdmissionController
from liveauction.auction.models import Accepted, BidRequest, Rejected, RejectionReason
from liveauction.realtime.gateway import BroadcastGateway, Subscriber


@pytest.fixture
def controller(store):
    return BidAdmissionController(store)


class TestAdmissionRule:
    @pytest.mark.asyncio
    async def test_higher_bid_is_accepted(self, controller, store):
        outcome = await controller.submit_bid(1, 110, "A")
        assert isinstance(outcome, Accepted)
        assert outcome.item.current_bid == 110
        assert outcome.item.highest_bidder == "A"
        assert store.get(1) == outcome.item

    @pytest.mark.asyncio
    async def test_equal_bid_is_too_low(self, controller, store):
        before = store.get(1)
        outcome = await controller.submit_bid(1, 100, "B")
        assert isinstance(outcome, Rejected)
        assert outcome.reason is RejectionReason.BID_TOO_LOW
        assert outcome.error == "Bid must be higher than current bid of $100"
        assert outcome.current_bid == 100
        assert store.get(1) == before

    @pytest.mark.asyncio
    async def test_too_low_message_uses_updated_floor(self, controller):
        await controller.submit_bid(1, 110, "A")
        outcome = await controller.submit_bid(1, 105, "B")
        assert outcome.reason is RejectionReason.BID_TOO_LOW
        assert "$110" in outcome.error

    @pytest.mark.asyncio
    async def test_fractional_amounts_are_formatted(self, controller):
        await controller.submit_bid(1, 120.5, "A")
        outcome = await controller.submit_bid(1, 120.5, "B")
        assert outcome.error.endswith("$120.5")

    @pytest.mark.asyncio
    async def test_unknown_item(self, controller):
        outcome = await controller.submit_bid(999, 500, "A")
        assert outcome.reason is RejectionReason.ITEM_NOT_FOUND
        assert outcome.error == "Item not found"
        assert outcome.item_id == 999

    @pytest.mark.asyncio
    async def test_submit_request_unpacks_payload(self, controller):
        request = BidRequest.from_payload({"itemId": 2, "amount": 501, "bidderName": "Z"})
        outcome = await controller.submit_request(request)
        assert isinstance(outcome, Accepted)
        assert outcome.item.highest_bidder == "Z"

    @pytest.mark.asyncio
    async def test_bidder_name_is_trimmed(self, controller):
        outcome = await controller.submit_bid(1, 101, "  Ann  ")
        assert outcome.item.highest_bidder == "Ann"


class TestInvalidRequests:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "item_id, amount, bidder",
        [
            (None, 110, "A"),
            (1, None, "A"),
            (1, 110, None),
            (1, 110, ""),
            ("", 110, "A"),
        ],
    )
    async def test_missing_fields(self, controller, store, item_id, amount, bidder):
        outcome = await controller.submit_bid(item_id, amount, bidder)
        assert outcome.reason is RejectionReason.INVALID_REQUEST
        assert outcome.error == "Missing required fields"
        assert store.get(1).current_bid == 100

    @pytest.mark.asyncio
    @pytest.mark.parametrize("amount", [0, -5, "200", True, float("nan"), float("inf")])
    async def test_bad_amounts(self, controller, amount):
        outcome = await controller.submit_bid(1, amount, "A")
        assert outcome.reason is RejectionReason.INVALID_REQUEST
        assert "positive number" in outcome.error

    @pytest.mark.asyncio
    @pytest.mark.parametrize("bidder", ["   ", 42, "x" * 65])
    async def test_bad_bidder_names(self, controller, bidder):
        outcome = await controller.submit_bid(1, 200, bidder)
        assert outcome.reason is RejectionReason.INVALID_REQUEST
        assert "Bidder name" in outcome.error

    @pytest.mark.asyncio
    @pytest.mark.parametrize("amount", [2**63, 10**20, 10**400])
    async def test_amounts_beyond_wire_range(self, controller, store, amount):
        before = store.get(1)
        outcome = await controller.submit_bid(1, amount, "Big")
        assert outcome.reason is RejectionReason.INVALID_REQUEST
        assert outcome.error == "Bid amount must be a positive number"
        assert store.get(1) == before

    @pytest.mark.asyncio
    async def test_largest_wire_amount_is_accepted(self, controller):
        outcome = await controller.submit_bid(1, 2**63 - 1, "Big")
        assert isinstance(outcome, Accepted)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("item_id", [True, 1.5, [1], 10**20, float("inf")])
    async def test_bad_item_ids(self, controller, item_id):
        outcome = await controller.submit_bid(item_id, 200, "A")
        assert outcome.reason is RejectionReason.INVALID_REQUEST
        assert outcome.error == "Invalid item id"


class TestAuctionClosing:
    @pytest.mark.asyncio
    async def test_closed_auction_accepts_bids_by_default(self, controller):
        outcome = await controller.submit_bid(3, 300, "A")
        assert isinstance(outcome, Accepted)

    @pytest.mark.asyncio
    async def test_closed_auction_rejected_when_enforced(self, store):
        controller = BidAdmissionController(store, enforce_closing=True, clock=lambda: 2_000)
        outcome = await controller.submit_bid(3, 300, "A")
        assert outcome.reason is RejectionReason.AUCTION_CLOSED
        assert outcome.error == "Auction has ended"
        assert store.get(3).current_bid == 250

    @pytest.mark.asyncio
    async def test_open_auction_accepted_when_enforced(self, store):
        controller = BidAdmissionController(store, enforce_closing=True, clock=lambda: 2_000)
        outcome = await controller.submit_bid(1, 300, "A")
        assert isinstance(outcome, Accepted)

    @pytest.mark.asyncio
    async def test_end_timestamp_itself_is_closed(self, store):
        controller = BidAdmissionController(store, enforce_closing=True, clock=lambda: 1_000)
        outcome = await controller.submit_bid(3, 300, "A")
        assert outcome.reason is RejectionReason.AUCTION_CLOSED


class TestSerialization:
    @pytest.mark.asyncio
    async def test_concurrent_bids_single_winner(self, controller, store):
        outcome_a, outcome_b = await asyncio.gather(
            controller.submit_bid(1, 110, "A"),
            controller.submit_bid(1, 105, "B"),
        )
        outcomes = [outcome_a, outcome_b]
        assert sum(isinstance(outcome, Accepted) for outcome in outcomes) == 1
        assert isinstance(outcome_a, Accepted)
        assert outcome_b.reason is RejectionReason.BID_TOO_LOW
        assert "$110" in outcome_b.error
        final = store.get(1)
        assert final.current_bid == 110
        assert final.highest_bidder == "A"

    @pytest.mark.asyncio
    async def test_waiters_block_until_lock_released(self, controller, store):
        lock = controller._global_lock
        await lock.acquire()
        try:
            first = asyncio.create_task(controller.submit_bid(1, 110, "A"))
            second = asyncio.create_task(controller.submit_bid(1, 105, "B"))
            await asyncio.sleep(0)
            await asyncio.sleep(0)
            assert not first.done()
            assert not second.done()
            assert store.get(1).current_bid == 100
        finally:
            lock.release()
        outcome_a, outcome_b = await asyncio.gather(first, second)
        assert isinstance(outcome_a, Accepted)
        assert outcome_b.reason is RejectionReason.BID_TOO_LOW
        assert store.get(1).current_bid == 110

    @pytest.mark.asyncio
    async def test_global_lock_blocks_other_items(self, controller):
        await controller._global_lock.acquire()
        try:
            task = asyncio.create_task(controller.submit_bid(2, 600, "A"))
            await asyncio.sleep(0)
            assert not task.done()
        finally:
            controller._global_lock.release()
        assert isinstance(await task, Accepted)

    @pytest.mark.asyncio
    async def test_per_item_lock_leaves_other_items_free(self, store):
        controller = BidAdmissionController(store, lock_mode="per_item")
        item_lock = controller._item_locks[1]
        await item_lock.acquire()
        try:
            blocked = asyncio.create_task(controller.submit_bid(1, 110, "A"))
            free = await controller.submit_bid(2, 600, "B")
            assert isinstance(free, Accepted)
            await asyncio.sleep(0)
            assert not blocked.done()
        finally:
            item_lock.release()
        assert isinstance(await blocked, Accepted)

    @pytest.mark.asyncio
    async def test_per_item_unknown_item(self, store):
        controller = BidAdmissionController(store, lock_mode="per_item")
        outcome = await controller.submit_bid(999, 10, "A")
        assert outcome.reason is RejectionReason.ITEM_NOT_FOUND

    def test_unknown_lock_mode(self, store):
        with pytest.raises(ValueError):
            BidAdmissionController(store, lock_mode="sharded")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("lock_mode", ["global", "per_item"])
    async def test_many_concurrent_bids_are_monotonic(self, store, lock_mode):
        gateway = BroadcastGateway(store.list_all)
        watcher = Subscriber()
        gateway.on_subscriber_join(watcher)
        controller = BidAdmissionController(store, gateway=gateway, lock_mode=lock_mode)
        amounts = list(range(101, 161))
        random.Random(7).shuffle(amounts)

        outcomes = await asyncio.gather(
            *(controller.submit_bid(1, amount, f"bidder-{amount}") for amount in amounts)
        )

        accepted = [outcome.item for outcome in outcomes if isinstance(outcome, Accepted)]
        bids = [item.current_bid for item in accepted]
        assert bids == sorted(bids)
        assert len(set(bids)) == len(bids)
        for item in accepted:
            assert item.highest_bidder == f"bidder-{item.current_bid}"
        final = store.get(1)
        assert final.current_bid == max(amounts)
        assert final.highest_bidder == f"bidder-{max(amounts)}"
        assert len(outcomes) == len(amounts)

        updates = [m["data"]["currentBid"] for m in watcher.drain() if m["event"] == "bidUpdate"]
        assert updates == bids


class TestStats:
    @pytest.mark.asyncio
    async def test_counters(self, controller):
        await controller.submit_bid(1, 110, "A")
        await controller.submit_bid(1, 100, "B")
        await controller.submit_bid(999, 100, "B")
        await controller.submit_bid(1, None, "B")
        stats = controller.stats()
        assert stats["accepted"] == 1
        assert stats["rejected"] == {
            "invalid_request": 1,
            "item_not_found": 1,
            "bid_too_low": 1,
            "auction_closed": 0,
        }


class TestItemIdNormalization:
    @pytest.mark.asyncio
    async def test_integral_float_id_matches_item(self, controller, store):
        outcome = await controller.submit_bid(1.0, 150, "A")
        assert isinstance(outcome, Accepted)
        assert outcome.item.id == 1
        assert store.get(1).current_bid == 150

    @pytest.mark.asyncio
    async def test_missing_fields_never_echo_oversized_ids(self, controller):
        outcome = await controller.submit_bid(10**20, None, "A")
        assert outcome.error == "Missing required fields"
        assert outcome.item_id is None
