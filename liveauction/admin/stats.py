"""Operational stats endpoint."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Request

from ..auction.admission import BidAdmissionController
from ..realtime.gateway import BroadcastGateway
from ..storage import AuctionStore

router = APIRouter(prefix="/admin", tags=["admin"])


def _get_controller(request: Request) -> BidAdmissionController:
    return request.app.state.controller


def _get_gateway(request: Request) -> BroadcastGateway:
    return request.app.state.gateway


def _get_store(request: Request) -> AuctionStore:
    return request.app.state.store


@router.get("/stats")
async def stats(
    controller: BidAdmissionController = Depends(_get_controller),
    gateway: BroadcastGateway = Depends(_get_gateway),
    store: AuctionStore = Depends(_get_store),
) -> dict[str, Any]:
    counters = controller.stats()
    rejected_total = sum(counters["rejected"].values())
    attempts = counters["accepted"] + rejected_total
    acceptance_rate = (counters["accepted"] / attempts) if attempts else 0.0
    leaders = [
        {
            "id": item.id,
            "current_bid": item.current_bid,
            "highest_bidder": item.highest_bidder,
        }
        for item in store.list_all()
    ]
    return {
        "total_attempts": attempts,
        "accepted": counters["accepted"],
        "rejected": counters["rejected"],
        "acceptance_rate": round(acceptance_rate, 4),
        "subscribers": len(gateway),
        "items": leaders,
    }
