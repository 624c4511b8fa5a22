from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager, suppress
from datetime import datetime, timezone
from typing import Any

from fastapi import Depends, FastAPI, HTTPException, Request, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from jsonschema import ValidationError
from starlette.websockets import WebSocketState

from .admin import config as admin_config
from .admin import health as admin_health
from .admin import stats as admin_stats
from .auction.admission import MISSING_FIELDS, BidAdmissionController
from .auction.models import Accepted, BidRequest, Outcome, Rejected, RejectionReason
from .config import ServerConfig, get_server_config
from .logging_config import configure_logging
from .realtime.gateway import BroadcastGateway, Subscriber
from .storage import AuctionStore, ItemNotFoundError, build_store
from .transport.codec import PLACE_BID, FrameError, decode_frame, encode_frame
from .validation.validator import SchemaRegistry, get_schema_registry

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    server_config = get_server_config()
    configure_logging(server_config.logging.level)
    schema_registry = get_schema_registry()
    store = build_store(server_config, schema_registry)
    gateway = BroadcastGateway(store.list_all)
    controller = BidAdmissionController(
        store,
        gateway=gateway,
        lock_mode=server_config.auction.lock_mode,
        enforce_closing=server_config.auction.enforce_closing,
        max_bidder_name_length=server_config.auction.max_bidder_name_length,
    )

    app.state.server_config = server_config
    app.state.schema_registry = schema_registry
    app.state.store = store
    app.state.gateway = gateway
    app.state.controller = controller
    app.state.start_time = datetime.now(timezone.utc)
    logger.info(
        "live auction server ready: %d items, lock_mode=%s, enforce_closing=%s",
        len(store),
        controller.lock_mode,
        controller.enforce_closing,
    )

    yield


app = FastAPI(
    title="Live Auction Server",
    version="1.0.0",
    docs_url="/docs",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(get_server_config().cors.allow_origins),
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)

app.include_router(admin_health.router)
app.include_router(admin_stats.router)
app.include_router(admin_config.router)


# Dependency helpers ---------------------------------------------------------


def get_server_settings(request: Request) -> ServerConfig:
    return request.app.state.server_config


def get_store(request: Request) -> AuctionStore:
    return request.app.state.store


def get_controller(request: Request) -> BidAdmissionController:
    return request.app.state.controller


# Routes ---------------------------------------------------------------------


@app.get("/", tags=["meta"])
async def root(
    settings: ServerConfig = Depends(get_server_settings),
    store: AuctionStore = Depends(get_store),
) -> dict[str, Any]:
    return {
        "service": "liveauction",
        "version": app.version,
        "items": len(store.ids()),
        "auction": {
            "lock_mode": settings.auction.lock_mode,
            "enforce_closing": settings.auction.enforce_closing,
        },
    }


@app.get("/auctions", tags=["auction"])
@app.get("/api/auctions", tags=["auction"], include_in_schema=False)
@app.get("/items", tags=["auction"], include_in_schema=False)
async def list_auctions(store: AuctionStore = Depends(get_store)) -> dict[str, Any]:
    return {"items": [item.to_dict() for item in store.list_all()]}


@app.get("/auctions/{item_id}", tags=["auction"])
async def get_auction(item_id: str, store: AuctionStore = Depends(get_store)) -> dict[str, Any]:
    try:
        return store.get(coerce_item_id(item_id)).to_dict()
    except ItemNotFoundError as exc:
        raise HTTPException(status_code=404, detail="Item not found") from exc


@app.post("/bid", tags=["auction"])
@app.post("/api/bid", tags=["auction"], include_in_schema=False)
async def place_bid(
    request: Request,
    controller: BidAdmissionController = Depends(get_controller),
) -> JSONResponse:
    try:
        payload = await request.json()
    except ValueError:
        payload = None
    if not isinstance(payload, dict):
        outcome: Outcome = Rejected(RejectionReason.INVALID_REQUEST, MISSING_FIELDS)
    else:
        outcome = await controller.submit_request(BidRequest.from_payload(payload))
    return bid_response(outcome)


@app.websocket("/ws")
async def auction_channel(websocket: WebSocket) -> None:
    state = websocket.app.state
    gateway: BroadcastGateway = state.gateway
    controller: BidAdmissionController = state.controller
    schemas: SchemaRegistry = state.schema_registry

    await websocket.accept()
    subscriber = Subscriber(max_pending=state.server_config.gateway.max_pending_events)
    gateway.on_subscriber_join(subscriber)
    writer = asyncio.create_task(_write_frames(websocket, gateway, subscriber))
    try:
        while True:
            raw = await websocket.receive_text()
            await handle_frame(raw, subscriber, gateway, controller, schemas)
    except WebSocketDisconnect:
        pass
    except RuntimeError:
        # receive after the writer closed the socket
        if not subscriber.closed:
            raise
    finally:
        gateway.on_subscriber_leave(subscriber)
        subscriber.close()
        with suppress(asyncio.CancelledError):
            await writer


async def _write_frames(
    websocket: WebSocket, gateway: BroadcastGateway, subscriber: Subscriber
) -> None:
    async def send(message: dict[str, Any]) -> None:
        await websocket.send_text(encode_frame(message))

    await gateway.serve(subscriber, send)
    if (
        websocket.client_state == WebSocketState.CONNECTED
        and websocket.application_state == WebSocketState.CONNECTED
    ):
        with suppress(RuntimeError):
            await websocket.close(code=1013 if subscriber.evicted else 1011)


async def handle_frame(
    raw: str,
    subscriber: Subscriber,
    gateway: BroadcastGateway,
    controller: BidAdmissionController,
    schemas: SchemaRegistry,
) -> None:
    try:
        message = decode_frame(raw)
        schemas.validate("client_event", message)
    except (FrameError, ValidationError) as exc:
        reason = exc.message if isinstance(exc, ValidationError) else str(exc)
        logger.debug("bad frame from %s: %s", subscriber.id, reason)
        gateway.send_error(subscriber, f"Invalid message: {reason}")
        return
    if message["event"] == PLACE_BID:
        request = BidRequest.from_payload(message.get("data") or {})
        await controller.submit_request(request, origin=subscriber)


def bid_response(outcome: Outcome) -> JSONResponse:
    if isinstance(outcome, Accepted):
        return JSONResponse({"success": True, "item": outcome.item.to_dict()})
    return JSONResponse(
        {
            "success": False,
            "error": outcome.error,
            "reason": outcome.reason.value,
            "itemId": outcome.item_id,
        },
        status_code=400,
    )


def coerce_item_id(raw: str) -> int | str:
    """Path parameters arrive as text; catalog ids are usually integers."""
    try:
        return int(raw)
    except ValueError:
        return raw
