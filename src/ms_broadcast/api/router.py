"""Push channel: WebSocket /ws.

On connect the viewer receives a pricesUpdated frame. Inbound messages:
    {"type": "updatePrice", "ticker": "DDR5", "price": 38.5}
    {"type": "skipSessionsAll", "count": 3, "ackId": "a1"}
skipSessionsAll is answered with
    {"type": "ack", "ackId": "a1", "ok": true, "skippedSessions": 3}
Every state change reaches viewers through the hub, not through replies.
"""

import json
import logging
from typing import Annotated, Any

from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect
from pydantic import ValidationError
from starlette.requests import HTTPConnection

from src.ms_broadcast.hub import BroadcastHub
from src.ms_common.enums import PriceSource
from src.ms_common.errors import AppError
from src.ms_engine.application.service import get_engine
from src.ms_engine.engine.engine import MarketEngine
from src.ms_account.domain.store import GUEST_ID_PATTERN
from src.ms_market.application.schemas import PriceUpdateRequest

logger = logging.getLogger(__name__)

router = APIRouter(tags=["broadcast"])


def get_hub(conn: HTTPConnection) -> BroadcastHub:
    return conn.app.state.hub


async def _handle(
    ws: WebSocket, hub: BroadcastHub, engine: MarketEngine, msg: dict[str, Any]
) -> None:
    mtype = msg.get("type")
    if mtype == "updatePrice":
        try:
            body = PriceUpdateRequest.model_validate(msg)
            engine.record_price(body.ticker, body.price, PriceSource.MANUAL)
        except ValidationError:
            await hub.send(ws, {"type": "error", "code": 1001, "message": "Invalid ticker or price"})
        except AppError as e:
            await hub.send(ws, {"type": "error", "code": e.code, "message": e.message})

    elif mtype == "skipSessionsAll":
        result = engine.skip_sessions(msg.get("count"))
        await hub.send(
            ws,
            {
                "type": "ack",
                "ackId": msg.get("ackId"),
                "ok": True,
                "skippedSessions": result["skippedSessions"],
            },
        )

    else:
        logger.debug("Ignoring WebSocket message type %r", mtype)


@router.websocket("/ws")
async def ws_endpoint(
    ws: WebSocket,
    hub: Annotated[BroadcastHub, Depends(get_hub)],
    engine: Annotated[MarketEngine, Depends(get_engine)],
    guest_id: str | None = Query(default=None, alias="guestId"),
) -> None:
    await ws.accept()
    if guest_id is not None and not GUEST_ID_PATTERN.match(guest_id):
        guest_id = None
    hub.register(ws, guest_id)
    await hub.send(ws, {"type": "pricesUpdated", "data": engine.snapshot()})

    try:
        while True:
            try:
                msg = json.loads(await ws.receive_text())
            except ValueError:
                await hub.send(ws, {"type": "error", "code": 1001, "message": "Malformed JSON"})
                continue
            if isinstance(msg, dict):
                await _handle(ws, hub, engine, msg)
    except WebSocketDisconnect:
        pass
    finally:
        hub.unregister(ws)
