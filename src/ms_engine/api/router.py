"""Engine-wide endpoints.

GET /activity — global activity feed, newest first
GET /health   — liveness, viewer count, current prices
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Request

from src.ms_broadcast.api.router import get_hub
from src.ms_broadcast.hub import BroadcastHub
from src.ms_common.response import ApiResponse, success_response
from src.ms_engine.application.service import get_engine
from src.ms_engine.engine.engine import MarketEngine

router = APIRouter(tags=["engine"])


@router.get("/activity")
async def get_activity(
    request: Request,
    engine: Annotated[MarketEngine, Depends(get_engine)],
) -> ApiResponse:
    return success_response(engine.activity_feed(), request)


@router.get("/health")
async def health(
    request: Request,
    engine: Annotated[MarketEngine, Depends(get_engine)],
    hub: Annotated[BroadcastHub, Depends(get_hub)],
) -> ApiResponse:
    return success_response({**engine.health(), "connections": hub.connection_count}, request)
