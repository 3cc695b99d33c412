"""ms_market REST endpoints.

GET  /prices               — aggregate snapshot (prices, histories, chances, session)
POST /prices               — price override, double-clamped
GET  /history              — full price document with statistics
GET  /chances              — chances and chance histories per instrument
POST /sessions/skip        — advance 1..MAX_SKIP_SESSIONS sessions
POST /sessions/reconcile   — realign the session clock to a slot boundary
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Request

from src.ms_common.response import ApiResponse, success_response
from src.ms_engine.application.service import get_engine
from src.ms_engine.engine.engine import MarketEngine
from src.ms_market.application.schemas import PriceUpdateRequest, SkipSessionsRequest
from src.ms_market.application.service import MarketApplicationService

router = APIRouter(tags=["market"])

_service = MarketApplicationService()


@router.get("/prices")
async def get_prices(
    request: Request,
    engine: Annotated[MarketEngine, Depends(get_engine)],
) -> ApiResponse:
    return success_response(_service.get_prices(engine), request)


@router.post("/prices")
async def update_price(
    body: PriceUpdateRequest,
    request: Request,
    engine: Annotated[MarketEngine, Depends(get_engine)],
) -> ApiResponse:
    return success_response(_service.update_price(engine, body), request)


@router.get("/history")
async def get_history(
    request: Request,
    engine: Annotated[MarketEngine, Depends(get_engine)],
) -> ApiResponse:
    return success_response(_service.get_history(engine), request)


@router.get("/chances")
async def get_chances(
    request: Request,
    engine: Annotated[MarketEngine, Depends(get_engine)],
) -> ApiResponse:
    return success_response(_service.get_chances(engine), request)


@router.post("/sessions/skip")
async def skip_sessions(
    request: Request,
    engine: Annotated[MarketEngine, Depends(get_engine)],
    body: SkipSessionsRequest | None = None,
) -> ApiResponse:
    return success_response(
        _service.skip_sessions(engine, body or SkipSessionsRequest()), request
    )


@router.post("/sessions/reconcile")
async def reconcile_session(
    request: Request,
    engine: Annotated[MarketEngine, Depends(get_engine)],
) -> ApiResponse:
    return success_response(_service.reconcile_session(engine), request)
