"""ms_order REST endpoints — trades and portfolios for both markets."""

from typing import Annotated

from fastapi import APIRouter, Depends, Request

from src.ms_common.response import ApiResponse, success_response
from src.ms_engine.application.service import get_engine
from src.ms_engine.engine.engine import MarketEngine
from src.ms_gateway.auth.dependencies import get_guest_id
from src.ms_order.application import service as order_service
from src.ms_order.application.schemas import PredictionTradeRequest, SyntheticTradeRequest

router = APIRouter(tags=["orders"])


@router.get("/synthetic/portfolio")
async def get_synthetic_portfolio(
    request: Request,
    guest_id: Annotated[str, Depends(get_guest_id)],
    engine: Annotated[MarketEngine, Depends(get_engine)],
) -> ApiResponse:
    return success_response(order_service.synthetic_portfolio(engine, guest_id), request)


@router.post("/synthetic/trade")
async def synthetic_trade(
    body: SyntheticTradeRequest,
    request: Request,
    guest_id: Annotated[str, Depends(get_guest_id)],
    engine: Annotated[MarketEngine, Depends(get_engine)],
) -> ApiResponse:
    return success_response(
        order_service.execute_synthetic_trade(engine, guest_id, body), request
    )


@router.get("/prediction/portfolio")
async def get_prediction_portfolio(
    request: Request,
    guest_id: Annotated[str, Depends(get_guest_id)],
    engine: Annotated[MarketEngine, Depends(get_engine)],
) -> ApiResponse:
    return success_response(order_service.prediction_portfolio(engine, guest_id), request)


@router.post("/prediction/trade")
async def prediction_trade(
    body: PredictionTradeRequest,
    request: Request,
    guest_id: Annotated[str, Depends(get_guest_id)],
    engine: Annotated[MarketEngine, Depends(get_engine)],
) -> ApiResponse:
    return success_response(
        order_service.execute_prediction_trade(engine, guest_id, body), request
    )
