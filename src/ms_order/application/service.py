# src/ms_order/application/service.py
import logging
from typing import Any

from src.ms_common.enums import TradeSide
from src.ms_common.errors import AppError
from src.ms_engine.engine.engine import MarketEngine
from src.ms_order.application.schemas import PredictionTradeRequest, SyntheticTradeRequest

logger = logging.getLogger(__name__)


def execute_synthetic_trade(
    engine: MarketEngine, guest_id: str, body: SyntheticTradeRequest
) -> dict[str, Any]:
    try:
        if body.side == TradeSide.BUY:
            result = engine.buy_synthetic(guest_id, body.ticker, body.amount)
        else:
            result = engine.sell_synthetic(
                guest_id, body.ticker, units=body.units, amount=body.amount
            )
    except AppError as e:
        logger.info(
            "Rejected synthetic %s %s for %s: [%d] %s",
            body.side.value, body.ticker, guest_id, e.code, e.message,
        )
        raise
    return {"guestId": guest_id, **result}


def execute_prediction_trade(
    engine: MarketEngine, guest_id: str, body: PredictionTradeRequest
) -> dict[str, Any]:
    try:
        if body.side == TradeSide.BUY:
            result = engine.buy_prediction(guest_id, body.market_id, body.outcome, body.amount)
        else:
            result = engine.sell_prediction(
                guest_id, body.market_id, body.outcome, body.contracts
            )
    except AppError as e:
        logger.info(
            "Rejected prediction %s %s/%s for %s: [%d] %s",
            body.side.value, body.market_id, body.outcome.value, guest_id, e.code, e.message,
        )
        raise
    return {"guestId": guest_id, **result}


def synthetic_portfolio(engine: MarketEngine, guest_id: str) -> dict[str, Any]:
    return {"guestId": guest_id, **engine.synthetic_portfolio(guest_id)}


def prediction_portfolio(engine: MarketEngine, guest_id: str) -> dict[str, Any]:
    return {"guestId": guest_id, **engine.prediction_portfolio(guest_id)}
