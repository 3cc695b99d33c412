"""MarketApplicationService — thin composition layer over the engine.

The caller (router) passes the engine; the service maps request schemas
onto engine operations. All writes are synchronous engine calls.
"""

from typing import Any

from src.ms_common.enums import PriceSource
from src.ms_engine.engine.engine import MarketEngine
from src.ms_market.application.schemas import PriceUpdateRequest, SkipSessionsRequest


class MarketApplicationService:
    def get_prices(self, engine: MarketEngine) -> dict[str, Any]:
        return {**engine.snapshot(), "instruments": engine.instruments()}

    def update_price(
        self,
        engine: MarketEngine,
        body: PriceUpdateRequest,
        source: PriceSource = PriceSource.API,
    ) -> dict[str, Any]:
        return engine.record_price(body.ticker, body.price, source)

    def get_history(self, engine: MarketEngine) -> dict[str, Any]:
        return engine.price_document()

    def get_chances(self, engine: MarketEngine) -> dict[str, Any]:
        snapshot = engine.snapshot()
        return {
            "chances": snapshot["chances"],
            "chanceHistories": snapshot["chanceHistories"],
            "instruments": engine.instruments(),
        }

    def skip_sessions(self, engine: MarketEngine, body: SkipSessionsRequest) -> dict[str, Any]:
        return engine.skip_sessions(body.count)

    def reconcile_session(self, engine: MarketEngine) -> dict[str, Any]:
        return engine.reconcile_session()
