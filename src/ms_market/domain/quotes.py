"""Live marks consumed by trading, valuation and settlement.

Trades read quotes; they never mutate the ledgers behind them.
"""

from typing import Protocol

from src.ms_common.enums import Outcome
from src.ms_market.domain.chance_ledger import ChanceLedger
from src.ms_market.domain.models import Instrument
from src.ms_market.domain.price_ledger import PriceLedger
from src.ms_market.domain.session_clock import SessionClock


class QuoteSourceProtocol(Protocol):
    def ticker_price(self, ticker: str) -> float: ...

    def contract_price(self, instrument_id: str, outcome: Outcome) -> float: ...

    def instrument(self, instrument_id: str) -> Instrument: ...

    def target_price(self, instrument: Instrument) -> float: ...

    @property
    def skip_count(self) -> int: ...


class LedgerQuotes:
    """QuoteSourceProtocol over the engine's in-memory ledgers."""

    def __init__(
        self, prices: PriceLedger, chances: ChanceLedger, clock: SessionClock
    ) -> None:
        self._prices = prices
        self._chances = chances
        self._clock = clock

    def ticker_price(self, ticker: str) -> float:
        return self._prices.current_price(ticker)

    def contract_price(self, instrument_id: str, outcome: Outcome) -> float:
        return self._chances.contract_price(instrument_id, outcome)

    def instrument(self, instrument_id: str) -> Instrument:
        return self._chances.instrument(instrument_id)

    def target_price(self, instrument: Instrument) -> float:
        """Frozen into a prediction lot at open: today's price-to-beat, else spot."""
        target = self._clock.price_to_beat.get(instrument.category)
        if target is None or target <= 0:
            target = self._prices.current_price(instrument.category)
        return target

    @property
    def skip_count(self) -> int:
        return self._clock.skip_count
