"""PriceLedger — current price and capped rolling history per ticker.

Every recorded price is double-clamped: first to ±5% of the previous
price, then to ±5% of the ticker's base price. Step-bound first, so a
legitimate multi-step drift toward a band edge is not falsely rejected;
base-bound second, as a hard ceiling/floor.
"""

import logging
import math
from datetime import datetime, timedelta
from typing import Any

from src.ms_common.datetime_utils import iso_or_now, to_iso, utc_now
from src.ms_common.enums import PriceSource
from src.ms_common.errors import CorruptedStateError, InvalidInputError, TickerNotFoundError
from src.ms_common.rounding import round_price, to_finite
from src.ms_market.domain.models import (
    BASE_TICKER_PRICES,
    PriceHistoryEntry,
    PriceStatistics,
    coerce_source,
)
from src.ms_market.domain.random_walk import BoundedRandomWalk

logger = logging.getLogger(__name__)

MAX_PRICE_HISTORY = 100
SEED_HISTORY_LENGTH = 50
BAND = 0.05


def double_clamp(raw: float, prev: float, base: float) -> float:
    """Clamp to the step band around prev, then the base band; round to 3 dp inside both."""
    step_low, step_high = prev * (1 - BAND), prev * (1 + BAND)
    base_low, base_high = base * (1 - BAND), base * (1 + BAND)
    value = min(max(raw, step_low), step_high)
    value = min(max(value, base_low), base_high)

    low, high = max(step_low, base_low), min(step_high, base_high)
    rounded = round_price(value)
    # Rounding must not push the value back across a bound.
    if rounded > high:
        rounded = round_price(math.floor(high * 1000) / 1000)
    if rounded < low:
        rounded = round_price(math.ceil(low * 1000) / 1000)
    return rounded


def seeded_history(
    base: float,
    seed: int | None = None,
    now: datetime | None = None,
    length: int = SEED_HISTORY_LENGTH,
) -> list[PriceHistoryEntry]:
    """Backfill a self-consistent history: one entry per minute, ending at now."""
    walk = BoundedRandomWalk.seeded(seed)
    now = now or utc_now()
    entries: list[PriceHistoryEntry] = []
    current = base
    for i in range(length):
        current = double_clamp(walk.next_price(current, base), current, base)
        entries.append(
            PriceHistoryEntry(
                price=current,
                timestamp=to_iso(now - timedelta(minutes=length - i)),
                source=PriceSource.SEED,
            )
        )
    return entries


class PriceLedger:
    VERSION = "2.0"
    DESCRIPTION = "DRAM prices normalized around base values with bounded volatility"

    def __init__(
        self,
        base_prices: dict[str, float],
        histories: dict[str, list[PriceHistoryEntry]],
        created_at: str,
        max_history: int = MAX_PRICE_HISTORY,
    ) -> None:
        missing = [t for t in base_prices if len(histories.get(t, [])) == 0]
        if missing:
            raise ValueError(f"Empty price history for {missing}")
        self._base_prices = dict(base_prices)
        self._histories = {t: list(histories[t][-max_history:]) for t in base_prices}
        self._statistics = {
            t: PriceStatistics.from_entries(h) for t, h in self._histories.items()
        }
        self.created_at = created_at
        self.max_history = max_history

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def seeded(
        cls,
        base_prices: dict[str, float] = BASE_TICKER_PRICES,
        seed: int | None = None,
        now: datetime | None = None,
    ) -> "PriceLedger":
        now = now or utc_now()
        histories = {
            ticker: seeded_history(base, None if seed is None else seed + idx, now)
            for idx, (ticker, base) in enumerate(base_prices.items())
        }
        return cls(base_prices, histories, created_at=to_iso(now))

    @classmethod
    def from_document(
        cls,
        raw: Any,
        base_prices: dict[str, float] = BASE_TICKER_PRICES,
        seed: int | None = None,
        now: datetime | None = None,
    ) -> tuple["PriceLedger", list[str]]:
        """Rebuild from an untrusted document.

        Returns the ledger and the tickers whose history had to be regenerated.
        Raises CorruptedStateError when the document is not a price document at all.
        """
        if not isinstance(raw, dict):
            raise CorruptedStateError("price document is not an object")
        now = now or utc_now()
        raw_histories = raw.get("priceHistory")
        if not isinstance(raw_histories, dict):
            raw_histories = {}

        histories: dict[str, list[PriceHistoryEntry]] = {}
        regenerated: list[str] = []
        for idx, (ticker, base) in enumerate(base_prices.items()):
            source_entries = raw_histories.get(ticker)
            if not isinstance(source_entries, list):
                source_entries = []
            cleaned: list[PriceHistoryEntry] = []
            prev = base
            for entry in source_entries[-MAX_PRICE_HISTORY:]:
                if not isinstance(entry, dict):
                    continue
                price = to_finite(entry.get("price"), math.nan)
                if math.isnan(price):
                    continue
                normalized = double_clamp(price, prev, base)
                cleaned.append(
                    PriceHistoryEntry(
                        price=normalized,
                        timestamp=iso_or_now(entry.get("timestamp"), now),
                        source=coerce_source(entry.get("source")),
                    )
                )
                prev = normalized
            if len(cleaned) < 2:
                regenerated.append(ticker)
                cleaned = seeded_history(base, None if seed is None else seed + idx, now)
            histories[ticker] = cleaned

        metadata = raw.get("metadata") if isinstance(raw.get("metadata"), dict) else {}
        created_at = iso_or_now(metadata.get("createdAt"), now)
        if regenerated:
            logger.warning("Regenerated price history for %s", ", ".join(regenerated))
        return cls(base_prices, histories, created_at=created_at), regenerated

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @property
    def tickers(self) -> list[str]:
        return list(self._base_prices)

    def _require(self, ticker: str) -> None:
        if ticker not in self._base_prices:
            raise TickerNotFoundError(ticker)

    def base_price(self, ticker: str) -> float:
        self._require(ticker)
        return self._base_prices[ticker]

    def current_price(self, ticker: str) -> float:
        self._require(ticker)
        return self._histories[ticker][-1].price

    def current_prices(self) -> dict[str, float]:
        return {t: h[-1].price for t, h in self._histories.items()}

    def history(self, ticker: str) -> list[PriceHistoryEntry]:
        self._require(ticker)
        return list(self._histories[ticker])

    def statistics(self, ticker: str) -> PriceStatistics:
        self._require(ticker)
        return self._statistics[ticker]

    def price_series(self) -> dict[str, list[float]]:
        return {t: [e.price for e in h] for t, h in self._histories.items()}

    def timestamp_series(self) -> dict[str, list[str]]:
        return {t: [e.timestamp for e in h] for t, h in self._histories.items()}

    def statistics_document(self) -> dict[str, dict[str, Any]]:
        return {t: s.to_document() for t, s in self._statistics.items()}

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def record(
        self,
        ticker: str,
        raw_price: float,
        source: PriceSource,
        at: datetime | None = None,
    ) -> PriceHistoryEntry:
        self._require(ticker)
        if isinstance(raw_price, bool) or not math.isfinite(raw_price) or raw_price <= 0:
            raise InvalidInputError(f"price must be a positive number, got {raw_price!r}")

        prev = self.current_price(ticker)
        entry = PriceHistoryEntry(
            price=double_clamp(raw_price, prev, self._base_prices[ticker]),
            timestamp=to_iso(at or utc_now()),
            source=source,
        )
        history = self._histories[ticker]
        history.append(entry)
        if len(history) > self.max_history:
            del history[: len(history) - self.max_history]
        self._statistics[ticker] = PriceStatistics.from_entries(history)
        return entry

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def to_document(self) -> dict[str, Any]:
        return {
            "metadata": {
                "createdAt": self.created_at,
                "version": self.VERSION,
                "description": self.DESCRIPTION,
            },
            "currentPrices": self.current_prices(),
            "priceHistory": {
                t: [e.to_document() for e in h] for t, h in self._histories.items()
            },
            "statistics": self.statistics_document(),
        }
