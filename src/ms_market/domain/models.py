"""Domain models for ms_market — catalog constants and immutable value types."""

from dataclasses import dataclass
from typing import Any

from src.ms_common.enums import InstrumentPeriod, PriceSource

# Anchor for the bounded random walk; immutable for the process lifetime.
BASE_TICKER_PRICES: dict[str, float] = {
    "DDR5": 38.067,
    "DDR4": 78.409,
    "GDDR5": 9.409,
    "GDDR6": 9.654,
}


@dataclass(frozen=True)
class Instrument:
    """A binary prediction contract on one ticker.

    YES resolves true when the ticker's price ends above the frozen target.
    """

    id: str
    category: str           # underlying ticker
    display_ticker: str
    period: InstrumentPeriod
    default_chance: float

    def to_document(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "category": self.category,
            "ticker": self.display_ticker,
            "period": self.period.value,
        }


INSTRUMENTS: dict[str, Instrument] = {
    i.id: i
    for i in (
        Instrument("1", "DDR5", "DDR5-AUG-F", InstrumentPeriod.MONTHLY, 64),
        Instrument("2", "DDR5", "DDR5-DAILY", InstrumentPeriod.DAILY, 42),
        Instrument("3", "DDR4", "DDR4-AUG-F", InstrumentPeriod.MONTHLY, 21),
        Instrument("4", "DDR4", "DDR4-DAILY", InstrumentPeriod.DAILY, 35),
        Instrument("5", "GDDR6", "G6-AUG-F", InstrumentPeriod.MONTHLY, 78),
        Instrument("6", "GDDR6", "G6-DAILY", InstrumentPeriod.DAILY, 52),
        Instrument("7", "GDDR5", "G5-AUG-F", InstrumentPeriod.MONTHLY, 55),
        Instrument("8", "GDDR5", "G5-DAILY", InstrumentPeriod.DAILY, 48),
    )
}


def instruments_for_ticker(
    ticker: str, instruments: dict[str, Instrument] = INSTRUMENTS
) -> list[Instrument]:
    return [i for i in instruments.values() if i.category == ticker]


@dataclass(frozen=True)
class PriceHistoryEntry:
    price: float
    timestamp: str          # ISO8601 UTC
    source: PriceSource

    def to_document(self) -> dict[str, Any]:
        return {"price": self.price, "timestamp": self.timestamp, "source": self.source.value}


def coerce_source(raw: Any) -> PriceSource:
    """Map stored source tags (including legacy ones like 'seed-ddr5') onto PriceSource."""
    text = str(raw or "").lower()
    for source in PriceSource:
        if text == source.value or text.startswith(source.value):
            return source
    if text.startswith("session"):
        return PriceSource.SESSION_SKIP
    return PriceSource.MANUAL


@dataclass(frozen=True)
class PriceStatistics:
    highest: float
    lowest: float
    average: float
    total_updates: int
    last_update: str

    @classmethod
    def from_entries(cls, entries: list[PriceHistoryEntry]) -> "PriceStatistics":
        prices = [e.price for e in entries]
        return cls(
            highest=max(prices),
            lowest=min(prices),
            average=round(sum(prices) / len(prices), 4),
            total_updates=len(prices),
            last_update=entries[-1].timestamp,
        )

    def to_document(self) -> dict[str, Any]:
        return {
            "highest": self.highest,
            "lowest": self.lowest,
            "average": self.average,
            "totalUpdates": self.total_updates,
            "lastUpdate": self.last_update,
        }
