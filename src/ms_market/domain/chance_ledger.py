"""ChanceLedger — implied YES probability (1..99) per prediction instrument.

Invariant: history[-1] == current chance, for every instrument, always.
"""

import random
from datetime import datetime
from typing import Any

from src.ms_common.datetime_utils import iso_or_now, to_iso, utc_now
from src.ms_common.enums import InstrumentPeriod, Outcome
from src.ms_common.errors import CorruptedStateError, InstrumentNotFoundError
from src.ms_common.rounding import clamp, round_chance, round_qty, to_finite
from src.ms_market.domain.models import INSTRUMENTS, Instrument, instruments_for_ticker

CHANCE_MIN = 1.0
CHANCE_MAX = 99.0
DAILY_RESET_CHANCE = 50.0
BUMP_MIN = 5.0
BUMP_MAX = 10.0
MAX_CHANCE_HISTORY = 160
SEED_CHANCE_LENGTH = 60


def contract_price_for(chance: float, outcome: Outcome) -> float:
    """YES costs chance/100, NO costs (100-chance)/100; both within [0.01, 0.99]."""
    probability = chance / 100 if outcome == Outcome.YES else (100 - chance) / 100
    return round_qty(clamp(probability, 0.01, 0.99))


def seeded_chance_history(
    base_chance: float, rng: random.Random, length: int = SEED_CHANCE_LENGTH
) -> list[float]:
    entries: list[float] = []
    current = base_chance
    for _ in range(length):
        current = clamp(current + (rng.random() - 0.5) * 4, CHANCE_MIN, CHANCE_MAX)
        entries.append(round_chance(current))
    entries[-1] = base_chance
    return entries


class ChanceLedger:
    VERSION = "1.0"
    DESCRIPTION = "Prediction market probabilities and chart history"

    def __init__(
        self,
        chances: dict[str, float],
        histories: dict[str, list[float]],
        created_at: str,
        rng: random.Random | None = None,
        instruments: dict[str, Instrument] = INSTRUMENTS,
        max_history: int = MAX_CHANCE_HISTORY,
    ) -> None:
        self._instruments = instruments
        self._chances: dict[str, float] = {}
        self._histories: dict[str, list[float]] = {}
        for instrument_id in instruments:
            current = round_chance(clamp(chances[instrument_id], CHANCE_MIN, CHANCE_MAX))
            history = list(histories.get(instrument_id) or [current])[-max_history:]
            history[-1] = current
            self._chances[instrument_id] = current
            self._histories[instrument_id] = history
        self._rng = rng or random.Random()
        self.created_at = created_at
        self.max_history = max_history

    @classmethod
    def seeded(
        cls,
        rng: random.Random | None = None,
        instruments: dict[str, Instrument] = INSTRUMENTS,
        now: datetime | None = None,
    ) -> "ChanceLedger":
        rng = rng or random.Random()
        chances = {i.id: float(i.default_chance) for i in instruments.values()}
        histories = {i: seeded_chance_history(c, rng) for i, c in chances.items()}
        return cls(chances, histories, to_iso(now or utc_now()), rng, instruments)

    @classmethod
    def from_document(
        cls,
        raw: Any,
        rng: random.Random | None = None,
        instruments: dict[str, Instrument] = INSTRUMENTS,
        now: datetime | None = None,
    ) -> "ChanceLedger":
        if not isinstance(raw, dict):
            raise CorruptedStateError("chance document is not an object")
        rng = rng or random.Random()
        raw_current = raw.get("currentChances")
        raw_current = raw_current if isinstance(raw_current, dict) else {}
        raw_histories = raw.get("chanceHistory")
        raw_histories = raw_histories if isinstance(raw_histories, dict) else {}

        chances: dict[str, float] = {}
        histories: dict[str, list[float]] = {}
        for instrument in instruments.values():
            current = to_finite(raw_current.get(instrument.id), instrument.default_chance)
            current = round_chance(clamp(current, CHANCE_MIN, CHANCE_MAX))
            stored = raw_histories.get(instrument.id)
            if isinstance(stored, list):
                history = [
                    round_chance(clamp(to_finite(v, current), CHANCE_MIN, CHANCE_MAX))
                    for v in stored[-MAX_CHANCE_HISTORY:]
                ]
            else:
                history = seeded_chance_history(current, rng)
            if not history:
                history = [current]
            chances[instrument.id] = current
            histories[instrument.id] = history

        metadata = raw.get("metadata") if isinstance(raw.get("metadata"), dict) else {}
        return cls(
            chances, histories, iso_or_now(metadata.get("createdAt"), now), rng, instruments
        )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def instrument(self, instrument_id: str) -> Instrument:
        instrument = self._instruments.get(instrument_id)
        if instrument is None:
            raise InstrumentNotFoundError(instrument_id)
        return instrument

    def current(self, instrument_id: str) -> float:
        self.instrument(instrument_id)
        return self._chances[instrument_id]

    def history(self, instrument_id: str) -> list[float]:
        self.instrument(instrument_id)
        return list(self._histories[instrument_id])

    def current_chances(self) -> dict[str, float]:
        return dict(self._chances)

    def chance_histories(self) -> dict[str, list[float]]:
        return {i: list(h) for i, h in self._histories.items()}

    def contract_price(self, instrument_id: str, outcome: Outcome) -> float:
        return contract_price_for(self.current(instrument_id), outcome)

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def _set(self, instrument_id: str, value: float) -> float:
        value = round_chance(clamp(value, CHANCE_MIN, CHANCE_MAX))
        self._chances[instrument_id] = value
        history = self._histories[instrument_id]
        history.append(value)
        if len(history) > self.max_history:
            del history[: len(history) - self.max_history]
        return value

    def bump(self, instrument_id: str, price_delta: float) -> float:
        """Nudge toward the direction of the underlying's last price move."""
        current = self.current(instrument_id)
        if price_delta > 0:
            direction = 1
        elif price_delta < 0:
            direction = -1
        else:
            direction = 1 if self._rng.random() < 0.5 else -1
        magnitude = self._rng.uniform(BUMP_MIN, BUMP_MAX)
        return self._set(instrument_id, current + direction * magnitude)

    def bump_ticker(self, ticker: str, price_delta: float) -> dict[str, float]:
        return {
            i.id: self.bump(i.id, price_delta)
            for i in instruments_for_ticker(ticker, self._instruments)
        }

    def reset_daily(self, instrument_id: str) -> None:
        self.instrument(instrument_id)
        self._chances[instrument_id] = DAILY_RESET_CHANCE
        self._histories[instrument_id] = [DAILY_RESET_CHANCE]

    def reset_all_daily(self) -> list[str]:
        reset = [
            i.id for i in self._instruments.values() if i.period == InstrumentPeriod.DAILY
        ]
        for instrument_id in reset:
            self.reset_daily(instrument_id)
        return reset

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
            "currentChances": self.current_chances(),
            "chanceHistory": self.chance_histories(),
        }
