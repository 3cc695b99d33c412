"""Bounded random walk: mean-reverting price steps that never leave the band.

    shock      ~ U(-params.shock, +params.shock)
    reversion  = (base - current) / base * params.reversion
    step       = clamp(shock + reversion, -step_band, +step_band)
    next       = clamp(current * (1 + step), base * (1 - base_band), base * (1 + base_band))
"""

import random
from dataclasses import dataclass

from src.ms_common.rounding import clamp


@dataclass(frozen=True)
class WalkParams:
    shock: float
    reversion: float
    step_band: float = 0.05
    base_band: float = 0.05


SESSION_WALK = WalkParams(shock=0.05, reversion=0.2)
SEED_WALK = WalkParams(shock=0.04, reversion=0.25)


class BoundedRandomWalk:
    def __init__(
        self, rng: random.Random | None = None, params: WalkParams = SESSION_WALK
    ) -> None:
        self._rng = rng or random.Random()
        self.params = params

    @classmethod
    def seeded(cls, seed: int | None, params: WalkParams = SEED_WALK) -> "BoundedRandomWalk":
        return cls(random.Random(seed), params)

    def next_price(self, current: float, base: float) -> float:
        p = self.params
        shock = self._rng.uniform(-p.shock, p.shock)
        reversion = (base - current) / (base or 1.0) * p.reversion
        step = clamp(shock + reversion, -p.step_band, p.step_band)
        return clamp(current * (1 + step), base * (1 - p.base_band), base * (1 + p.base_band))

    # Session ticks use the same formula; kept as a separate name for call sites.
    next_session_price = next_price
