"""Fixed-precision rounding for every persisted number.

Precision per kind:
  - USD cash balances:            2 dp
  - quantities, unit prices, P&L: 4 dp
  - ticker prices:                3 dp
  - chances:                      2 dp

Rounding at each persisted step keeps repeated partial trades from
accumulating float drift.
"""

import math
from typing import Any

QTY_EPSILON = 1e-6


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def round_usd(value: float) -> float:
    return round(value, 2)


def round_qty(value: float) -> float:
    return round(value, 4)


def round_price(value: float) -> float:
    return round(value, 3)


def round_chance(value: float) -> float:
    return round(value, 2)


def to_finite(value: Any, default: float = 0.0) -> float:
    """Coerce an untrusted value to a finite float, else return default.

    Booleans are rejected: JSON ``true`` is not a number.
    """
    if isinstance(value, bool):
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if not math.isfinite(number):
        return default
    return number


def usd_display(value: float) -> str:
    """Format dollars for human-readable text: 1234.5 -> '$1,234.50', -3 -> '-$3.00'."""
    if value < 0:
        return f"-${-value:,.2f}"
    return f"${value:,.2f}"
