"""Inventory guard for SELL orders.

A request may exceed what is held by at most SELL_EPSILON, which absorbs
4 dp rounding on the client side; anything above is rejected before any
lot is touched.
"""
from src.ms_common.errors import InsufficientInventoryError

SELL_EPSILON: float = 0.01


def check_sufficient_inventory(requested: float, available: float) -> float:
    """Return the quantity actually sellable: requested, capped at available."""
    if available <= 0 or requested > available + SELL_EPSILON:
        raise InsufficientInventoryError(requested, available)
    return min(requested, available)
