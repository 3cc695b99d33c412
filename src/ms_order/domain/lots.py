"""Proportional cost-basis lot consumption.

A SELL walks matching lots in their existing order. Each lot gives up
``used / lot.quantity`` of its invested amount, independent of the price
it was opened at. Fully consumed lots disappear; partial ones are replaced
by a reduced copy. The input list is never modified, so a caller that
rejects the trade afterwards has nothing to roll back.
"""

from collections.abc import Callable
from dataclasses import dataclass
from typing import Generic, Protocol, TypeVar

from src.ms_common.rounding import QTY_EPSILON, round_qty


class LotProtocol(Protocol):
    @property
    def quantity(self) -> float: ...

    @property
    def invested_amount(self) -> float: ...

    def reduced(self, quantity: float, invested: float, at: str): ...


LotT = TypeVar("LotT", bound=LotProtocol)


@dataclass(frozen=True)
class LotSplit(Generic[LotT]):
    remaining: list[LotT]       # full lot list after the sale, non-matching lots untouched
    sold_quantity: float
    removed_cost: float


def available_quantity(lots: list[LotT], matches: Callable[[LotT], bool]) -> float:
    return round_qty(sum(lot.quantity for lot in lots if matches(lot)))


def split_lots(
    lots: list[LotT],
    matches: Callable[[LotT], bool],
    quantity: float,
    at: str,
) -> LotSplit[LotT]:
    """Consume ``quantity`` from matching lots. Caller has already checked inventory."""
    to_sell = quantity
    removed_cost = 0.0
    sold = 0.0
    remaining: list[LotT] = []

    for lot in lots:
        if not matches(lot) or to_sell <= QTY_EPSILON:
            remaining.append(lot)
            continue

        used = min(lot.quantity, to_sell)
        to_sell -= used
        sold += used

        left_qty = round_qty(lot.quantity - used)
        if left_qty <= QTY_EPSILON:
            removed_cost += lot.invested_amount
            continue

        removed = round_qty(used / lot.quantity * lot.invested_amount)
        left_invested = round_qty(lot.invested_amount - removed)
        removed_cost += removed
        if left_invested <= QTY_EPSILON:
            removed_cost += left_invested
            continue
        remaining.append(lot.reduced(left_qty, left_invested, at))

    return LotSplit(remaining, round_qty(sold), round_qty(removed_cost))
