"""Settlement sweep for DAILY prediction lots.

Runs once per session advance. A DAILY lot opened at session S is due
once ``skip_count - S >= SETTLEMENT_SESSION_LENGTH``. The winner is
decided by the live ticker price against the lot's frozen target:
strictly above means YES, anything else (including a tie) means NO.
MONTHLY lots are never touched here.
"""

import logging
from dataclasses import dataclass
from datetime import datetime

from src.ms_common.datetime_utils import to_iso, utc_now
from src.ms_common.enums import InstrumentPeriod, OrderType, Outcome, SettlementResult
from src.ms_common.rounding import round_qty
from src.ms_account.domain.models import Account, PredictionOrder, PredictionPosition
from src.ms_account.domain.valuation import SETTLEMENT_SESSION_LENGTH
from src.ms_market.domain.quotes import QuoteSourceProtocol

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SettledLot:
    guest_id: str
    lot: PredictionPosition
    winner: Outcome
    final_price: float
    payout: float
    realized_pnl: float

    @property
    def result(self) -> SettlementResult:
        return SettlementResult.WIN if self.lot.outcome == self.winner else SettlementResult.LOSS


def is_due(lot: PredictionPosition, skip_count: int) -> bool:
    return (
        lot.period == InstrumentPeriod.DAILY
        and skip_count - lot.opened_at_session >= SETTLEMENT_SESSION_LENGTH
    )


def winning_outcome(final_price: float, target_price: float) -> Outcome:
    return Outcome.YES if final_price > target_price else Outcome.NO


def settle_account(
    account: Account,
    quotes: QuoteSourceProtocol,
    order_limit: int = 500,
    now: datetime | None = None,
) -> list[SettledLot]:
    """Settle every due lot of one account. Returns what was settled."""
    skip_count = quotes.skip_count
    book = account.prediction
    due = [lot for lot in book.open_positions if is_due(lot, skip_count)]
    if not due:
        return []

    at = to_iso(now or utc_now())
    settled: list[SettledLot] = []
    for lot in due:
        final_price = quotes.ticker_price(lot.category)
        winner = winning_outcome(final_price, lot.target_price)
        payout = lot.contracts if lot.outcome == winner else 0.0
        realized = round_qty(payout - lot.invested_amount)
        entry = SettledLot(account.guest_id, lot, winner, final_price, payout, realized)

        book.realized_pnl = round_qty(book.realized_pnl + realized)
        account.credit(payout)
        book.push_order(
            PredictionOrder(
                id=book.allocate_order_id(),
                type=OrderType.SETTLEMENT,
                instrument_id=lot.instrument_id,
                display_ticker=lot.display_ticker,
                category=lot.category,
                period=lot.period.value,
                outcome=lot.outcome,
                contracts=lot.contracts,
                price=1.0 if payout else 0.0,
                amount=round_qty(payout),
                realized_pnl=realized,
                session=skip_count,
                created_at=at,
                result=entry.result,
                note=(
                    f"{lot.category} {final_price:.3f} vs target {lot.target_price:.3f}: "
                    f"{winner.value} wins"
                ),
            ),
            order_limit,
        )
        settled.append(entry)

    due_ids = {lot.id for lot in due}
    book.open_positions = [lot for lot in book.open_positions if lot.id not in due_ids]
    account.updated_at = at
    return settled


def settle_due_positions(
    accounts: list[Account],
    quotes: QuoteSourceProtocol,
    order_limit: int = 500,
    now: datetime | None = None,
) -> list[SettledLot]:
    settled: list[SettledLot] = []
    for account in accounts:
        settled.extend(settle_account(account, quotes, order_limit, now))
    if settled:
        logger.info(
            "Settled %d DAILY lot(s) at session %d", len(settled), quotes.skip_count
        )
    return settled
