"""Mark-to-market views of an account's books.

portfolio_pnl is the unrealized P&L over every open lot of both books at
live prices and chances. Realized P&L is tracked separately on the
prediction book and never folded into it.
"""

from typing import Any

from src.ms_common.enums import InstrumentPeriod
from src.ms_common.rounding import round_qty, usd_display
from src.ms_account.domain.models import Account, PredictionPosition, SyntheticPosition
from src.ms_market.domain.quotes import QuoteSourceProtocol

SETTLEMENT_SESSION_LENGTH = 3


def synthetic_mark(lot: SyntheticPosition, quotes: QuoteSourceProtocol) -> float:
    return quotes.ticker_price(lot.ticker)


def prediction_mark(lot: PredictionPosition, quotes: QuoteSourceProtocol) -> float:
    return quotes.contract_price(lot.instrument_id, lot.outcome)


def unrealized_pnl(account: Account, quotes: QuoteSourceProtocol) -> float:
    total = 0.0
    for lot in account.synthetic.open_positions:
        total += lot.units * synthetic_mark(lot, quotes) - lot.invested_amount
    for lot in account.prediction.open_positions:
        total += lot.contracts * prediction_mark(lot, quotes) - lot.invested_amount
    return total


def recompute_portfolio_pnl(account: Account, quotes: QuoteSourceProtocol) -> float:
    account.portfolio_pnl = round_qty(unrealized_pnl(account, quotes))
    return account.portfolio_pnl


def synthetic_snapshot(account: Account, quotes: QuoteSourceProtocol) -> dict[str, Any]:
    positions: list[dict[str, Any]] = []
    total_value = total_invested = 0.0
    for lot in account.synthetic.open_positions:
        price = synthetic_mark(lot, quotes)
        value = lot.units * price
        total_value += value
        total_invested += lot.invested_amount
        positions.append({
            **lot.to_document(),
            "currentPrice": price,
            "marketValue": round_qty(value),
            "pnl": round_qty(value - lot.invested_amount),
        })
    return {
        "cashBalance": account.cash_balance,
        "openPositions": positions,
        "orderHistory": [o.to_document() for o in account.synthetic.order_history],
        "totals": {
            "investedAmount": round_qty(total_invested),
            "marketValue": round_qty(total_value),
            "unrealizedPnL": round_qty(total_value - total_invested),
        },
    }


def prediction_snapshot(account: Account, quotes: QuoteSourceProtocol) -> dict[str, Any]:
    positions: list[dict[str, Any]] = []
    total_value = total_invested = 0.0
    skip_count = quotes.skip_count
    for lot in account.prediction.open_positions:
        price = prediction_mark(lot, quotes)
        value = lot.contracts * price
        total_value += value
        total_invested += lot.invested_amount
        held = max(0, skip_count - lot.opened_at_session)
        positions.append({
            **lot.to_document(),
            "currentPrice": price,
            "marketValue": round_qty(value),
            "pnl": round_qty(value - lot.invested_amount),
            "sessionsHeld": held,
            "sessionsToSettlement": (
                max(0, SETTLEMENT_SESSION_LENGTH - held)
                if lot.period == InstrumentPeriod.DAILY
                else None
            ),
        })
    unrealized = round_qty(total_value - total_invested)
    realized = account.prediction.realized_pnl
    return {
        "cashBalance": account.cash_balance,
        "openPositions": positions,
        "orderHistory": [o.to_document() for o in account.prediction.order_history],
        "totals": {
            "investedAmount": round_qty(total_invested),
            "marketValue": round_qty(total_value),
        },
        "realizedPnL": realized,
        "unrealizedPnL": unrealized,
        "totalPnL": round_qty(realized + unrealized),
        "settlementSessionLength": SETTLEMENT_SESSION_LENGTH,
        "skipCount": skip_count,
    }


def account_view(account: Account) -> dict[str, Any]:
    return {
        **account.summary(),
        "guestId": account.guest_id,
        "cashBalanceDisplay": usd_display(account.cash_balance),
        "realizedPnL": account.prediction.realized_pnl,
    }
