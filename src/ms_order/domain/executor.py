"""TradeExecutor — BUY/SELL against the synthetic and prediction books.

Each trade validates and prices everything before the first write, then
applies lots, cash and the order record together. A rejected trade raises
an AppError and leaves the account exactly as it was.
"""

import logging
from datetime import datetime

from src.ms_common.datetime_utils import to_iso, utc_now
from src.ms_common.enums import OrderType, Outcome
from src.ms_common.errors import InvalidInputError
from src.ms_common.rounding import QTY_EPSILON, round_price, round_qty, round_usd
from src.ms_account.domain.models import (
    Account,
    PredictionOrder,
    PredictionPosition,
    SyntheticOrder,
    SyntheticPosition,
)
from src.ms_market.domain.quotes import QuoteSourceProtocol
from src.ms_order.domain.lots import available_quantity, split_lots
from src.ms_risk.rules.amount_check import check_positive_amount
from src.ms_risk.rules.balance_check import check_sufficient_cash
from src.ms_risk.rules.inventory_check import check_sufficient_inventory

logger = logging.getLogger(__name__)


class TradeExecutor:
    def __init__(self, quotes: QuoteSourceProtocol, order_limit: int = 500) -> None:
        self._quotes = quotes
        self._order_limit = order_limit

    # ------------------------------------------------------------------
    # Synthetic
    # ------------------------------------------------------------------

    def buy_synthetic(
        self, account: Account, ticker: str, amount: float, now: datetime | None = None
    ) -> SyntheticOrder:
        amount = round_usd(check_positive_amount(amount))
        price = self._quotes.ticker_price(ticker)
        check_positive_amount(amount)
        check_sufficient_cash(account, amount)
        units = round_qty(amount / price)
        if units <= QTY_EPSILON:
            raise InvalidInputError("amount too small to fill one unit fraction")

        at = to_iso(now or utc_now())
        book = account.synthetic
        lot = SyntheticPosition(
            id=book.allocate_position_id(),
            ticker=ticker,
            units=units,
            avg_entry_price=round_qty(price),
            invested_amount=round_qty(amount),
            created_at=at,
            updated_at=at,
        )
        order = SyntheticOrder(
            id=book.allocate_order_id(),
            type=OrderType.BUY,
            ticker=ticker,
            units=units,
            price=round_qty(price),
            amount=round_qty(amount),
            realized_pnl=0.0,
            session=self._quotes.skip_count,
            created_at=at,
        )
        book.open_positions.append(lot)
        account.debit(amount)
        book.push_order(order, self._order_limit)
        account.updated_at = at
        logger.info("BUY %s %.4f units @ %.3f for %s", ticker, units, price, account.guest_id)
        return order

    def sell_synthetic(
        self,
        account: Account,
        ticker: str,
        units: float | None = None,
        amount: float | None = None,
        now: datetime | None = None,
    ) -> SyntheticOrder:
        """Sell by units, or by USD value converted to units at the live price."""
        if (units is None) == (amount is None):
            raise InvalidInputError("provide exactly one of units or amount")
        price = self._quotes.ticker_price(ticker)
        if units is not None:
            requested = check_positive_amount(units, "units")
        else:
            requested = check_positive_amount(amount, "amount") / price

        book = account.synthetic
        matches = lambda lot: lot.ticker == ticker  # noqa: E731
        quantity = check_sufficient_inventory(
            round_qty(requested), available_quantity(book.open_positions, matches)
        )

        at = to_iso(now or utc_now())
        split = split_lots(book.open_positions, matches, quantity, at)
        proceeds = round_qty(split.sold_quantity * price)
        realized = round_qty(proceeds - split.removed_cost)
        order = SyntheticOrder(
            id=book.next_order_id,
            type=OrderType.SELL,
            ticker=ticker,
            units=split.sold_quantity,
            price=round_qty(price),
            amount=proceeds,
            realized_pnl=realized,
            session=self._quotes.skip_count,
            created_at=at,
        )
        book.allocate_order_id()
        book.open_positions = split.remaining
        account.credit(proceeds)
        book.push_order(order, self._order_limit)
        account.updated_at = at
        logger.info(
            "SELL %s %.4f units @ %.3f for %s (pnl %.4f)",
            ticker, split.sold_quantity, price, account.guest_id, realized,
        )
        return order

    # ------------------------------------------------------------------
    # Prediction
    # ------------------------------------------------------------------

    def buy_prediction(
        self,
        account: Account,
        instrument_id: str,
        outcome: Outcome,
        amount: float,
        now: datetime | None = None,
    ) -> PredictionOrder:
        amount = round_usd(check_positive_amount(amount))
        instrument = self._quotes.instrument(instrument_id)
        price = self._quotes.contract_price(instrument_id, outcome)
        check_positive_amount(amount)
        check_sufficient_cash(account, amount)
        contracts = round_qty(amount / price)

        at = to_iso(now or utc_now())
        session = self._quotes.skip_count
        book = account.prediction
        # Never merged with an existing lot: target and session anchor are per lot.
        lot = PredictionPosition(
            id=book.allocate_position_id(),
            instrument_id=instrument.id,
            category=instrument.category,
            display_ticker=instrument.display_ticker,
            period=instrument.period,
            outcome=outcome,
            contracts=contracts,
            avg_entry_price=price,
            invested_amount=round_qty(amount),
            target_price=round_price(self._quotes.target_price(instrument)),
            opened_at_session=session,
            created_at=at,
            updated_at=at,
        )
        order = PredictionOrder(
            id=book.allocate_order_id(),
            type=OrderType.BUY,
            instrument_id=instrument.id,
            display_ticker=instrument.display_ticker,
            category=instrument.category,
            period=instrument.period.value,
            outcome=outcome,
            contracts=contracts,
            price=price,
            amount=round_qty(amount),
            realized_pnl=0.0,
            session=session,
            created_at=at,
        )
        book.open_positions.append(lot)
        account.debit(amount)
        book.push_order(order, self._order_limit)
        account.updated_at = at
        logger.info(
            "BUY %s %s %.4f contracts @ %.4f for %s",
            instrument.display_ticker, outcome.value, contracts, price, account.guest_id,
        )
        return order

    def sell_prediction(
        self,
        account: Account,
        instrument_id: str,
        outcome: Outcome,
        contracts: float,
        now: datetime | None = None,
    ) -> PredictionOrder:
        requested = check_positive_amount(contracts, "contracts")
        instrument = self._quotes.instrument(instrument_id)
        price = self._quotes.contract_price(instrument_id, outcome)

        book = account.prediction
        matches = lambda lot: (  # noqa: E731
            lot.instrument_id == instrument.id and lot.outcome == outcome
        )
        quantity = check_sufficient_inventory(
            round_qty(requested), available_quantity(book.open_positions, matches)
        )

        at = to_iso(now or utc_now())
        split = split_lots(book.open_positions, matches, quantity, at)
        proceeds = round_qty(split.sold_quantity * price)
        realized = round_qty(proceeds - split.removed_cost)
        order = PredictionOrder(
            id=book.next_order_id,
            type=OrderType.SELL,
            instrument_id=instrument.id,
            display_ticker=instrument.display_ticker,
            category=instrument.category,
            period=instrument.period.value,
            outcome=outcome,
            contracts=split.sold_quantity,
            price=price,
            amount=proceeds,
            realized_pnl=realized,
            session=self._quotes.skip_count,
            created_at=at,
        )
        book.allocate_order_id()
        book.open_positions = split.remaining
        book.realized_pnl = round_qty(book.realized_pnl + realized)
        account.credit(proceeds)
        book.push_order(order, self._order_limit)
        account.updated_at = at
        logger.info(
            "SELL %s %s %.4f contracts @ %.4f for %s (pnl %.4f)",
            instrument.display_ticker, outcome.value, split.sold_quantity, price,
            account.guest_id, realized,
        )
        return order
