import pytest

from src.ms_account.domain.models import Account, PredictionBook, SyntheticBook
from src.ms_clearing.domain.settlement import (
    is_due,
    settle_account,
    settle_due_positions,
    winning_outcome,
)
from src.ms_common.enums import OrderType, Outcome, SettlementResult
from src.ms_order.domain.executor import TradeExecutor

TS = "2025-03-04T13:00:00.000Z"


def _make_account(guest_id: str = "guest-settle", cash: float = 1000.0) -> Account:
    return Account(guest_id, "DEMO", cash, SyntheticBook(), PredictionBook(), TS, TS)


def _open_daily_yes(quotes, account: Account, amount: float = 42.0) -> None:
    # Instrument "2" is DDR5-DAILY at chance 42, so YES costs 0.42.
    quotes.chances["2"] = 42.0
    TradeExecutor(quotes).buy_prediction(account, "2", Outcome.YES, amount)


class TestWinningOutcome:
    def test_above_target_is_yes(self) -> None:
        assert winning_outcome(38.1, 38.067) == Outcome.YES

    def test_tie_is_no(self) -> None:
        assert winning_outcome(38.067, 38.067) == Outcome.NO

    def test_below_target_is_no(self) -> None:
        assert winning_outcome(37.0, 38.067) == Outcome.NO


class TestIsDue:
    def test_due_after_three_sessions(self, quotes) -> None:
        account = _make_account()
        _open_daily_yes(quotes, account)
        (lot,) = account.prediction.open_positions
        assert not is_due(lot, 2)
        assert is_due(lot, 3)
        assert is_due(lot, 9)

    def test_monthly_never_due(self, quotes) -> None:
        account = _make_account()
        TradeExecutor(quotes).buy_prediction(account, "1", Outcome.YES, 10)
        (lot,) = account.prediction.open_positions
        assert not is_due(lot, 1000)


class TestSettleAccount:
    def test_winning_lot_pays_one_per_contract(self, quotes) -> None:
        account = _make_account()
        _open_daily_yes(quotes, account)
        assert account.cash_balance == 958.0

        quotes.prices["DDR5"] = 40.0
        quotes.skip_count = 3
        (entry,) = settle_account(account, quotes)

        assert entry.winner == Outcome.YES
        assert entry.result == SettlementResult.WIN
        assert entry.payout == 100.0
        assert entry.realized_pnl == pytest.approx(58.0)
        assert account.cash_balance == 1058.0
        assert account.prediction.open_positions == []
        assert account.prediction.realized_pnl == pytest.approx(58.0)

        order = account.prediction.order_history[0]
        assert order.type == OrderType.SETTLEMENT
        assert order.price == 1.0
        assert order.result == SettlementResult.WIN
        assert order.session == 3
        assert "YES wins" in order.note

    def test_tie_loses_for_yes_holder(self, quotes) -> None:
        account = _make_account()
        _open_daily_yes(quotes, account)
        quotes.skip_count = 3   # price unchanged, equal to frozen target

        (entry,) = settle_account(account, quotes)
        assert entry.result == SettlementResult.LOSS
        assert entry.payout == 0.0
        assert account.cash_balance == 958.0
        assert account.prediction.realized_pnl == pytest.approx(-42.0)
        assert account.prediction.order_history[0].price == 0.0

    def test_not_yet_due_is_untouched(self, quotes) -> None:
        account = _make_account()
        _open_daily_yes(quotes, account)
        quotes.skip_count = 2
        before = account.to_document()
        assert settle_account(account, quotes) == []
        assert account.to_document() == before

    def test_uses_frozen_target_not_current(self, quotes) -> None:
        account = _make_account()
        _open_daily_yes(quotes, account)
        quotes.price_to_beat["DDR5"] = 50.0
        quotes.prices["DDR5"] = 39.0
        quotes.skip_count = 3
        (entry,) = settle_account(account, quotes)
        assert entry.winner == Outcome.YES


def test_settle_due_positions_spans_accounts(quotes) -> None:
    first, second = _make_account("guest-one"), _make_account("guest-two")
    _open_daily_yes(quotes, first)
    quotes.skip_count = 1
    _open_daily_yes(quotes, second)

    quotes.skip_count = 3
    settled = settle_due_positions([first, second], quotes)
    assert [s.guest_id for s in settled] == ["guest-one"]
    assert len(second.prediction.open_positions) == 1

    quotes.skip_count = 4
    settled = settle_due_positions([first, second], quotes)
    assert [s.guest_id for s in settled] == ["guest-two"]
