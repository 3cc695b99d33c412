import pytest

from src.ms_account.domain.models import Account, PredictionBook, SyntheticBook
from src.ms_account.domain.valuation import (
    account_view,
    prediction_snapshot,
    synthetic_snapshot,
)
from src.ms_common.enums import Outcome
from src.ms_order.domain.executor import TradeExecutor

TS = "2025-03-04T13:00:00.000Z"


def _make_account() -> Account:
    return Account("guest-val", "DEMO", 1000.0, SyntheticBook(), PredictionBook(), TS, TS)


def test_synthetic_snapshot_marks_to_live_price(quotes) -> None:
    account = _make_account()
    TradeExecutor(quotes).buy_synthetic(account, "DDR4", 78.41)
    quotes.prices["DDR4"] = 80.0

    snap = synthetic_snapshot(account, quotes)
    (position,) = snap["openPositions"]
    assert position["currentPrice"] == 80.0
    assert position["marketValue"] == pytest.approx(80.0)
    assert snap["totals"]["unrealizedPnL"] == pytest.approx(1.59, abs=1e-3)


def test_prediction_snapshot_session_countdown(quotes) -> None:
    account = _make_account()
    executor = TradeExecutor(quotes)
    executor.buy_prediction(account, "2", Outcome.YES, 10)
    executor.buy_prediction(account, "1", Outcome.NO, 10)
    quotes.skip_count = 2

    snap = prediction_snapshot(account, quotes)
    daily, monthly = snap["openPositions"]
    assert daily["sessionsHeld"] == 2
    assert daily["sessionsToSettlement"] == 1
    assert monthly["sessionsToSettlement"] is None
    assert snap["settlementSessionLength"] == 3
    assert snap["totalPnL"] == pytest.approx(snap["realizedPnL"] + snap["unrealizedPnL"])


def test_account_view_display() -> None:
    view = account_view(_make_account())
    assert view["guestId"] == "guest-val"
    assert view["cashBalanceDisplay"] == "$1,000.00"
    assert view["realizedPnL"] == 0.0
