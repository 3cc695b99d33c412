import pytest

from src.ms_account.domain.models import DEFAULT_GUEST_ID, DEFAULT_USERNAME
from src.ms_account.domain.sanitize import SanitizeContext, sanitize_account
from src.ms_account.domain.store import AccountStore, validate_guest_id
from src.ms_common.enums import Outcome
from src.ms_common.errors import CorruptedStateError, InvalidGuestIdError
from src.ms_market.domain.models import BASE_TICKER_PRICES, INSTRUMENTS

TS = "2025-03-04T13:00:00.000Z"


def _make_context(**overrides) -> SanitizeContext:
    values = dict(
        starting_cash=1240.0,
        tickers=frozenset(BASE_TICKER_PRICES),
        instruments=INSTRUMENTS,
        default_target=lambda category: BASE_TICKER_PRICES[category],
    )
    values.update(overrides)
    return SanitizeContext(**values)


def _prediction_lot(**overrides) -> dict:
    lot = {
        "id": 1,
        "marketId": "2",
        "outcome": "YES",
        "contracts": 10,
        "avgEntryPrice": 0.42,
        "investedAmount": 4.2,
        "targetPrice": 38.0,
        "openedAtSession": 3,
        "createdAt": TS,
        "updatedAt": TS,
    }
    lot.update(overrides)
    return lot


class TestSanitizeCash:
    def test_negative_cash_clamps_to_zero(self) -> None:
        account = sanitize_account({"cashBalance": -50}, "guest-a", _make_context())
        assert account.cash_balance == 0.0

    @pytest.mark.parametrize("raw", ["NaN", None, "lots", float("inf")])
    def test_non_finite_cash_uses_starting_cash(self, raw) -> None:
        account = sanitize_account({"cashBalance": raw}, "guest-a", _make_context())
        assert account.cash_balance == 1240.0

    def test_non_object_becomes_fresh(self) -> None:
        account = sanitize_account("garbage", "guest-a", _make_context())
        assert account.username == DEFAULT_USERNAME
        assert account.synthetic.open_positions == []


class TestSanitizeLots:
    def test_malformed_prediction_lots_dropped(self) -> None:
        raw = {
            "prediction": {
                "openPositions": [
                    _prediction_lot(),
                    _prediction_lot(id=2, outcome="MAYBE"),
                    _prediction_lot(id=3, avgEntryPrice=1.5),
                    _prediction_lot(id=4, contracts=-1),
                    _prediction_lot(id=5, marketId="99"),
                    "not a lot",
                ]
            }
        }
        account = sanitize_account(raw, "guest-a", _make_context())
        lots = account.prediction.open_positions
        assert [lot.id for lot in lots] == [1]
        assert lots[0].outcome == Outcome.YES
        assert lots[0].display_ticker == "DDR5-DAILY"

    def test_ids_and_counters_recomputed(self) -> None:
        raw = {
            "prediction": {
                "nextPositionId": 2,
                "nextOrderId": "x",
                "openPositions": [
                    _prediction_lot(id=7),
                    _prediction_lot(id=7),
                    _prediction_lot(id=None),
                ],
            }
        }
        book = sanitize_account(raw, "guest-a", _make_context()).prediction
        ids = [lot.id for lot in book.open_positions]
        assert len(set(ids)) == 3
        assert book.next_position_id == max(ids) + 1
        assert book.next_order_id == 1

    def test_legacy_opened_session_and_missing_target(self) -> None:
        lot = _prediction_lot(targetPrice=None)
        del lot["openedAtSession"]
        lot["openedSession"] = 4
        raw = {"prediction": {"openPositions": [lot]}}
        ctx = _make_context(default_target=lambda category: 40.123)
        parsed = sanitize_account(raw, "guest-a", ctx).prediction.open_positions[0]
        assert parsed.opened_at_session == 4
        assert parsed.target_price == 40.123

    def test_synthetic_lot_with_unknown_ticker_dropped(self) -> None:
        raw = {
            "synthetic": {
                "openPositions": [
                    {"id": 1, "ticker": "DDR5", "units": 2, "avgEntryPrice": 38, "investedAmount": 76},
                    {"id": 2, "ticker": "HBM3", "units": 2, "avgEntryPrice": 38, "investedAmount": 76},
                ]
            }
        }
        lots = sanitize_account(raw, "guest-a", _make_context()).synthetic.open_positions
        assert [lot.ticker for lot in lots] == ["DDR5"]

    def test_non_string_tickers_dropped(self) -> None:
        raw = {
            "synthetic": {
                "openPositions": [
                    {"id": 1, "ticker": ["DDR5"], "units": 2, "avgEntryPrice": 38, "investedAmount": 76},
                    {"id": 2, "ticker": {"x": 1}, "units": 2, "avgEntryPrice": 38, "investedAmount": 76},
                    {"id": 3, "ticker": "DDR4", "units": 1, "avgEntryPrice": 38, "investedAmount": 38},
                ],
                "orderHistory": [
                    {"id": 1, "type": "BUY", "ticker": {"x": 1}, "units": 1, "price": 38, "amount": 38},
                    {"id": 2, "type": "BUY", "ticker": ["DDR5"], "units": 1, "price": 38, "amount": 38},
                ],
            }
        }
        book = sanitize_account(raw, "guest-a", _make_context()).synthetic
        assert [lot.ticker for lot in book.open_positions] == ["DDR4"]
        assert book.order_history == []

    def test_order_history_trimmed(self) -> None:
        orders = [
            {"id": i, "type": "BUY", "ticker": "DDR5", "units": 1, "price": 38, "amount": 38}
            for i in range(1, 21)
        ]
        raw = {"synthetic": {"orderHistory": orders}}
        book = sanitize_account(raw, "guest-a", _make_context(order_limit=5)).synthetic
        assert [o.id for o in book.order_history] == [1, 2, 3, 4, 5]

    def test_invalid_username_defaults(self) -> None:
        account = sanitize_account({"username": "x!"}, "guest-a", _make_context())
        assert account.username == DEFAULT_USERNAME


class TestAccountStore:
    def test_get_or_create_is_lazy(self) -> None:
        store = AccountStore(_make_context)
        account, created = store.get_or_create("guest-1234")
        assert created is True
        assert account.cash_balance == 1240.0
        again, created = store.get_or_create("guest-1234")
        assert created is False
        assert again.guest_id == "guest-1234"
        assert len(store) == 1

    def test_reads_resanitize_in_memory_record(self) -> None:
        store = AccountStore(_make_context)
        account, _ = store.get_or_create("guest-1234")
        account.cash_balance = -10.0
        again, _ = store.get_or_create("guest-1234")
        assert again.cash_balance == 0.0

    def test_reset_replaces_only_that_guest(self) -> None:
        store = AccountStore(_make_context)
        a, _ = store.get_or_create("guest-aaaa")
        b, _ = store.get_or_create("guest-bbbb")
        a.cash_balance = 5.0
        b.cash_balance = 7.0
        store.reset("guest-aaaa")
        assert store.get("guest-aaaa").cash_balance == 1240.0
        assert store.get("guest-bbbb").cash_balance == 7.0

    def test_invalid_guest_id(self) -> None:
        store = AccountStore(_make_context)
        with pytest.raises(InvalidGuestIdError):
            store.get_or_create("bad id!")
        with pytest.raises(InvalidGuestIdError):
            validate_guest_id("abc")

    def test_legacy_single_account_document_migrates(self) -> None:
        legacy = {"username": "ALICE_1", "cashBalance": 999.5, "prediction": {}}
        store = AccountStore.from_document(legacy, _make_context)
        account = store.get(DEFAULT_GUEST_ID)
        assert account is not None
        assert account.username == "ALICE_1"
        assert account.cash_balance == 999.5

    def test_malformed_guest_keys_dropped(self) -> None:
        doc = {"accounts": {"ok-guest": {"cashBalance": 1}, "no": {"cashBalance": 2}}}
        store = AccountStore.from_document(doc, _make_context)
        assert store.get("ok-guest") is not None
        assert store.get("no") is None

    def test_not_an_object_is_corrupted(self) -> None:
        with pytest.raises(CorruptedStateError):
            AccountStore.from_document([1, 2], _make_context)

    def test_round_trip_is_stable(self) -> None:
        store = AccountStore(_make_context)
        store.get_or_create("guest-1234")
        doc = store.to_document()
        assert AccountStore.from_document(doc, _make_context).to_document() == doc
