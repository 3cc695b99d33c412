import pytest

from src.ms_account.domain.models import Account, PredictionBook, SyntheticBook
from src.ms_common.errors import AppError
from src.ms_risk.rules.amount_check import check_positive_amount
from src.ms_risk.rules.balance_check import check_sufficient_cash
from src.ms_risk.rules.inventory_check import SELL_EPSILON, check_sufficient_inventory

TS = "2025-03-04T13:00:00.000Z"


def _make_account(cash: float) -> Account:
    return Account("guest-risk", "DEMO", cash, SyntheticBook(), PredictionBook(), TS, TS)


class TestPositiveAmount:
    def test_valid_amount(self) -> None:
        assert check_positive_amount(12) == 12.0

    @pytest.mark.parametrize("value", [0, -0.5, float("nan"), float("-inf"), False, "10", None])
    def test_rejected(self, value) -> None:
        with pytest.raises(AppError) as exc_info:
            check_positive_amount(value)
        assert exc_info.value.code == 1001

    def test_field_name_in_message(self) -> None:
        with pytest.raises(AppError) as exc_info:
            check_positive_amount(-1, "contracts")
        assert "contracts" in exc_info.value.message


class TestBalanceCheck:
    def test_exact_balance_allowed(self) -> None:
        check_sufficient_cash(_make_account(50.0), 50.0)  # no exception

    def test_over_balance_raises(self) -> None:
        with pytest.raises(AppError) as exc_info:
            check_sufficient_cash(_make_account(50.0), 50.01)
        assert exc_info.value.code == 2001
        assert exc_info.value.http_status == 422


class TestInventoryCheck:
    def test_within_holding(self) -> None:
        assert check_sufficient_inventory(4.0, 10.0) == 4.0

    def test_epsilon_caps_at_available(self) -> None:
        assert check_sufficient_inventory(10.0 + SELL_EPSILON / 2, 10.0) == 10.0

    def test_beyond_epsilon_raises(self) -> None:
        with pytest.raises(AppError) as exc_info:
            check_sufficient_inventory(10.02, 10.0)
        assert exc_info.value.code == 5001

    def test_nothing_held_raises(self) -> None:
        with pytest.raises(AppError):
            check_sufficient_inventory(0.001, 0.0)
