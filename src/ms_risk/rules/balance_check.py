from src.ms_common.errors import InsufficientFundsError
from src.ms_account.domain.models import Account


def check_sufficient_cash(account: Account, amount: float) -> None:
    """Raise InsufficientFundsError(2001) if a debit of amount would take cash below 0."""
    if amount > account.cash_balance:
        raise InsufficientFundsError(amount, account.cash_balance)
