"""AccountApplicationService — guest account operations over the engine."""

from typing import Any

from src.ms_account.application.schemas import DepositRequest, UsernameRequest
from src.ms_engine.engine.engine import MarketEngine


class AccountApplicationService:
    def get_account(self, engine: MarketEngine, guest_id: str) -> dict[str, Any]:
        return {"guestId": guest_id, "account": engine.get_account(guest_id)}

    def deposit(
        self, engine: MarketEngine, guest_id: str, body: DepositRequest
    ) -> dict[str, Any]:
        return {"guestId": guest_id, "account": engine.deposit(guest_id, body.amount)}

    def set_username(
        self, engine: MarketEngine, guest_id: str, body: UsernameRequest
    ) -> dict[str, Any]:
        return {"guestId": guest_id, "account": engine.set_username(guest_id, body.username)}

    def reset(self, engine: MarketEngine, guest_id: str) -> dict[str, Any]:
        return {"guestId": guest_id, "account": engine.reset_account(guest_id)}
