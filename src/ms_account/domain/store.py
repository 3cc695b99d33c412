"""AccountStore — guest-keyed accounts, created lazily, sanitized on every read."""

import logging
import re
from collections.abc import Callable, Iterator
from typing import Any

from src.ms_common.datetime_utils import iso_or_now, to_iso, utc_now
from src.ms_common.errors import CorruptedStateError, InvalidGuestIdError
from src.ms_account.domain.models import (
    DEFAULT_GUEST_ID,
    DEFAULT_USERNAME,
    Account,
    PredictionBook,
    SyntheticBook,
)
from src.ms_account.domain.sanitize import SanitizeContext, sanitize_account

logger = logging.getLogger(__name__)

GUEST_ID_PATTERN = re.compile(r"^[a-zA-Z0-9_-]{4,80}$")


def validate_guest_id(guest_id: Any) -> str:
    if not isinstance(guest_id, str) or not GUEST_ID_PATTERN.match(guest_id):
        raise InvalidGuestIdError()
    return guest_id


class AccountStore:
    VERSION = "2.0"

    def __init__(
        self,
        context: Callable[[], SanitizeContext],
        accounts: dict[str, Account] | None = None,
        created_at: str | None = None,
    ) -> None:
        # context is a factory: targets depend on the live session clock
        self._context = context
        self._accounts: dict[str, Account] = dict(accounts or {})
        self.created_at = created_at or to_iso(utc_now())

    @classmethod
    def from_document(
        cls, raw: Any, context: Callable[[], SanitizeContext]
    ) -> "AccountStore":
        if not isinstance(raw, dict):
            raise CorruptedStateError("account document is not an object")
        ctx = context()
        raw_accounts = raw.get("accounts")
        if not isinstance(raw_accounts, dict):
            if "cashBalance" in raw:
                logger.info("Migrating single-account document into %s", DEFAULT_GUEST_ID)
                raw_accounts = {DEFAULT_GUEST_ID: raw}
            else:
                raw_accounts = {}

        accounts: dict[str, Account] = {}
        for guest_id, record in raw_accounts.items():
            if not isinstance(guest_id, str) or not GUEST_ID_PATTERN.match(guest_id):
                logger.warning("Dropping account with malformed guest id %r", guest_id)
                continue
            accounts[guest_id] = sanitize_account(record, guest_id, ctx)

        metadata = raw.get("metadata") if isinstance(raw.get("metadata"), dict) else {}
        return cls(context, accounts, iso_or_now(metadata.get("createdAt"), ctx.now))

    def fresh_account(self, guest_id: str) -> Account:
        ctx = self._context()
        now = to_iso(ctx.now or utc_now())
        return Account(
            guest_id=guest_id,
            username=DEFAULT_USERNAME,
            cash_balance=ctx.starting_cash,
            synthetic=SyntheticBook(),
            prediction=PredictionBook(),
            created_at=now,
            updated_at=now,
        )

    def get(self, guest_id: str) -> Account | None:
        return self._accounts.get(guest_id)

    def get_or_create(self, guest_id: str) -> tuple[Account, bool]:
        """Return (account, created). Existing records are re-sanitized."""
        validate_guest_id(guest_id)
        existing = self._accounts.get(guest_id)
        if existing is None:
            account = self.fresh_account(guest_id)
            self._accounts[guest_id] = account
            return account, True
        account = sanitize_account(existing.to_document(), guest_id, self._context())
        self._accounts[guest_id] = account
        return account, False

    def reset(self, guest_id: str) -> Account:
        validate_guest_id(guest_id)
        account = self.fresh_account(guest_id)
        self._accounts[guest_id] = account
        return account

    def accounts(self) -> Iterator[Account]:
        return iter(list(self._accounts.values()))

    def __len__(self) -> int:
        return len(self._accounts)

    def to_document(self) -> dict[str, Any]:
        return {
            "metadata": {"createdAt": self.created_at, "version": self.VERSION},
            "accounts": {g: a.to_document() for g, a in self._accounts.items()},
        }
