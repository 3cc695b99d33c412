"""MarketEngine — sole owner and writer of all market and account state.

Every public method runs to completion synchronously: validate, mutate the
in-memory ledgers, persist the touched snapshots, then notify listeners.
Handlers call it from the event loop without awaiting in between, so two
requests can never interleave inside one operation.
"""

import logging
import random
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from src.ms_common.datetime_utils import to_iso, utc_now
from src.ms_common.enums import Outcome, PriceSource
from src.ms_common.errors import CorruptedStateError, InvalidUsernameError
from src.ms_common.json_store import SnapshotRepositoryProtocol
from src.ms_common.rounding import round_usd, to_finite, usd_display
from src.ms_account.domain.models import Account
from src.ms_account.domain.sanitize import USERNAME_PATTERN, SanitizeContext
from src.ms_account.domain.store import AccountStore
from src.ms_account.domain.valuation import (
    account_view,
    prediction_snapshot,
    recompute_portfolio_pnl,
    synthetic_snapshot,
)
from src.ms_clearing.domain.settlement import SettledLot, settle_due_positions
from src.ms_engine.engine.activity import ActivityFeed
from src.ms_market.domain.chance_ledger import ChanceLedger
from src.ms_market.domain.models import BASE_TICKER_PRICES, INSTRUMENTS, Instrument
from src.ms_market.domain.price_ledger import PriceLedger
from src.ms_market.domain.quotes import LedgerQuotes
from src.ms_market.domain.random_walk import BoundedRandomWalk
from src.ms_market.domain.session_clock import SessionClock
from src.ms_order.domain.executor import TradeExecutor
from src.ms_risk.rules.amount_check import check_positive_amount

logger = logging.getLogger(__name__)

Listener = Callable[[str, dict[str, Any]], None]


@dataclass(frozen=True)
class EngineConfig:
    starting_cash: float = 1240.0
    max_skip_sessions: int = 20
    order_history_limit: int = 500
    activity_feed_limit: int = 500
    random_seed: int | None = None


@dataclass(frozen=True)
class EngineRepositories:
    prices: SnapshotRepositoryProtocol
    chances: SnapshotRepositoryProtocol
    session: SnapshotRepositoryProtocol
    accounts: SnapshotRepositoryProtocol
    activity: SnapshotRepositoryProtocol


def coerce_skip_count(raw: Any, maximum: int) -> int:
    """Anything non-numeric or below 1 becomes 1; above maximum becomes maximum."""
    value = int(to_finite(raw, 1))
    return max(1, min(maximum, value))


class MarketEngine:
    def __init__(
        self,
        repositories: EngineRepositories,
        config: EngineConfig | None = None,
        base_prices: dict[str, float] = BASE_TICKER_PRICES,
        instruments: dict[str, Instrument] = INSTRUMENTS,
        now: datetime | None = None,
    ) -> None:
        self.config = config or EngineConfig()
        self._repos = repositories
        self._instruments = instruments
        self._rng = random.Random(self.config.random_seed)
        self._listeners: list[Listener] = []

        self.prices = self._load_prices(base_prices, now)
        self.chances = self._load_chances(now)
        self.clock = self._load_clock(now)
        self.quotes = LedgerQuotes(self.prices, self.chances, self.clock)
        self.accounts = self._load_accounts()
        self.activity = self._load_activity(now)

        self._walk = BoundedRandomWalk(self._rng)
        self._executor = TradeExecutor(self.quotes, self.config.order_history_limit)
        logger.info(
            "Market engine ready: %d tickers, %d instruments, %d accounts, session %d",
            len(self.prices.tickers), len(instruments), len(self.accounts),
            self.clock.skip_count,
        )

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def _recover(self, repo: SnapshotRepositoryProtocol, raw: Any, fresh: Any) -> Any:
        if raw is not None:
            logger.warning("Snapshot %s is corrupted; replacing with defaults", repo.name)
        repo.save(fresh.to_document())
        return fresh

    def _persist_if_repaired(self, repo: SnapshotRepositoryProtocol, raw: Any, ledger: Any) -> None:
        document = ledger.to_document()
        if document != raw:
            repo.save(document)

    def _load_prices(self, base_prices: dict[str, float], now: datetime | None) -> PriceLedger:
        repo = self._repos.prices
        raw = repo.load()
        seed = self.config.random_seed
        try:
            ledger, _ = PriceLedger.from_document(raw, base_prices, seed, now)
        except CorruptedStateError:
            return self._recover(repo, raw, PriceLedger.seeded(base_prices, seed, now))
        self._persist_if_repaired(repo, raw, ledger)
        return ledger

    def _load_chances(self, now: datetime | None) -> ChanceLedger:
        repo = self._repos.chances
        raw = repo.load()
        try:
            ledger = ChanceLedger.from_document(raw, self._rng, self._instruments, now)
        except CorruptedStateError:
            return self._recover(
                repo, raw, ChanceLedger.seeded(self._rng, self._instruments, now)
            )
        self._persist_if_repaired(repo, raw, ledger)
        return ledger

    def _load_clock(self, now: datetime | None) -> SessionClock:
        repo = self._repos.session
        raw = repo.load()
        current = self.prices.current_prices()
        try:
            clock = SessionClock.from_document(raw, current, now)
        except CorruptedStateError:
            return self._recover(repo, raw, SessionClock.fresh(current, now))
        self._persist_if_repaired(repo, raw, clock)
        return clock

    def _load_accounts(self) -> AccountStore:
        repo = self._repos.accounts
        raw = repo.load()
        try:
            store = AccountStore.from_document(raw, self._sanitize_context)
        except CorruptedStateError:
            return self._recover(repo, raw, AccountStore(self._sanitize_context))
        for account in store.accounts():
            recompute_portfolio_pnl(account, self.quotes)
        self._persist_if_repaired(repo, raw, store)
        return store

    def _load_activity(self, now: datetime | None) -> ActivityFeed:
        repo = self._repos.activity
        raw = repo.load()
        limit = self.config.activity_feed_limit
        try:
            feed = ActivityFeed.from_document(raw, limit, now)
        except CorruptedStateError:
            return self._recover(repo, raw, ActivityFeed(limit=limit))
        self._persist_if_repaired(repo, raw, feed)
        return feed

    def _sanitize_context(self) -> SanitizeContext:
        return SanitizeContext(
            starting_cash=self.config.starting_cash,
            tickers=frozenset(self.prices.tickers),
            instruments=self._instruments,
            default_target=self._default_target,
            order_limit=self.config.order_history_limit,
        )

    def _default_target(self, category: str) -> float:
        target = self.clock.price_to_beat.get(category)
        return target if target else self.prices.current_price(category)

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def add_listener(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _notify(self, event: str, payload: dict[str, Any]) -> None:
        for listener in list(self._listeners):
            try:
                listener(event, payload)
            except Exception:
                # A broken viewer must never fail the mutation that already happened.
                logger.exception("Listener failed for event %s", event)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _save_market(self) -> None:
        self._repos.prices.save(self.prices.to_document())
        self._repos.chances.save(self.chances.to_document())
        self._repos.session.save(self.clock.to_document())

    def _save_accounts(self) -> None:
        self._repos.accounts.save(self.accounts.to_document())

    def _log_activity(self, text: str) -> None:
        self.activity.push(text)
        self._repos.activity.save(self.activity.to_document())
        self._notify("activityUpdated", self.activity.to_document())

    def _account_changed(self, account: Account) -> None:
        recompute_portfolio_pnl(account, self.quotes)
        self._save_accounts()
        self._notify("accountUpdated", {"guestId": account.guest_id, "account": account_view(account)})

    # ------------------------------------------------------------------
    # Market
    # ------------------------------------------------------------------

    def snapshot(self) -> dict[str, Any]:
        return {
            "prices": self.prices.current_prices(),
            "histories": self.prices.price_series(),
            "historyTimestamps": self.prices.timestamp_series(),
            "statistics": self.prices.statistics_document(),
            "priceToBeat": dict(self.clock.price_to_beat),
            "chances": self.chances.current_chances(),
            "chanceHistories": self.chances.chance_histories(),
            **self.clock.to_snapshot(),
        }

    def price_document(self) -> dict[str, Any]:
        return self.prices.to_document()

    def instruments(self) -> list[dict[str, Any]]:
        return [
            {
                **i.to_document(),
                "chance": self.chances.current(i.id),
                "yesPrice": self.quotes.contract_price(i.id, Outcome.YES),
                "noPrice": self.quotes.contract_price(i.id, Outcome.NO),
            }
            for i in self._instruments.values()
        ]

    def _tick_chances(self, ticker: str, previous: float) -> None:
        self.chances.bump_ticker(ticker, self.prices.current_price(ticker) - previous)

    def _revalue_all(self) -> None:
        for account in self.accounts.accounts():
            recompute_portfolio_pnl(account, self.quotes)

    def record_price(
        self, ticker: str, price: float, source: PriceSource = PriceSource.MANUAL
    ) -> dict[str, Any]:
        """Manual or API price override. The stored price is always double-clamped."""
        previous = self.prices.current_price(ticker)
        entry = self.prices.record(ticker, price, source)
        self._tick_chances(ticker, previous)
        self._revalue_all()
        self._save_market()
        self._save_accounts()
        logger.info("Price %s: %.3f requested, %.3f recorded", ticker, price, entry.price)
        snapshot = self.snapshot()
        self._notify("pricesUpdated", snapshot)
        return {"entry": entry.to_document(), **snapshot}

    def skip_sessions(self, count: Any = 1) -> dict[str, Any]:
        """Advance the clock count times (coerced into 1..max). Returns what happened."""
        count = coerce_skip_count(count, self.config.max_skip_sessions)
        settled: list[SettledLot] = []
        resyncs = 0
        for _ in range(count):
            slot = self.clock.advance()
            for ticker in self.prices.tickers:
                previous = self.prices.current_price(ticker)
                self.prices.record(
                    ticker,
                    self._walk.next_session_price(previous, self.prices.base_price(ticker)),
                    PriceSource.SESSION_SKIP,
                )
                self._tick_chances(ticker, previous)
            settled.extend(
                settle_due_positions(
                    list(self.accounts.accounts()), self.quotes, self.config.order_history_limit
                )
            )
            if slot == 0:
                self.clock.resync_price_to_beat(self.prices.current_prices())
                self.chances.reset_all_daily()
                resyncs += 1

        self._revalue_all()
        self._save_market()
        self._save_accounts()
        logger.info(
            "Skipped %d session(s): now at %d, slot %d, %d settlement(s)",
            count, self.clock.skip_count, self.clock.last_session_slot_index, len(settled),
        )

        for lot in settled:
            self.activity.push(
                f"{lot.lot.display_ticker} {lot.lot.outcome.value} settled {lot.result.value} "
                f"({usd_display(lot.payout)} payout)"
            )
        self._log_activity(
            f"Market advanced {count} session{'s' if count != 1 else ''} "
            f"(session #{self.clock.skip_count})"
        )
        snapshot = {**self.snapshot(), "skippedSessions": count}
        self._notify("pricesUpdated", snapshot)
        for guest_id in sorted({lot.guest_id for lot in settled}):
            account = self.accounts.get(guest_id)
            if account is not None:
                self._notify("accountUpdated", {"guestId": guest_id, "account": account_view(account)})
        return {
            "skippedSessions": count,
            "settlements": len(settled),
            "priceToBeatResyncs": resyncs,
            **snapshot,
        }

    def reconcile_session(self) -> dict[str, Any]:
        changed = self.clock.reconcile()
        if changed:
            self._repos.session.save(self.clock.to_document())
            logger.info("Session clock realigned to slot %d", self.clock.last_session_slot_index)
        return {"changed": changed, **self.clock.to_snapshot()}

    # ------------------------------------------------------------------
    # Accounts
    # ------------------------------------------------------------------

    def _account(self, guest_id: str) -> Account:
        account, created = self.accounts.get_or_create(guest_id)
        recompute_portfolio_pnl(account, self.quotes)
        if created:
            logger.info("Created account for guest %s", guest_id)
            self._save_accounts()
        return account

    def get_account(self, guest_id: str) -> dict[str, Any]:
        return account_view(self._account(guest_id))

    def deposit(self, guest_id: str, amount: float) -> dict[str, Any]:
        amount = round_usd(check_positive_amount(amount))
        check_positive_amount(amount)
        account = self._account(guest_id)
        account.credit(amount)
        account.updated_at = to_iso(utc_now())
        self._account_changed(account)
        self._log_activity(f"{account.username} deposited {usd_display(amount)}")
        return account_view(account)

    def set_username(self, guest_id: str, username: Any) -> dict[str, Any]:
        if not isinstance(username, str) or not USERNAME_PATTERN.match(username.strip()):
            raise InvalidUsernameError()
        account = self._account(guest_id)
        account.username = username.strip()
        account.updated_at = to_iso(utc_now())
        self._account_changed(account)
        return account_view(account)

    def reset_account(self, guest_id: str) -> dict[str, Any]:
        account = self.accounts.reset(guest_id)
        recompute_portfolio_pnl(account, self.quotes)
        self._account_changed(account)
        self._log_activity(f"{account.username} reset their demo account")
        logger.info("Reset account for guest %s", guest_id)
        return account_view(account)

    # ------------------------------------------------------------------
    # Portfolios and trades
    # ------------------------------------------------------------------

    def synthetic_portfolio(self, guest_id: str) -> dict[str, Any]:
        account = self._account(guest_id)
        return {"account": account_view(account), "synthetic": synthetic_snapshot(account, self.quotes)}

    def prediction_portfolio(self, guest_id: str) -> dict[str, Any]:
        account = self._account(guest_id)
        return {"account": account_view(account), "prediction": prediction_snapshot(account, self.quotes)}

    def buy_synthetic(self, guest_id: str, ticker: str, amount: float) -> dict[str, Any]:
        account = self._account(guest_id)
        order = self._executor.buy_synthetic(account, ticker, amount)
        self._account_changed(account)
        self._log_activity(
            f"{account.username} bought {order.units:.4f} {ticker} for {usd_display(order.amount)}"
        )
        return {"order": order.to_document(), **self.synthetic_portfolio(guest_id)}

    def sell_synthetic(
        self,
        guest_id: str,
        ticker: str,
        units: float | None = None,
        amount: float | None = None,
    ) -> dict[str, Any]:
        account = self._account(guest_id)
        order = self._executor.sell_synthetic(account, ticker, units=units, amount=amount)
        self._account_changed(account)
        self._log_activity(
            f"{account.username} sold {order.units:.4f} {ticker} for {usd_display(order.amount)}"
        )
        return {"order": order.to_document(), **self.synthetic_portfolio(guest_id)}

    def buy_prediction(
        self, guest_id: str, instrument_id: str, outcome: Outcome, amount: float
    ) -> dict[str, Any]:
        account = self._account(guest_id)
        order = self._executor.buy_prediction(account, instrument_id, outcome, amount)
        self._account_changed(account)
        self._log_activity(
            f"{account.username} bought {order.contracts:.2f} {order.display_ticker} "
            f"{outcome.value} for {usd_display(order.amount)}"
        )
        return {"order": order.to_document(), **self.prediction_portfolio(guest_id)}

    def sell_prediction(
        self, guest_id: str, instrument_id: str, outcome: Outcome, contracts: float
    ) -> dict[str, Any]:
        account = self._account(guest_id)
        order = self._executor.sell_prediction(account, instrument_id, outcome, contracts)
        self._account_changed(account)
        self._log_activity(
            f"{account.username} sold {order.contracts:.2f} {order.display_ticker} "
            f"{outcome.value} for {usd_display(order.amount)}"
        )
        return {"order": order.to_document(), **self.prediction_portfolio(guest_id)}

    # ------------------------------------------------------------------
    # Activity and health
    # ------------------------------------------------------------------

    def activity_feed(self) -> dict[str, Any]:
        return self.activity.to_document()

    def health(self) -> dict[str, Any]:
        return {
            "status": "ok",
            "skipCount": self.clock.skip_count,
            "accounts": len(self.accounts),
            "prices": self.prices.current_prices(),
        }
