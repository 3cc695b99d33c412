"""Domain models for ms_account — pure dataclasses, no I/O.

Lots are replaced, never edited in place: a partial sell produces a new
lot via reduced(), so a rejected trade leaves the old list untouched.
Orders are frozen; books only append and trim them.
"""

from dataclasses import dataclass, field, replace
from typing import Any, Generic, TypeVar

from src.ms_common.enums import InstrumentPeriod, OrderType, Outcome, SettlementResult
from src.ms_common.rounding import round_qty, round_usd

DEFAULT_USERNAME = "DEMO"
DEFAULT_GUEST_ID = "guest-default"


# ---------------------------------------------------------------------------
# Lots
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SyntheticPosition:
    id: int
    ticker: str
    units: float
    avg_entry_price: float
    invested_amount: float
    created_at: str
    updated_at: str

    @property
    def quantity(self) -> float:
        return self.units

    def reduced(self, quantity: float, invested: float, at: str) -> "SyntheticPosition":
        return replace(
            self,
            units=round_qty(quantity),
            invested_amount=round_qty(invested),
            avg_entry_price=round_qty(invested / quantity),
            updated_at=at,
        )

    def to_document(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "ticker": self.ticker,
            "units": self.units,
            "avgEntryPrice": self.avg_entry_price,
            "investedAmount": self.invested_amount,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }


@dataclass(frozen=True)
class PredictionPosition:
    id: int
    instrument_id: str
    category: str
    display_ticker: str
    period: InstrumentPeriod
    outcome: Outcome
    contracts: float
    avg_entry_price: float
    invested_amount: float
    target_price: float         # frozen at open
    opened_at_session: int      # settlement anchor for DAILY instruments
    created_at: str
    updated_at: str

    @property
    def quantity(self) -> float:
        return self.contracts

    def reduced(self, quantity: float, invested: float, at: str) -> "PredictionPosition":
        return replace(
            self,
            contracts=round_qty(quantity),
            invested_amount=round_qty(invested),
            avg_entry_price=round_qty(invested / quantity),
            updated_at=at,
        )

    def to_document(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "marketId": self.instrument_id,
            "ticker": self.display_ticker,
            "category": self.category,
            "period": self.period.value,
            "outcome": self.outcome.value,
            "contracts": self.contracts,
            "avgEntryPrice": self.avg_entry_price,
            "investedAmount": self.invested_amount,
            "targetPrice": self.target_price,
            "openedAtSession": self.opened_at_session,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }


# ---------------------------------------------------------------------------
# Order history
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SyntheticOrder:
    id: int
    type: OrderType
    ticker: str
    units: float
    price: float
    amount: float
    realized_pnl: float
    session: int
    created_at: str

    def to_document(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type.value,
            "ticker": self.ticker,
            "units": self.units,
            "price": self.price,
            "amount": self.amount,
            "realizedPnl": self.realized_pnl,
            "session": self.session,
            "createdAt": self.created_at,
        }


@dataclass(frozen=True)
class PredictionOrder:
    id: int
    type: OrderType
    instrument_id: str
    display_ticker: str
    category: str
    period: str
    outcome: Outcome
    contracts: float
    price: float
    amount: float
    realized_pnl: float
    session: int
    created_at: str
    result: SettlementResult | None = None
    note: str | None = None

    def to_document(self) -> dict[str, Any]:
        doc: dict[str, Any] = {
            "id": self.id,
            "type": self.type.value,
            "marketId": self.instrument_id,
            "ticker": self.display_ticker,
            "category": self.category,
            "period": self.period,
            "outcome": self.outcome.value,
            "contracts": self.contracts,
            "price": self.price,
            "amount": self.amount,
            "realizedPnl": self.realized_pnl,
            "session": self.session,
            "createdAt": self.created_at,
        }
        if self.result is not None:
            doc["result"] = self.result.value
        if self.note is not None:
            doc["note"] = self.note
        return doc


# ---------------------------------------------------------------------------
# Books
# ---------------------------------------------------------------------------

LotT = TypeVar("LotT", SyntheticPosition, PredictionPosition)
OrderT = TypeVar("OrderT", SyntheticOrder, PredictionOrder)


@dataclass
class Book(Generic[LotT, OrderT]):
    next_position_id: int = 1
    next_order_id: int = 1
    open_positions: list[LotT] = field(default_factory=list)
    order_history: list[OrderT] = field(default_factory=list)   # newest first

    def allocate_position_id(self) -> int:
        position_id = self.next_position_id
        self.next_position_id += 1
        return position_id

    def allocate_order_id(self) -> int:
        order_id = self.next_order_id
        self.next_order_id += 1
        return order_id

    def push_order(self, order: OrderT, limit: int) -> None:
        self.order_history.insert(0, order)
        del self.order_history[limit:]

    def _base_document(self) -> dict[str, Any]:
        return {
            "nextPositionId": self.next_position_id,
            "nextOrderId": self.next_order_id,
            "openPositions": [p.to_document() for p in self.open_positions],
            "orderHistory": [o.to_document() for o in self.order_history],
        }


@dataclass
class SyntheticBook(Book[SyntheticPosition, SyntheticOrder]):
    def to_document(self) -> dict[str, Any]:
        return self._base_document()


@dataclass
class PredictionBook(Book[PredictionPosition, PredictionOrder]):
    # Permanent accumulator of closed/settled P&L; never derived from cash.
    realized_pnl: float = 0.0

    def to_document(self) -> dict[str, Any]:
        return {"realizedPnL": self.realized_pnl, **self._base_document()}


# ---------------------------------------------------------------------------
# Account
# ---------------------------------------------------------------------------


@dataclass
class Account:
    guest_id: str
    username: str
    cash_balance: float
    synthetic: SyntheticBook
    prediction: PredictionBook
    created_at: str
    updated_at: str
    # Cached unrealized P&L over open lots; rebuilt, never trusted from storage.
    portfolio_pnl: float = 0.0

    def credit(self, amount: float) -> None:
        self.cash_balance = round_usd(self.cash_balance + amount)

    def debit(self, amount: float) -> None:
        self.cash_balance = round_usd(self.cash_balance - amount)

    def summary(self) -> dict[str, Any]:
        return {
            "username": self.username,
            "cashBalance": self.cash_balance,
            "portfolioPnL": self.portfolio_pnl,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }

    def to_document(self) -> dict[str, Any]:
        return {
            **self.summary(),
            "synthetic": self.synthetic.to_document(),
            "prediction": self.prediction.to_document(),
        }
