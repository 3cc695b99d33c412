"""Repair untrusted account records.

Every field is treated as hostile input: negative balances clamp to 0,
non-finite numbers fall back to defaults, malformed lots and orders are
dropped, and id counters are recomputed as max(existing) + 1. A
hand-edited or half-written snapshot can never crash the engine or create
negative inventory.
"""

import math
import re
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from src.ms_common.datetime_utils import iso_or_now, utc_now
from src.ms_common.enums import OrderType, Outcome, SettlementResult
from src.ms_common.rounding import round_price, round_qty, round_usd, to_finite
from src.ms_account.domain.models import (
    DEFAULT_USERNAME,
    Account,
    PredictionBook,
    PredictionOrder,
    PredictionPosition,
    SyntheticBook,
    SyntheticOrder,
    SyntheticPosition,
)
from src.ms_market.domain.models import Instrument

USERNAME_PATTERN = re.compile(r"^[A-Za-z0-9_]{3,20}$")


@dataclass(frozen=True)
class SanitizeContext:
    starting_cash: float
    tickers: frozenset[str]
    instruments: dict[str, Instrument]
    default_target: Callable[[str], float]     # category -> price-to-beat fallback
    order_limit: int = 500
    now: datetime | None = None

    def timestamp(self, value: Any) -> str:
        return iso_or_now(value, self.now or utc_now())


def _positive(value: Any) -> float | None:
    number = to_finite(value, math.nan)
    if math.isnan(number) or number <= 0:
        return None
    return number


def _non_negative_int(value: Any, default: int = 0) -> int:
    return max(0, int(to_finite(value, default)))


def _outcome(value: Any) -> Outcome | None:
    try:
        return Outcome(value)
    except ValueError:
        return None


def _order_type(value: Any) -> OrderType | None:
    try:
        return OrderType(value)
    except ValueError:
        return None


def _known_ticker(value: Any, ctx: SanitizeContext) -> bool:
    return isinstance(value, str) and value in ctx.tickers


def _assign_ids(items: list[dict[str, Any]]) -> int:
    """Give id-less or duplicate entries fresh ids; return max id seen."""
    seen: set[int] = set()
    max_id = max((i["id"] for i in items if i["id"] > 0), default=0)
    for item in items:
        if item["id"] <= 0 or item["id"] in seen:
            max_id += 1
            item["id"] = max_id
        seen.add(item["id"])
    return max_id


# ---------------------------------------------------------------------------
# Synthetic book
# ---------------------------------------------------------------------------


def sanitize_synthetic_book(raw: Any, ctx: SanitizeContext) -> SyntheticBook:
    if not isinstance(raw, dict):
        return SyntheticBook()

    lots: list[dict[str, Any]] = []
    for p in raw.get("openPositions") if isinstance(raw.get("openPositions"), list) else []:
        if not isinstance(p, dict) or not _known_ticker(p.get("ticker"), ctx):
            continue
        units = _positive(p.get("units"))
        avg = _positive(p.get("avgEntryPrice"))
        invested = _positive(p.get("investedAmount"))
        if units is None or avg is None or invested is None:
            continue
        lots.append({
            "id": int(to_finite(p.get("id"), 0)),
            "ticker": p["ticker"],
            "units": round_qty(units),
            "avg_entry_price": round_qty(avg),
            "invested_amount": round_qty(invested),
            "created_at": ctx.timestamp(p.get("createdAt")),
            "updated_at": ctx.timestamp(p.get("updatedAt")),
        })

    orders: list[dict[str, Any]] = []
    for o in raw.get("orderHistory") if isinstance(raw.get("orderHistory"), list) else []:
        if not isinstance(o, dict):
            continue
        order_type = _order_type(o.get("type"))
        if order_type is None or order_type == OrderType.SETTLEMENT:
            continue
        if not _known_ticker(o.get("ticker"), ctx):
            continue
        orders.append({
            "id": int(to_finite(o.get("id"), 0)),
            "type": order_type,
            "ticker": o["ticker"],
            "units": round_qty(max(0.0, to_finite(o.get("units")))),
            "price": round_qty(max(0.0, to_finite(o.get("price")))),
            "amount": round_qty(max(0.0, to_finite(o.get("amount")))),
            "realized_pnl": round_qty(to_finite(o.get("realizedPnl"))),
            "session": _non_negative_int(o.get("session")),
            "created_at": ctx.timestamp(o.get("createdAt")),
        })
    orders = orders[: ctx.order_limit]

    max_lot = _assign_ids(lots)
    max_order = _assign_ids(orders)
    return SyntheticBook(
        next_position_id=max(_non_negative_int(raw.get("nextPositionId"), 1), max_lot + 1),
        next_order_id=max(_non_negative_int(raw.get("nextOrderId"), 1), max_order + 1),
        open_positions=[SyntheticPosition(**lot) for lot in lots],
        order_history=[SyntheticOrder(**order) for order in orders],
    )


# ---------------------------------------------------------------------------
# Prediction book
# ---------------------------------------------------------------------------


def sanitize_prediction_book(raw: Any, ctx: SanitizeContext) -> PredictionBook:
    if not isinstance(raw, dict):
        return PredictionBook()

    lots: list[dict[str, Any]] = []
    for p in raw.get("openPositions") if isinstance(raw.get("openPositions"), list) else []:
        if not isinstance(p, dict):
            continue
        instrument = ctx.instruments.get(str(p.get("marketId", "")))
        outcome = _outcome(p.get("outcome"))
        if instrument is None or outcome is None:
            continue
        contracts = _positive(p.get("contracts"))
        avg = _positive(p.get("avgEntryPrice"))
        invested = _positive(p.get("investedAmount"))
        if contracts is None or avg is None or invested is None or avg >= 1:
            continue
        target = _positive(p.get("targetPrice"))
        opened = p.get("openedAtSession", p.get("openedSession"))
        lots.append({
            "id": int(to_finite(p.get("id"), 0)),
            "instrument_id": instrument.id,
            "category": instrument.category,
            "display_ticker": instrument.display_ticker,
            "period": instrument.period,
            "outcome": outcome,
            "contracts": round_qty(contracts),
            "avg_entry_price": round_qty(avg),
            "invested_amount": round_qty(invested),
            "target_price": round_price(
                target if target is not None else ctx.default_target(instrument.category)
            ),
            "opened_at_session": _non_negative_int(opened),
            "created_at": ctx.timestamp(p.get("createdAt")),
            "updated_at": ctx.timestamp(p.get("updatedAt")),
        })

    orders: list[dict[str, Any]] = []
    for o in raw.get("orderHistory") if isinstance(raw.get("orderHistory"), list) else []:
        if not isinstance(o, dict):
            continue
        order_type = _order_type(o.get("type"))
        instrument = ctx.instruments.get(str(o.get("marketId", "")))
        # Settlements outlive instrument renames; trades must reference a live instrument.
        if order_type is None or (instrument is None and order_type != OrderType.SETTLEMENT):
            continue
        try:
            result = SettlementResult(o.get("result")) if o.get("result") else None
        except ValueError:
            result = None
        orders.append({
            "id": int(to_finite(o.get("id"), 0)),
            "type": order_type,
            "instrument_id": instrument.id if instrument else str(o.get("marketId") or "N/A"),
            "display_ticker": instrument.display_ticker if instrument else str(o.get("ticker") or "N/A"),
            "category": instrument.category if instrument else str(o.get("category") or "N/A"),
            "period": instrument.period.value if instrument else str(o.get("period") or "N/A"),
            "outcome": Outcome.NO if o.get("outcome") == "NO" else Outcome.YES,
            "contracts": round_qty(max(0.0, to_finite(o.get("contracts")))),
            "price": round_qty(max(0.0, to_finite(o.get("price")))),
            "amount": round_qty(max(0.0, to_finite(o.get("amount")))),
            "realized_pnl": round_qty(to_finite(o.get("realizedPnl"))),
            "session": _non_negative_int(o.get("session")),
            "created_at": ctx.timestamp(o.get("createdAt")),
            "result": result,
            "note": o["note"] if isinstance(o.get("note"), str) else None,
        })
    orders = orders[: ctx.order_limit]

    max_lot = _assign_ids(lots)
    max_order = _assign_ids(orders)
    return PredictionBook(
        next_position_id=max(_non_negative_int(raw.get("nextPositionId"), 1), max_lot + 1),
        next_order_id=max(_non_negative_int(raw.get("nextOrderId"), 1), max_order + 1),
        open_positions=[PredictionPosition(**lot) for lot in lots],
        order_history=[PredictionOrder(**order) for order in orders],
        realized_pnl=round_qty(to_finite(raw.get("realizedPnL"))),
    )


# ---------------------------------------------------------------------------
# Account
# ---------------------------------------------------------------------------


def sanitize_username(value: Any) -> str:
    if isinstance(value, str) and USERNAME_PATTERN.match(value.strip()):
        return value.strip()
    return DEFAULT_USERNAME


def sanitize_cash(value: Any, starting_cash: float) -> float:
    number = to_finite(value, math.nan)
    if math.isnan(number):
        return round_usd(starting_cash)
    return round_usd(max(0.0, number))


def sanitize_account(raw: Any, guest_id: str, ctx: SanitizeContext) -> Account:
    """Build a valid Account from anything. portfolio_pnl is left for the caller to rebuild."""
    if not isinstance(raw, dict):
        raw = {}
    return Account(
        guest_id=guest_id,
        username=sanitize_username(raw.get("username")),
        cash_balance=sanitize_cash(raw.get("cashBalance"), ctx.starting_cash),
        synthetic=sanitize_synthetic_book(raw.get("synthetic"), ctx),
        prediction=sanitize_prediction_book(raw.get("prediction"), ctx),
        created_at=ctx.timestamp(raw.get("createdAt")),
        updated_at=ctx.timestamp(raw.get("updatedAt")),
    )
