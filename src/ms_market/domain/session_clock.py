"""SessionClock — monotonically increasing session counter on three daily slots.

Slots are 08:30, 12:00 and 15:30 UTC. One advance moves to the next slot
chronologically (15:30 wraps to 08:30 of the next day) and increments
skip_count. price_to_beat is the DAILY reference price, resynced by the
engine whenever the clock lands on slot 0.
"""

import logging
from datetime import date, datetime, time, timedelta, timezone
from typing import Any

from src.ms_common.datetime_utils import iso_or_now, parse_iso, to_iso, utc_now
from src.ms_common.errors import CorruptedStateError
from src.ms_common.rounding import round_price, to_finite

SESSION_SLOTS_MINUTES: tuple[int, ...] = (8 * 60 + 30, 12 * 60, 15 * 60 + 30)
SLOT_COUNT = len(SESSION_SLOTS_MINUTES)
# Skips move the anchor ahead of wall time; anything further out is a bad snapshot.
MAX_ANCHOR_LEAD = timedelta(days=3650)

logger = logging.getLogger(__name__)


def slot_instant(day: date, slot_index: int) -> datetime:
    minutes = SESSION_SLOTS_MINUTES[slot_index]
    return datetime.combine(day, time(minutes // 60, minutes % 60), tzinfo=timezone.utc)


def latest_slot_at_or_before(now: datetime) -> tuple[datetime, int]:
    now = now.astimezone(timezone.utc)
    minutes = now.hour * 60 + now.minute
    for idx in range(SLOT_COUNT - 1, -1, -1):
        if SESSION_SLOTS_MINUTES[idx] <= minutes:
            return slot_instant(now.date(), idx), idx
    last = SLOT_COUNT - 1
    return slot_instant(now.date() - timedelta(days=1), last), last


def nearest_slot(value: datetime) -> tuple[datetime, int]:
    """Exact slot if value sits on one, else the slot closest by minute-of-day."""
    value = value.astimezone(timezone.utc)
    minutes = value.hour * 60 + value.minute
    if value.second == 0 and value.microsecond == 0 and minutes in SESSION_SLOTS_MINUTES:
        idx = SESSION_SLOTS_MINUTES.index(minutes)
    else:
        exact = minutes + value.second / 60
        idx = min(range(SLOT_COUNT), key=lambda i: abs(SESSION_SLOTS_MINUTES[i] - exact))
    return slot_instant(value.date(), idx), idx


class SessionClock:
    VERSION = "1.0"

    def __init__(
        self,
        skip_count: int,
        last_session_at: datetime,
        last_session_slot_index: int,
        price_to_beat: dict[str, float],
        created_at: str,
    ) -> None:
        self.skip_count = skip_count
        self.last_session_at = last_session_at
        self.last_session_slot_index = last_session_slot_index
        self.price_to_beat = dict(price_to_beat)
        self.created_at = created_at

    @classmethod
    def fresh(cls, current_prices: dict[str, float], now: datetime | None = None) -> "SessionClock":
        now = now or utc_now()
        anchor, idx = latest_slot_at_or_before(now)
        return cls(
            skip_count=0,
            last_session_at=anchor,
            last_session_slot_index=idx,
            price_to_beat={t: round_price(p) for t, p in current_prices.items()},
            created_at=to_iso(now),
        )

    @classmethod
    def from_document(
        cls,
        raw: Any,
        current_prices: dict[str, float],
        now: datetime | None = None,
    ) -> "SessionClock":
        if not isinstance(raw, dict):
            raise CorruptedStateError("session document is not an object")
        now = now or utc_now()
        # Older documents used skipSessionCount.
        raw_count = raw.get("skipCount", raw.get("skipSessionCount"))
        skip_count = max(0, int(to_finite(raw_count, 0)))

        last_at = parse_iso(raw.get("lastSessionAt"))
        if last_at is not None and last_at > now + MAX_ANCHOR_LEAD:
            logger.warning("Session anchor %s is out of range; re-anchoring", to_iso(last_at))
            last_at = None
        if last_at is None:
            last_at, slot_index = latest_slot_at_or_before(now)
        else:
            slot_index = int(to_finite(raw.get("lastSessionSlotIndex"), 0)) % SLOT_COUNT

        raw_beat = raw.get("priceToBeat")
        raw_beat = raw_beat if isinstance(raw_beat, dict) else {}
        price_to_beat: dict[str, float] = {}
        for ticker, current in current_prices.items():
            value = to_finite(raw_beat.get(ticker), 0.0)
            price_to_beat[ticker] = round_price(value if value > 0 else current)

        metadata = raw.get("metadata") if isinstance(raw.get("metadata"), dict) else {}
        clock = cls(
            skip_count=skip_count,
            last_session_at=last_at,
            last_session_slot_index=slot_index,
            price_to_beat=price_to_beat,
            created_at=iso_or_now(metadata.get("createdAt"), now),
        )
        clock.reconcile()
        return clock

    def advance(self) -> int:
        """Move exactly one slot forward. Returns the new slot index."""
        if self.last_session_slot_index < SLOT_COUNT - 1:
            next_index = self.last_session_slot_index + 1
            next_day = self.last_session_at.date()
        else:
            next_index = 0
            next_day = self.last_session_at.date() + timedelta(days=1)
        self.last_session_at = slot_instant(next_day, next_index)
        self.last_session_slot_index = next_index
        self.skip_count += 1
        return next_index

    def reconcile(self) -> bool:
        """Snap slot index and anchor onto a real slot boundary. skip_count is untouched.

        Idempotent. Returns True when anything changed.
        """
        aligned_at, aligned_index = nearest_slot(self.last_session_at)
        changed = (
            aligned_at != self.last_session_at
            or aligned_index != self.last_session_slot_index
        )
        self.last_session_at = aligned_at
        self.last_session_slot_index = aligned_index
        return changed

    def resync_price_to_beat(self, current_prices: dict[str, float]) -> None:
        self.price_to_beat = {t: round_price(p) for t, p in current_prices.items()}

    def to_snapshot(self) -> dict[str, Any]:
        return {
            "skipCount": self.skip_count,
            "lastSessionAt": to_iso(self.last_session_at),
            "lastSessionSlotIndex": self.last_session_slot_index,
        }

    def to_document(self) -> dict[str, Any]:
        return {
            "metadata": {"createdAt": self.created_at, "version": self.VERSION},
            **self.to_snapshot(),
            "priceToBeat": dict(self.price_to_beat),
        }
