from datetime import datetime, timezone

import pytest

from src.ms_common.errors import CorruptedStateError
from src.ms_market.domain.session_clock import (
    SessionClock,
    latest_slot_at_or_before,
    nearest_slot,
)

PRICES = {"DDR5": 38.067, "DDR4": 78.409}


def _at(day: int, hour: int, minute: int = 0, second: int = 0) -> datetime:
    return datetime(2025, 3, day, hour, minute, second, tzinfo=timezone.utc)


def _make_clock(slot_at: datetime, idx: int, skip_count: int = 0) -> SessionClock:
    return SessionClock(skip_count, slot_at, idx, PRICES, "2025-03-01T00:00:00.000Z")


class TestSlots:
    def test_latest_slot_same_day(self) -> None:
        assert latest_slot_at_or_before(_at(4, 13, 15)) == (_at(4, 12), 1)

    def test_latest_slot_before_first_is_previous_day(self) -> None:
        assert latest_slot_at_or_before(_at(4, 7, 59)) == (_at(3, 15, 30), 2)

    def test_nearest_slot_by_minute_distance(self) -> None:
        assert nearest_slot(_at(4, 10)) == (_at(4, 8, 30), 0)
        assert nearest_slot(_at(4, 14)) == (_at(4, 15, 30), 2)

    def test_exact_slot_kept(self) -> None:
        assert nearest_slot(_at(4, 12)) == (_at(4, 12), 1)


class TestAdvance:
    def test_moves_to_next_slot_same_day(self) -> None:
        clock = _make_clock(_at(4, 8, 30), 0)
        assert clock.advance() == 1
        assert clock.last_session_at == _at(4, 12)
        assert clock.skip_count == 1

    def test_last_slot_wraps_to_next_day(self) -> None:
        clock = _make_clock(_at(4, 15, 30), 2, skip_count=5)
        assert clock.advance() == 0
        assert clock.last_session_at == _at(5, 8, 30)
        assert clock.skip_count == 6

    def test_three_advances_cross_slot_zero_once(self) -> None:
        clock = _make_clock(_at(4, 12), 1)
        slots = [clock.advance() for _ in range(3)]
        assert slots.count(0) == 1
        assert clock.last_session_slot_index == 1
        assert clock.last_session_at == _at(5, 12)


class TestReconcile:
    def test_snaps_to_nearest_and_keeps_count(self) -> None:
        clock = _make_clock(_at(4, 12, 7, 30), 0, skip_count=9)
        assert clock.reconcile() is True
        assert clock.last_session_at == _at(4, 12)
        assert clock.last_session_slot_index == 1
        assert clock.skip_count == 9

    def test_idempotent(self) -> None:
        clock = _make_clock(_at(4, 11), 2)
        clock.reconcile()
        before = clock.to_snapshot()
        assert clock.reconcile() is False
        assert clock.to_snapshot() == before


class TestDocument:
    def test_not_an_object_is_corrupted(self) -> None:
        with pytest.raises(CorruptedStateError):
            SessionClock.from_document(None, PRICES)

    def test_legacy_count_and_misaligned_time(self) -> None:
        doc = {
            "skipSessionCount": 12,
            "lastSessionAt": "2025-03-04T15:20:00.000Z",
            "lastSessionSlotIndex": 0,
            "priceToBeat": {"DDR5": 37.5, "DDR4": -3},
        }
        clock = SessionClock.from_document(doc, PRICES)
        assert clock.skip_count == 12
        assert clock.last_session_slot_index == 2
        assert clock.price_to_beat == {"DDR5": 37.5, "DDR4": 78.409}

    def test_fresh_defaults_price_to_beat_to_current(self) -> None:
        clock = SessionClock.fresh(PRICES, _at(4, 13))
        assert clock.skip_count == 0
        assert clock.price_to_beat == PRICES
        assert clock.last_session_slot_index == 1

    def test_round_trip_is_stable(self) -> None:
        clock = SessionClock.fresh(PRICES, _at(4, 13))
        clock.advance()
        doc = clock.to_document()
        assert SessionClock.from_document(doc, PRICES).to_document() == doc

    def test_anchor_far_in_future_is_reanchored(self) -> None:
        doc = {
            "skipCount": 5,
            "lastSessionAt": "9999-12-31T15:30:00.000Z",
            "lastSessionSlotIndex": 2,
        }
        clock = SessionClock.from_document(doc, PRICES, now=_at(4, 13, 15))
        assert clock.skip_count == 5
        assert (clock.last_session_at, clock.last_session_slot_index) == (_at(4, 12), 1)
        assert clock.advance() == 2

    def test_anchor_ahead_from_skips_is_kept(self) -> None:
        doc = {"skipCount": 60, "lastSessionAt": "2025-03-24T12:00:00.000Z", "lastSessionSlotIndex": 1}
        clock = SessionClock.from_document(doc, PRICES, now=_at(4, 13))
        assert clock.last_session_at == datetime(2025, 3, 24, 12, tzinfo=timezone.utc)
