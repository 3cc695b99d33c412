"""UTC datetime utilities."""

from datetime import datetime, timezone
from typing import Any


def utc_now() -> datetime:
    """Return timezone-aware UTC now."""
    return datetime.now(timezone.utc)


def to_iso(value: datetime) -> str:
    """Serialize as ISO8601 with millisecond precision and a Z suffix."""
    value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


def parse_iso(value: Any) -> datetime | None:
    """Parse an ISO8601 string from an untrusted document. Returns None on error."""
    if not isinstance(value, str) or not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed.astimezone(timezone.utc)
    except (ValueError, OverflowError):
        return None


def iso_or_now(value: Any, now: datetime | None = None) -> str:
    """Normalize a stored timestamp, falling back to now when unparseable."""
    parsed = parse_iso(value)
    return to_iso(parsed if parsed is not None else (now or utc_now()))


def epoch_ms(value: datetime | None = None) -> int:
    return int((value or utc_now()).timestamp() * 1000)
