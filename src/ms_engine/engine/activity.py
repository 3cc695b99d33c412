"""Global activity feed: newest first, capped, persisted with the other ledgers."""

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from src.ms_common.datetime_utils import iso_or_now, to_iso, utc_now
from src.ms_common.errors import CorruptedStateError
from src.ms_common.rounding import to_finite


@dataclass(frozen=True)
class ActivityItem:
    id: int
    text: str
    timestamp: str

    def to_document(self) -> dict[str, Any]:
        return {"id": self.id, "text": self.text, "timestamp": self.timestamp}


class ActivityFeed:
    def __init__(self, items: list[ActivityItem] | None = None, limit: int = 500) -> None:
        self.limit = limit
        self._items: list[ActivityItem] = list(items or [])[:limit]
        self._next_id = max((i.id for i in self._items), default=0) + 1

    @classmethod
    def from_document(cls, raw: Any, limit: int = 500, now: datetime | None = None) -> "ActivityFeed":
        if not isinstance(raw, dict):
            raise CorruptedStateError("activity document is not an object")
        stored = raw.get("activityFeed")
        items: list[ActivityItem] = []
        for entry in stored if isinstance(stored, list) else []:
            if not isinstance(entry, dict) or not isinstance(entry.get("text"), str):
                continue
            items.append(
                ActivityItem(
                    id=int(to_finite(entry.get("id"), 0)),
                    text=entry["text"],
                    timestamp=iso_or_now(entry.get("timestamp"), now),
                )
            )
        return cls(items, limit)

    def push(self, text: str, now: datetime | None = None) -> ActivityItem:
        item = ActivityItem(self._next_id, text, to_iso(now or utc_now()))
        self._next_id += 1
        self._items.insert(0, item)
        del self._items[self.limit:]
        return item

    def items(self) -> list[dict[str, Any]]:
        return [i.to_document() for i in self._items]

    def __len__(self) -> int:
        return len(self._items)

    def to_document(self) -> dict[str, Any]:
        return {"activityFeed": self.items()}
