"""Snapshot repositories — one JSON document per ledger.

Ledgers own their invariants; a repository only moves documents in and
out of storage. Swapping the backing store means writing another class
that satisfies SnapshotRepositoryProtocol.
"""

import copy
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Protocol

logger = logging.getLogger(__name__)


class SnapshotRepositoryProtocol(Protocol):
    name: str

    def load(self) -> Any: ...

    def save(self, document: dict[str, Any]) -> bool: ...


class JsonFileRepository:
    """Flat JSON file. Writes go to a temp file first, then os.replace()."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self.name = self.path.name

    def load(self) -> Any:
        """Return the parsed document, or None if missing or unreadable."""
        if not self.path.exists():
            return None
        try:
            with self.path.open("r", encoding="utf-8") as fh:
                return json.load(fh)
        except (OSError, ValueError):
            logger.exception("Failed to read snapshot %s", self.path)
            return None

    def save(self, document: dict[str, Any]) -> bool:
        """Blocking write. A failure is logged; memory stays ahead of disk."""
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{self.path.name}.", suffix=".tmp", dir=self.path.parent
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as fh:
                    json.dump(document, fh, indent=2)
                os.replace(tmp_name, self.path)
            except BaseException:
                if os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                raise
        except (OSError, TypeError, ValueError):
            logger.exception("Failed to write snapshot %s", self.path)
            return False
        return True


class InMemoryRepository:
    """Keeps a deep copy of the last saved document. Used by tests and demos."""

    def __init__(self, name: str, document: Any = None) -> None:
        self.name = name
        self.document = copy.deepcopy(document)
        self.save_count = 0

    def load(self) -> Any:
        return copy.deepcopy(self.document)

    def save(self, document: dict[str, Any]) -> bool:
        # json round-trip: store exactly what a file would hold
        self.document = json.loads(json.dumps(document))
        self.save_count += 1
        return True
