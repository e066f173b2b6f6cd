"""
Query history.

Most-recent-first list of executed queries persisted in local storage.
Keeps ``limit`` entries (50 by default) and shows ``display_limit`` (20).
"""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass
from typing import List, Optional

from ..local.store import LocalStorage
from ..sync_state import utc_now_iso

logger = logging.getLogger(__name__)


@dataclass
class HistoryEntry:
    """One executed query."""

    query: str
    success: bool
    error: Optional[str] = None
    timestamp: str = ""


class QueryHistory:
    """Bounded, persisted query history."""

    def __init__(
        self,
        storage: LocalStorage,
        key: str,
        limit: int = 50,
        display_limit: int = 20,
    ) -> None:
        self.storage = storage
        self.key = key
        self.limit = limit
        self.display_limit = display_limit
        self.entries: List[HistoryEntry] = self._load()

    def _load(self) -> List[HistoryEntry]:
        raw = self.storage.get_item(self.key)
        if not raw:
            return []
        try:
            return [HistoryEntry(**item) for item in json.loads(raw)][: self.limit]
        except (json.JSONDecodeError, TypeError) as e:
            logger.warning(f"Discarding unreadable query history: {e}")
            return []

    def _save(self) -> None:
        self.storage.set_item(self.key, json.dumps([asdict(e) for e in self.entries]))

    def add(self, query: str, success: bool, error: Optional[str] = None) -> HistoryEntry:
        entry = HistoryEntry(query=query, success=success, error=error, timestamp=utc_now_iso())
        self.entries.insert(0, entry)
        del self.entries[self.limit :]
        self._save()
        return entry

    def recent(self) -> List[HistoryEntry]:
        """Entries to display, newest first."""
        return self.entries[: self.display_limit]

    def clear(self) -> None:
        self.entries = []
        self._save()
