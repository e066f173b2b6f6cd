"""
Local durable key/value storage.

This is the local tier every other component persists through: the
local-store adapter's records, the SyncState, the base64 database snapshot,
the query history and the database location config all live here as text
values under string keys.

Two implementations:
- SqliteLocalStorage: one SQLite file, survives restarts
- MemoryLocalStorage: dictionary backed, for tests

Invariants:
    - Values are text; callers serialize (JSON / base64) before storing
    - A set_item that would exceed the quota raises QuotaExceededError and
      leaves the previous value in place
    - Replacing a key counts only the size delta against the quota

How to change safely:
    - Keep the kv table layout; existing stores are opened in place
    - Quota accounting is by UTF-8 byte length of keys and values
"""

from __future__ import annotations

import logging
import sqlite3
import time
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, List, Optional, Protocol, runtime_checkable

from ..errors import QuotaExceededError

logger = logging.getLogger(__name__)


def _entry_size(key: str, value: str) -> int:
    return len(key.encode("utf-8")) + len(value.encode("utf-8"))


@runtime_checkable
class LocalStorage(Protocol):
    """Protocol for the local key/value tier."""

    def get_item(self, key: str) -> Optional[str]:
        """Return the stored text or None when absent."""
        ...

    def set_item(self, key: str, value: str) -> None:
        """Store text under key.

        Raises:
            QuotaExceededError: If the store has no room for the value
        """
        ...

    def remove_item(self, key: str) -> None:
        """Delete key if present."""
        ...

    def keys(self) -> List[str]:
        """All stored keys."""
        ...


class MemoryLocalStorage:
    """Dictionary backed LocalStorage for tests.

    Example:
        >>> storage = MemoryLocalStorage(quota_bytes=1024)
        >>> storage.set_item("users", "[]")
        >>> storage.get_item("users")
        '[]'
    """

    def __init__(self, quota_bytes: Optional[int] = None) -> None:
        self.quota_bytes = quota_bytes
        self._items: Dict[str, str] = {}
        self.write_count = 0

    def get_item(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        if self.quota_bytes is not None:
            used = sum(_entry_size(k, v) for k, v in self._items.items() if k != key)
            requested = _entry_size(key, value)
            if used + requested > self.quota_bytes:
                raise QuotaExceededError(key, requested, self.quota_bytes)
        self._items[key] = value
        self.write_count += 1

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)

    def keys(self) -> List[str]:
        return list(self._items)


class SqliteLocalStorage:
    """SQLite file backed LocalStorage.

    Each call opens a short-lived connection, the same way the rest of the
    package treats SQLite files on disk.

    Attributes:
        path: Database file path
        quota_bytes: Maximum bytes held (None = unlimited)

    Example:
        >>> storage = SqliteLocalStorage("/tmp/datasync/localstore.db")
        >>> storage.set_item("demotemplate_sqldb", snapshot_b64)
    """

    def __init__(
        self,
        path: str | Path,
        quota_bytes: Optional[int] = None,
        busy_timeout_ms: int = 5000,
    ) -> None:
        """Initialize the store, creating the file and table if needed.

        Args:
            path: Database file path
            quota_bytes: Maximum bytes held (None = unlimited)
            busy_timeout_ms: SQLite busy timeout
        """
        self.path = Path(path)
        self.quota_bytes = quota_bytes
        self.busy_timeout_ms = busy_timeout_ms

        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS kv (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    size_bytes INTEGER NOT NULL,
                    updated_at INTEGER NOT NULL
                )
                """
            )
        logger.debug(f"Local storage opened at {self.path}")

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(str(self.path), timeout=self.busy_timeout_ms / 1000)
        try:
            with conn:
                yield conn
        finally:
            conn.close()

    def get_item(self, key: str) -> Optional[str]:
        with self._connect() as conn:
            row = conn.execute("SELECT value FROM kv WHERE key = ?", (key,)).fetchone()
        return row[0] if row else None

    def set_item(self, key: str, value: str) -> None:
        size = _entry_size(key, value)
        with self._connect() as conn:
            if self.quota_bytes is not None:
                (used,) = conn.execute(
                    "SELECT COALESCE(SUM(size_bytes), 0) FROM kv WHERE key != ?", (key,)
                ).fetchone()
                if used + size > self.quota_bytes:
                    raise QuotaExceededError(key, size, self.quota_bytes)
            conn.execute(
                """
                INSERT INTO kv (key, value, size_bytes, updated_at) VALUES (?, ?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET
                    value = excluded.value,
                    size_bytes = excluded.size_bytes,
                    updated_at = excluded.updated_at
                """,
                (key, value, size, int(time.time() * 1000)),
            )

    def remove_item(self, key: str) -> None:
        with self._connect() as conn:
            conn.execute("DELETE FROM kv WHERE key = ?", (key,))

    def keys(self) -> List[str]:
        with self._connect() as conn:
            rows = conn.execute("SELECT key FROM kv ORDER BY key").fetchall()
        return [row[0] for row in rows]

    def used_bytes(self) -> int:
        """Total bytes currently counted against the quota."""
        with self._connect() as conn:
            (used,) = conn.execute("SELECT COALESCE(SUM(size_bytes), 0) FROM kv").fetchone()
        return int(used)
