"""
Embedded relational engine.

A thin wrapper over an in-memory SQLite connection whose entire state can be
exported as bytes (``Connection.serialize``) and rebuilt from bytes
(``Connection.deserialize``). Those bytes are the snapshot that the snapshot
manager caches locally and mirrors to the remote repository.

Mutation detection uses the SQLite authorizer: any insert/update/delete or
schema action seen while a statement is prepared marks the result as
mutating, which is what triggers autosave.

Invariants:
    - export() always returns the complete current database
    - from_bytes() either returns a usable database or raises
      DeserializationError; it never returns a half-loaded engine
    - Statements run in autocommit mode, so export() never sees an open
      transaction

How to change safely:
    - Statement caching is disabled so the authorizer runs for every
      execution; re-enabling it silently breaks autosave
"""

from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from ..errors import DeserializationError

logger = logging.getLogger(__name__)

SCHEMA_ACTIONS = frozenset(
    {
        sqlite3.SQLITE_CREATE_INDEX,
        sqlite3.SQLITE_CREATE_TABLE,
        sqlite3.SQLITE_CREATE_TRIGGER,
        sqlite3.SQLITE_CREATE_VIEW,
        sqlite3.SQLITE_CREATE_VTABLE,
        sqlite3.SQLITE_DROP_INDEX,
        sqlite3.SQLITE_DROP_TABLE,
        sqlite3.SQLITE_DROP_TRIGGER,
        sqlite3.SQLITE_DROP_VIEW,
        sqlite3.SQLITE_DROP_VTABLE,
        sqlite3.SQLITE_ALTER_TABLE,
    }
)

WRITE_ACTIONS = SCHEMA_ACTIONS | {
    sqlite3.SQLITE_INSERT,
    sqlite3.SQLITE_UPDATE,
    sqlite3.SQLITE_DELETE,
    sqlite3.SQLITE_REINDEX,
    sqlite3.SQLITE_ANALYZE,
}


@dataclass
class QueryResult:
    """Result of one statement (or script).

    Attributes:
        columns: Column names of the result set (empty for non-queries)
        rows: Result rows
        mutated: Whether schema or data changed
        schema_changed: Whether tables, indexes, views or triggers changed
        rows_affected: Rows changed by the statement
    """

    columns: List[str] = field(default_factory=list)
    rows: List[tuple] = field(default_factory=list)
    mutated: bool = False
    schema_changed: bool = False
    rows_affected: int = 0

    def as_dicts(self) -> List[Dict[str, Any]]:
        """Rows as column -> value dictionaries."""
        return [dict(zip(self.columns, row)) for row in self.rows]


class _ActionTracker:
    """Authorizer callback recording which actions a statement performs."""

    def __init__(self) -> None:
        self.mutated = False
        self.schema_changed = False

    def reset(self) -> None:
        self.mutated = False
        self.schema_changed = False

    def __call__(
        self,
        action: int,
        arg1: Optional[str],
        arg2: Optional[str],
        db_name: Optional[str],
        trigger: Optional[str],
    ) -> int:
        # Temp objects are not part of the serialized main database
        if db_name == "temp":
            return sqlite3.SQLITE_OK
        if action in WRITE_ACTIONS:
            self.mutated = True
        if action in SCHEMA_ACTIONS:
            self.schema_changed = True
        return sqlite3.SQLITE_OK


class EmbeddedDatabase:
    """In-memory SQLite database that round-trips through bytes.

    Example:
        >>> db = EmbeddedDatabase.empty()
        >>> db.execute("CREATE TABLE t (x INTEGER)").mutated
        True
        >>> clone = EmbeddedDatabase.from_bytes(db.export())
        >>> clone.tables()
        ['t']
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn
        self._tracker = _ActionTracker()
        self._conn.set_authorizer(self._tracker)

    @staticmethod
    def _connect() -> sqlite3.Connection:
        return sqlite3.connect(":memory:", isolation_level=None, cached_statements=0)

    @classmethod
    def empty(cls) -> EmbeddedDatabase:
        """Fresh database with no tables."""
        conn = cls._connect()
        # Materialize page 1 so an empty database still serializes to a valid file
        conn.execute("BEGIN IMMEDIATE")
        conn.execute("COMMIT")
        return cls(conn)

    @classmethod
    def from_bytes(cls, data: bytes, origin: Optional[str] = None) -> EmbeddedDatabase:
        """Load a serialized database.

        Args:
            data: Snapshot bytes
            origin: Where the bytes came from, for error messages

        Returns:
            Loaded database

        Raises:
            DeserializationError: If the bytes are not a valid database
        """
        if not data:
            raise DeserializationError("Snapshot is empty", origin=origin)

        conn = cls._connect()
        try:
            conn.deserialize(data)
            # Forces SQLite to read the header and schema
            conn.execute("SELECT count(*) FROM sqlite_master").fetchone()
        except sqlite3.DatabaseError as e:
            conn.close()
            raise DeserializationError(
                f"Not a valid database snapshot: {e}", origin=origin
            ) from e
        return cls(conn)

    def execute(self, sql: str, params: Sequence[Any] = ()) -> QueryResult:
        """Run one statement.

        Raises:
            sqlite3.Error: If the statement fails
        """
        self._tracker.reset()
        before = self._conn.total_changes
        cursor = self._conn.execute(sql, params)
        try:
            rows = cursor.fetchall()
            columns = [d[0] for d in cursor.description] if cursor.description else []
        finally:
            cursor.close()
        changes = self._conn.total_changes - before
        return QueryResult(
            columns=columns,
            rows=rows,
            mutated=self._tracker.mutated or changes > 0,
            schema_changed=self._tracker.schema_changed,
            rows_affected=changes,
        )

    def execute_script(self, sql: str) -> QueryResult:
        """Run several semicolon separated statements; no rows returned."""
        self._tracker.reset()
        before = self._conn.total_changes
        self._conn.executescript(sql)
        changes = self._conn.total_changes - before
        return QueryResult(
            mutated=self._tracker.mutated or changes > 0,
            schema_changed=self._tracker.schema_changed,
            rows_affected=changes,
        )

    @property
    def total_changes(self) -> int:
        """Rows changed since the connection opened."""
        return self._conn.total_changes

    @property
    def write_attempted(self) -> bool:
        """Whether the last execute/execute_script prepared a write, even if
        it later failed."""
        return self._tracker.mutated

    def export(self) -> bytes:
        """Serialize the whole database."""
        return self._conn.serialize()

    def tables(self) -> List[str]:
        """User tables, sorted by name."""
        rows = self._conn.execute(
            "SELECT name FROM sqlite_master WHERE type = 'table' "
            "AND name NOT LIKE 'sqlite_%' ORDER BY name"
        ).fetchall()
        return [row[0] for row in rows]

    def close(self) -> None:
        self._conn.close()
