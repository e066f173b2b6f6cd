"""
Snapshot manager for the embedded database.

Owns the single in-memory database instance and its binary snapshot:

    Unloaded ──create_new / load_local / load_bytes / pull_remote──▶ Loaded

- Autosave: every mutating statement re-serializes the whole database and
  stores it (base64) under the snapshot key before the call returns.
- push_remote: commits the snapshot to a repository file with the
  fetch-hash-then-conditional-put protocol.
- pull_remote: fetches a repository file and replaces the local database
  wholesale, then autosaves.

Invariants:
    - The snapshot is replaced wholesale, never patched
    - No mutation is acknowledged until autosave has stored it
    - Autosave serializes the full current state, so overlapping triggers
      always persist the latest database
    - push_remote never retries a precondition failure
    - pull_remote always overwrites local state; callers must not invoke it
      while unsaved local changes matter

How to change safely:
    - Keep the local snapshot encoding (base64 of serialize()) stable;
      older caches must stay loadable
    - Test pull/push against a fake remote before touching the protocol
"""

from __future__ import annotations

import base64
import binascii
import logging
import sqlite3
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from ..errors import (
    ConfigMissingError,
    DeserializationError,
    NetworkFailureError,
    SnapshotNotLoadedError,
)
from ..sources.base import AdapterContext
from ..sources.repo_file import RemoteFile, RemoteFileHandle, RepoFileAdapter
from .database import EmbeddedDatabase, QueryResult
from .history import QueryHistory
from .locations import GITHUB_SYNC, LocationManager

logger = logging.getLogger(__name__)

SNAPSHOT_PATH = "data/app.db"


class SnapshotManager:
    """Lifecycle, autosave and remote mirroring of the embedded database.

    Attributes:
        context: Shared HTTP client, local storage and settings
        locations: Database location selection (source of githubSync config)
        history: Optional query history recorder
        remote_hash: Hash of the remote file as of the last push or pull

    Example:
        >>> snapshots = SnapshotManager(context, locations, history)
        >>> snapshots.load_local() or snapshots.create_new()
        >>> snapshots.execute("CREATE TABLE items (id INTEGER PRIMARY KEY)")
        >>> await snapshots.push_remote()
    """

    def __init__(
        self,
        context: AdapterContext,
        locations: LocationManager,
        history: Optional[QueryHistory] = None,
    ) -> None:
        self.context = context
        self.locations = locations
        self.history = history
        self.remote_hash: Optional[str] = None
        self._db: Optional[EmbeddedDatabase] = None
        self._autosave_count = 0

    @property
    def storage_key(self) -> str:
        return self.context.settings.snapshot_key

    @property
    def is_loaded(self) -> bool:
        return self._db is not None

    @property
    def database(self) -> EmbeddedDatabase:
        """The loaded database.

        Raises:
            SnapshotNotLoadedError: If nothing is loaded
        """
        if self._db is None:
            raise SnapshotNotLoadedError("access the database")
        return self._db

    def _replace(self, db: EmbeddedDatabase) -> None:
        if self._db is not None:
            self._db.close()
        self._db = db

    # ------------------------------------------------------------------ local

    def create_new(self) -> EmbeddedDatabase:
        """Replace the current database with an empty one and autosave it."""
        self._replace(EmbeddedDatabase.empty())
        self.autosave()
        logger.info("[SQLDatabase] New database created")
        return self.database

    def load_local(self) -> bool:
        """Load the locally cached snapshot.

        Returns:
            True if a valid snapshot was loaded; False when none is stored
            or it cannot be decoded (the cached value is left untouched)
        """
        encoded = self.context.storage.get_item(self.storage_key)
        if not encoded:
            return False
        try:
            data = base64.b64decode(encoded, validate=True)
            db = EmbeddedDatabase.from_bytes(data, origin="local storage")
        except (binascii.Error, DeserializationError) as e:
            logger.error(f"[SQLDatabase] Load from storage error: {e}")
            return False
        self._replace(db)
        logger.info(
            "[SQLDatabase] Loaded from local storage", extra={"size_bytes": len(data)}
        )
        return True

    def load_bytes(self, data: bytes, origin: str = "bytes") -> EmbeddedDatabase:
        """Replace the database with a user supplied snapshot and autosave.

        Raises:
            DeserializationError: If data is not a valid database; the
                current database is kept
        """
        self._replace(EmbeddedDatabase.from_bytes(data, origin=origin))
        self.autosave()
        logger.info(f"[SQLDatabase] Loaded from {origin}", extra={"size_bytes": len(data)})
        return self.database

    def load_file(self, path: str | Path) -> EmbeddedDatabase:
        """Load a ``.db`` file from disk."""
        path = Path(path)
        return self.load_bytes(path.read_bytes(), origin=path.name)

    def export_bytes(self) -> bytes:
        """Current snapshot bytes.

        Raises:
            SnapshotNotLoadedError: If nothing is loaded
        """
        if self._db is None:
            raise SnapshotNotLoadedError("export the database")
        return self._db.export()

    def save_file(self, path: str | Path) -> Path:
        """Write the snapshot to path (a directory gets a timestamped name)."""
        data = self.export_bytes()
        target = Path(path)
        if target.is_dir():
            target = target / f"database_{int(time.time() * 1000)}.db"
        target.write_bytes(data)
        logger.info(f"[SQLDatabase] Saved to file {target}", extra={"size_bytes": len(data)})
        return target

    def autosave(self) -> bool:
        """Serialize the whole database into local storage.

        Returns:
            False when nothing is loaded

        Raises:
            QuotaExceededError: If local storage is full
        """
        if self._db is None:
            return False
        data = self._db.export()
        self.context.storage.set_item(self.storage_key, base64.b64encode(data).decode("ascii"))
        self._autosave_count += 1
        logger.debug("[SQLDatabase] Auto-saved to local storage", extra={"size_bytes": len(data)})
        return True

    # ---------------------------------------------------------------- queries

    def execute(self, sql: str, params: Sequence[Any] = ()) -> QueryResult:
        """Run one statement, recording it in history and autosaving when it
        mutated the database. An empty database is created on first use.

        Raises:
            sqlite3.Error: If the statement fails
            QuotaExceededError: If the autosave cannot be stored
        """
        return self._run(sql, lambda db: db.execute(sql, params))

    def execute_script(self, sql: str) -> QueryResult:
        """Run a multi-statement script with the same autosave contract."""
        return self._run(sql, lambda db: db.execute_script(sql))

    def _run(self, sql: str, call: Callable[[EmbeddedDatabase], QueryResult]) -> QueryResult:
        if self._db is None:
            self.create_new()
        db = self._db
        before = db.total_changes
        started = time.perf_counter()
        try:
            result = call(db)
        except sqlite3.Error as e:
            logger.error(f"[SQLDatabase] Query error: {e}")
            if self.history is not None:
                self.history.add(sql, False, str(e))
            # Autocommit keeps whatever ran before the failing statement
            if db.write_attempted or db.total_changes != before:
                self.autosave()
            raise
        if self.history is not None:
            self.history.add(sql, True)
        if result.mutated:
            self.autosave()
        logger.debug(
            "[SQLDatabase] Query executed",
            extra={
                "duration_ms": round((time.perf_counter() - started) * 1000, 2),
                "mutated": result.mutated,
            },
        )
        return result

    def tables(self) -> List[str]:
        return self._db.tables() if self._db is not None else []

    # ----------------------------------------------------------------- remote

    def resolve_location(
        self, location: Optional[Mapping[str, str]] = None
    ) -> Tuple[Dict[str, str], bool]:
        """Config for remote transfer and whether it is the shared default.

        Explicit location first, then the stored githubSync location, then
        the well-known default.
        """
        if location and location.get("owner"):
            return dict(location), False
        stored = self.locations.github_config()
        if stored:
            return stored, False
        default = self.context.settings.default_remote_location
        return {
            "owner": default.owner,
            "repo": default.repo_name,
            "path": default.path,
            "branch": default.branch,
        }, True

    def _adapter(self, config: Mapping[str, str]) -> Tuple[RepoFileAdapter, RemoteFileHandle]:
        adapter = RepoFileAdapter(config, self.context)
        return adapter, RemoteFileHandle.from_config(config, default_path=SNAPSHOT_PATH)

    async def push_remote(
        self,
        location: Optional[Mapping[str, str]] = None,
        *,
        expected_hash: Optional[str] = None,
    ) -> str:
        """Commit the current snapshot to the repository file.

        Args:
            location: Repository config (defaults to the stored githubSync
                location); must include a token
            expected_hash: Hash the caller believes current; when omitted the
                current hash is fetched first (absent file = create)

        Returns:
            The new remote hash

        Raises:
            SnapshotNotLoadedError: If nothing is loaded
            ConfigMissingError: If owner, repo or token is missing
            PreconditionMismatchError: If the remote changed; refresh first
            NetworkFailureError: For other remote failures
        """
        if self._db is None:
            raise SnapshotNotLoadedError("push to remote")

        config = dict(location) if location else (self.locations.github_config() or {})
        adapter, handle = self._adapter(config)
        adapter.require(("owner", "repo", "token"))

        content = self._db.export()
        message = f"Update database [{datetime.now(timezone.utc).isoformat()}]"
        if expected_hash is not None:
            new_hash = await adapter.put_file(handle.with_hash(expected_hash), content, message)
        else:
            new_hash = await adapter.write_file(content, message, handle)

        self.remote_hash = new_hash
        logger.info(
            f"[SQLDatabase] Saved to GitHub: {handle.path}",
            extra={"file": str(handle), "size_bytes": len(content)},
        )
        return new_hash

    async def pull_remote(self, location: Optional[Mapping[str, str]] = None) -> RemoteFile:
        """Replace the local database with the remote snapshot.

        Unconditional: local state is overwritten and autosaved.

        Args:
            location: Repository config; falls back to the stored githubSync
                location, then to the shared default

        Returns:
            The fetched remote file

        Raises:
            NetworkFailureError: Transport error, rate limiting or missing file
            DeserializationError: Remote bytes are not a database; the local
                database is kept
        """
        config, is_default = self.resolve_location(location)
        adapter, handle = self._adapter(config)
        if not handle.owner or not handle.repo_name:
            raise ConfigMissingError(GITHUB_SYNC, ["owner", "repo"])

        logger.info(
            f"[SQLDatabase] Loading from {handle}",
            extra={"file": str(handle), "shared_default": is_default},
        )
        remote = await adapter.fetch_file(handle)
        if remote is None:
            raise NetworkFailureError(
                f"Database file not found on remote at {handle}",
                url=adapter.contents_url(handle),
                status_code=404,
            )

        self._replace(EmbeddedDatabase.from_bytes(remote.content, origin=str(handle)))
        self.remote_hash = remote.content_hash
        self.autosave()
        logger.info(
            "[SQLDatabase] Loaded from GitHub",
            extra={"file": str(handle), "size_bytes": len(remote.content)},
        )
        return remote

    @property
    def stats(self) -> Dict[str, Any]:
        """Snapshot manager statistics."""
        return {
            "loaded": self.is_loaded,
            "tables": self.tables(),
            "autosave_count": self._autosave_count,
            "remote_hash": self.remote_hash,
        }
