"""
Embedded relational engine and its snapshot lifecycle.

This package provides:
- EmbeddedDatabase: in-memory SQLite that round-trips through bytes
- SnapshotManager: autosave to local storage, push/pull to a repository file
- QueryHistory: bounded, persisted record of executed statements
- LocationManager: where the snapshot lives besides the local cache
- UserDirectory: app-scoped user records on top of the engine
"""

from .database import EmbeddedDatabase, QueryResult
from .history import HistoryEntry, QueryHistory
from .locations import BROWSER, GITHUB_SYNC, LOCATIONS, DatabaseLocation, LocationManager
from .snapshot import SNAPSHOT_PATH, SnapshotManager
from .users import AppStatus, UserDirectory

__all__ = [
    "EmbeddedDatabase",
    "QueryResult",
    "HistoryEntry",
    "QueryHistory",
    "BROWSER",
    "GITHUB_SYNC",
    "LOCATIONS",
    "DatabaseLocation",
    "LocationManager",
    "SNAPSHOT_PATH",
    "SnapshotManager",
    "AppStatus",
    "UserDirectory",
]
