"""
Datasync - pluggable storage synchronization for small applications.

One uniform read/write contract over interchangeable backends, plus an
embedded SQL database whose whole state is a byte snapshot that is cached
locally and mirrored to a repository file:

    ┌──────────────┐     ┌──────────────────┐     ┌──────────────────┐
    │ Application  │────▶│ DataSourceManager│────▶│ Backend adapter  │
    └──────┬───────┘     └──────────────────┘     │ local / sheets / │
           │                                      │ gist / repo /    │
           ▼                                      │ bin / endpoint   │
    ┌──────────────┐  autosave  ┌─────────────┐   └──────────────────┘
    │SnapshotManager│──────────▶│Local storage│
    └──────┬───────┘            └─────────────┘
           │ push (hash-guarded) / pull (wholesale)
           ▼
    ┌──────────────────┐
    │ Repository file  │
    └──────────────────┘

Example:
    >>> from appkit.datasync import AppContext, Settings
    >>> async with AppContext.from_settings(Settings()) as app:
    ...     await app.bootstrap()
    ...     await app.manager.write("items", [{"id": 1}])

Invariants:
    - At most one data source is active
    - Adapter read/write never raise
    - No mutation of the embedded database is acknowledged before autosave
    - Remote snapshot writes are conditional on the last known hash
"""

from .bootstrap import AutoDiscoveryBootstrapper, BootstrapOutcome, ExecutionContext
from .config import Settings
from .context import AppContext
from .errors import (
    ConfigMissingError,
    DataSyncError,
    DeserializationError,
    NetworkFailureError,
    PreconditionMismatchError,
    QuotaExceededError,
    SnapshotNotLoadedError,
    UnknownSourceError,
    UserExistsError,
)
from .manager import DataSourceManager
from .sources import ConnectionResult, RemoteFileHandle

__version__ = "1.0.0"

__all__ = [
    "__version__",
    # Wiring
    "AppContext",
    "Settings",
    "DataSourceManager",
    "AutoDiscoveryBootstrapper",
    "BootstrapOutcome",
    "ExecutionContext",
    # Types
    "ConnectionResult",
    "RemoteFileHandle",
    # Errors
    "DataSyncError",
    "ConfigMissingError",
    "NetworkFailureError",
    "PreconditionMismatchError",
    "QuotaExceededError",
    "DeserializationError",
    "UnknownSourceError",
    "SnapshotNotLoadedError",
    "UserExistsError",
]
