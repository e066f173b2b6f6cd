"""
Application context.

Builds the object graph once and hands it out explicitly: one local store,
one HTTP client, one SyncState-backed manager, one snapshot manager. No
module-level singletons; tests build their own context around fakes.

Invariants:
    - Every component of one context shares the same storage and client
    - aclose() closes the HTTP client only when the context created it
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional

import httpx

from .bootstrap import AutoDiscoveryBootstrapper, BootstrapOutcome, ExecutionContext
from .config import Settings
from .engine.history import QueryHistory
from .engine.locations import BROWSER, LocationManager
from .engine.snapshot import SnapshotManager
from .engine.users import UserDirectory
from .local.store import LocalStorage, SqliteLocalStorage
from .manager import DataSourceManager
from .sources.base import AdapterContext
from .sources.registry import DEFAULT_SOURCE_ID
from .sync_state import SourceConfigStore

logger = logging.getLogger(__name__)


@dataclass
class AppContext:
    """Wired components of one application instance.

    Example:
        >>> async with AppContext.from_settings(Settings()) as app:
        ...     await app.bootstrap()
        ...     app.snapshots.execute("SELECT 1")
    """

    settings: Settings
    storage: LocalStorage
    http: httpx.AsyncClient
    adapter_context: AdapterContext
    manager: DataSourceManager
    locations: LocationManager
    history: QueryHistory
    snapshots: SnapshotManager
    users: UserDirectory
    bootstrapper: AutoDiscoveryBootstrapper
    owns_http: bool = field(default=False, repr=False)

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        storage: Optional[LocalStorage] = None,
        http: Optional[httpx.AsyncClient] = None,
    ) -> AppContext:
        """Build a context.

        Args:
            settings: Configuration
            storage: Local storage (defaults to the SQLite file under data_dir)
            http: HTTP client (defaults to a new client with the configured timeout)
        """
        owns_http = http is None
        if storage is None:
            storage = SqliteLocalStorage(
                settings.local_store_path, quota_bytes=settings.storage_quota_bytes
            )
        if http is None:
            http = httpx.AsyncClient(timeout=settings.http_timeout)

        adapter_context = AdapterContext(http=http, storage=storage, settings=settings)
        manager = DataSourceManager(
            SourceConfigStore(storage, settings.sync_state_key, DEFAULT_SOURCE_ID),
            adapter_context,
        )
        locations = LocationManager(
            SourceConfigStore(storage, settings.location_key, BROWSER, active_field="location"),
            http,
            settings.github_api_url,
        )
        history = QueryHistory(
            storage,
            settings.history_key,
            limit=settings.history_limit,
            display_limit=settings.history_display_limit,
        )
        snapshots = SnapshotManager(adapter_context, locations, history)
        return cls(
            settings=settings,
            storage=storage,
            http=http,
            adapter_context=adapter_context,
            manager=manager,
            locations=locations,
            history=history,
            snapshots=snapshots,
            users=UserDirectory(snapshots, settings.app_id),
            bootstrapper=AutoDiscoveryBootstrapper(
                snapshots, locations, ExecutionContext.from_url(settings.origin_url)
            ),
            owns_http=owns_http,
        )

    async def bootstrap(self) -> BootstrapOutcome:
        """Run auto-discovery (once per context)."""
        return await self.bootstrapper.run()

    async def aclose(self) -> None:
        if self.owns_http:
            await self.http.aclose()

    async def __aenter__(self) -> AppContext:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()
