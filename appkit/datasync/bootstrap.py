"""
Auto-discovery bootstrapper.

Decides where the embedded database comes from at startup:

    load_local() ok ──────────────────────────▶ LOCAL_SNAPSHOT
    local development context ────────────────▶ LOCAL_DEVELOPMENT (no network)
    pull_remote() ok (stored or shared default) ▶ REMOTE_DEFAULT
    anything else ────────────────────────────▶ EMPTY

Invariants:
    - run() does its work once; later calls return the first outcome
    - A local-development context never issues a request
    - Failures are logged, never raised
    - A pull from the shared default is not persisted as the user's location
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from ipaddress import ip_address
from typing import Optional
from urllib.parse import urlsplit

import httpx

from .engine.locations import GITHUB_SYNC, LocationManager
from .engine.snapshot import SnapshotManager
from .errors import DataSyncError

logger = logging.getLogger(__name__)


class BootstrapOutcome(str, enum.Enum):
    """Where the database came from."""

    LOCAL_SNAPSHOT = "local_snapshot"
    LOCAL_DEVELOPMENT = "local_development"
    REMOTE_DEFAULT = "remote_default"
    EMPTY = "empty"


@dataclass(frozen=True)
class ExecutionContext:
    """Host and scheme the application is served from."""

    hostname: str
    scheme: str

    @classmethod
    def from_url(cls, url: str) -> ExecutionContext:
        parts = urlsplit(url)
        return cls(hostname=(parts.hostname or "").lower(), scheme=parts.scheme.lower())

    @property
    def is_local_development(self) -> bool:
        """Loopback, private network, ``localhost`` or a ``file:`` URL."""
        if self.scheme == "file" or self.hostname in ("", "localhost"):
            return True
        try:
            address = ip_address(self.hostname)
        except ValueError:
            return False
        return address.is_loopback or address.is_private


class AutoDiscoveryBootstrapper:
    """Loads the database from the best available origin, once.

    Example:
        >>> bootstrapper = AutoDiscoveryBootstrapper(snapshots, locations, context)
        >>> await bootstrapper.run()
        <BootstrapOutcome.LOCAL_DEVELOPMENT: 'local_development'>
    """

    def __init__(
        self,
        snapshots: SnapshotManager,
        locations: LocationManager,
        context: ExecutionContext,
    ) -> None:
        self.snapshots = snapshots
        self.locations = locations
        self.context = context
        self.outcome: Optional[BootstrapOutcome] = None

    async def run(self) -> BootstrapOutcome:
        if self.outcome is None:
            self.outcome = await self._discover()
            logger.info(
                f"[SQLDatabase] Bootstrap finished: {self.outcome.value}",
                extra={"outcome": self.outcome.value, "host": self.context.hostname},
            )
        return self.outcome

    async def _discover(self) -> BootstrapOutcome:
        if self.snapshots.load_local():
            return BootstrapOutcome.LOCAL_SNAPSHOT

        if self.context.is_local_development:
            logger.info("[SQLDatabase] On localhost - using local storage mode")
            return BootstrapOutcome.LOCAL_DEVELOPMENT

        config, is_default = self.snapshots.resolve_location()
        logger.info(
            "[SQLDatabase] No local database found - attempting auto-load from remote",
            extra={"owner": config.get("owner"), "repo": config.get("repo")},
        )
        try:
            await self.snapshots.pull_remote(config)
        except (DataSyncError, httpx.HTTPError) as e:
            logger.warning(f"[SQLDatabase] Auto-load failed, starting empty: {e}")
            return BootstrapOutcome.EMPTY

        if is_default:
            self.locations.activate_location(GITHUB_SYNC, persist=False)
        else:
            self.locations.activate_location(GITHUB_SYNC, config)
        return BootstrapOutcome.REMOTE_DEFAULT
