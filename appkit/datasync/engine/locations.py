"""
Database locations.

Where the embedded database is meant to live besides the local cache: the
browser tier only, a companion local server, a repository file (githubSync),
a hosted Postgres REST endpoint (supabase) or a libsql endpoint (turso). The
selection and each location's config are persisted in the same document
shape as SyncState, under the location key, with ``location`` naming the
active entry.

Only githubSync is used for snapshot transfer; the other locations are
recorded and probed so a companion process can pick them up.

Invariants:
    - browser needs no configuration and is always reachable
    - Probes never mutate the stored selection
    - A location activated from shared defaults is not persisted
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, List, Mapping, Optional, Tuple

import httpx

from ..errors import ConfigMissingError, UnknownSourceError
from ..sources.base import ConnectionResult, token_headers
from ..sync_state import SourceConfigStore, SyncState

logger = logging.getLogger(__name__)

BROWSER = "browser"
GITHUB_SYNC = "githubSync"


@dataclass(frozen=True)
class DatabaseLocation:
    """Descriptor of one database location kind."""

    id: str
    name: str
    icon: str
    requires_config: bool
    config_fields: Tuple[str, ...] = ()
    required_fields: Tuple[str, ...] = ()


LOCATIONS: Dict[str, DatabaseLocation] = {
    loc.id: loc
    for loc in (
        DatabaseLocation(BROWSER, "Browser", "💻", False),
        DatabaseLocation(
            "localServer", "Local Server", "🖥️", True, ("serverUrl",), ("serverUrl",)
        ),
        DatabaseLocation(
            GITHUB_SYNC,
            "GitHub Sync",
            "🐙",
            True,
            ("owner", "repo", "path", "branch", "token"),
            ("owner", "repo"),
        ),
        DatabaseLocation("supabase", "Supabase", "⚡", True, ("url", "key"), ("url", "key")),
        DatabaseLocation("turso", "Turso", "🚀", True, ("url", "token"), ("url",)),
    )
}

Probe = Callable[[httpx.AsyncClient, Mapping[str, str], str], Awaitable[ConnectionResult]]


async def _probe_browser(
    http: httpx.AsyncClient, config: Mapping[str, str], api_url: str
) -> ConnectionResult:
    return ConnectionResult(True, "localStorage is always available")


async def _probe_local_server(
    http: httpx.AsyncClient, config: Mapping[str, str], api_url: str
) -> ConnectionResult:
    response = await http.get(f"{config['serverUrl'].rstrip('/')}/health")
    if response.is_success:
        return ConnectionResult(True, "Connected to local server")
    return ConnectionResult(False, f"Failed: {response.status_code}")


async def _probe_github(
    http: httpx.AsyncClient, config: Mapping[str, str], api_url: str
) -> ConnectionResult:
    response = await http.get(
        f"{api_url}/repos/{config['owner']}/{config['repo']}",
        headers=token_headers(config.get("token")),
    )
    if response.is_success:
        return ConnectionResult(True, "Connected to GitHub repository")
    return ConnectionResult(False, f"Failed: {response.status_code}")


async def _probe_supabase(
    http: httpx.AsyncClient, config: Mapping[str, str], api_url: str
) -> ConnectionResult:
    key = config["key"]
    response = await http.get(
        f"{config['url'].rstrip('/')}/rest/v1/",
        headers={"apikey": key, "Authorization": f"Bearer {key}"},
    )
    # 404 means the project answered but exposes no tables yet
    if response.is_success or response.status_code == 404:
        return ConnectionResult(True, "Connected to Supabase")
    return ConnectionResult(False, f"Failed: {response.status_code}")


async def _probe_turso(
    http: httpx.AsyncClient, config: Mapping[str, str], api_url: str
) -> ConnectionResult:
    # The libsql wire protocol is not spoken here; only the URL shape is checked
    url = config["url"]
    if url.startswith("libsql://") or url.startswith("https://"):
        return ConnectionResult(True, "Turso URL format valid")
    return ConnectionResult(False, "Invalid URL format")


PROBES: Dict[str, Probe] = {
    BROWSER: _probe_browser,
    "localServer": _probe_local_server,
    GITHUB_SYNC: _probe_github,
    "supabase": _probe_supabase,
    "turso": _probe_turso,
}


class LocationManager:
    """Selection and configuration of the database location.

    Example:
        >>> store = SourceConfigStore(storage, settings.location_key, "browser", "location")
        >>> locations = LocationManager(store, http, settings.github_api_url)
        >>> await locations.test_location("githubSync", {"owner": "x", "repo": "y"})
        ConnectionResult(success=True, message='Connected to GitHub repository')
        >>> locations.activate_location("githubSync", {"owner": "x", "repo": "y"})
    """

    def __init__(
        self,
        store: SourceConfigStore,
        http: httpx.AsyncClient,
        github_api_url: str,
    ) -> None:
        self.store = store
        self.http = http
        self.github_api_url = github_api_url
        self.state: SyncState = store.load()

    @property
    def active_location(self) -> str:
        return self.state.active_source

    def descriptor(self, location_id: str) -> DatabaseLocation:
        try:
            return LOCATIONS[location_id]
        except KeyError:
            raise UnknownSourceError(location_id, list(LOCATIONS)) from None

    def list_locations(self) -> List[DatabaseLocation]:
        return list(LOCATIONS.values())

    def config_for(self, location_id: str) -> Dict[str, str]:
        return self.state.config_for(location_id)

    def github_config(self) -> Optional[Dict[str, str]]:
        """Stored githubSync config when it names an owner, else None."""
        config = self.config_for(GITHUB_SYNC)
        return config if config.get("owner") else None

    async def test_location(
        self, location_id: str, config: Mapping[str, str]
    ) -> ConnectionResult:
        """Probe a location config without storing it."""
        descriptor = self.descriptor(location_id)
        missing = [f for f in descriptor.required_fields if not str(config.get(f) or "").strip()]
        if missing:
            return ConnectionResult(False, f"Error: {ConfigMissingError(location_id, missing)}")
        try:
            return await PROBES[location_id](self.http, config, self.github_api_url)
        except httpx.HTTPError as e:
            return ConnectionResult(False, f"Error: {e}")

    def activate_location(
        self,
        location_id: str,
        config: Optional[Mapping[str, str]] = None,
        *,
        persist: bool = True,
    ) -> SyncState:
        """Make location_id active, replacing its config when one is given.

        Args:
            location_id: Location to activate
            config: New config for it (None keeps the stored one)
            persist: Write the selection to local storage

        Raises:
            UnknownSourceError: If location_id is not registered
        """
        self.descriptor(location_id)
        if config is None:
            config = self.config_for(location_id)
        new_state = self.state.with_activated(location_id, config)
        if persist:
            self.store.save(new_state)
        self.state = new_state
        logger.info(
            f"[Location] {location_id} is now active",
            extra={"location": location_id, "persisted": persist},
        )
        return new_state
