"""
Base protocol and shared plumbing for data source adapters.

Every backend (local store, spreadsheet form, gist, repository file, hosted
bin, hosted endpoint) implements the DataAdapter protocol, so the manager can
dispatch without knowing which remote it is talking to.

Invariants:
    - read() resolves to None on any failure; it never raises
    - write() resolves to False on any failure and logs the cause
    - test_connection() reports failures as ConnectionResult(success=False)
    - Missing required config is detected before any network call

How to change safely:
    - New adapters subclass BaseAdapter and register in registry.py
    - Keep the failure policy identical across adapters; callers cannot
      distinguish "failed" from "never written" on read by design of the
      contract
"""

from __future__ import annotations

import json
import logging
from abc import abstractmethod
from dataclasses import dataclass
from typing import (
    Any,
    ClassVar,
    Dict,
    List,
    Mapping,
    Optional,
    Protocol,
    Sequence,
    TYPE_CHECKING,
    runtime_checkable,
)

import httpx

from ..errors import ConfigMissingError, DataSyncError, NetworkFailureError
from ..local.store import LocalStorage

if TYPE_CHECKING:
    from ..config import Settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ConnectionResult:
    """Outcome of a reachability probe.

    Attributes:
        success: Whether the backend answered as expected
        message: Human readable outcome for the UI
    """

    success: bool
    message: str

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {"success": self.success, "message": self.message}


@dataclass
class AdapterContext:
    """Shared resources handed to every adapter.

    Attributes:
        http: Async HTTP client used for all remote calls
        storage: Local durable storage
        settings: Endpoint bases and namespacing
    """

    http: httpx.AsyncClient
    storage: LocalStorage
    settings: "Settings"


@runtime_checkable
class DataAdapter(Protocol):
    """Protocol for data source backends.

    Example:
        >>> adapter = create_adapter("npoint", {"endpointId": "abc"}, context)
        >>> await adapter.write("items", [{"id": 1}])
        True
        >>> await adapter.read("items")
        [{'id': 1}]
    """

    source_id: str

    @abstractmethod
    async def read(self, key: str) -> Optional[Any]:
        """Read the value stored for key, or None."""
        ...

    @abstractmethod
    async def write(self, key: str, value: Any) -> bool:
        """Write value for key. True only when the backend accepted it
        (best-effort adapters excepted)."""
        ...

    @abstractmethod
    async def test_connection(self) -> ConnectionResult:
        """Lightweight reachability probe."""
        ...


class BaseAdapter:
    """Common behaviour for the concrete adapters.

    Subclasses implement _read, _write and _probe and may raise any
    DataSyncError or httpx error from them; the public methods apply the
    failure policy.
    """

    source_id: ClassVar[str] = ""
    # Fields that must be non-empty for read / write / probe respectively
    read_fields: ClassVar[Sequence[str]] = ()
    write_fields: ClassVar[Sequence[str]] = ()
    probe_fields: ClassVar[Sequence[str]] = ()

    def __init__(self, config: Mapping[str, str], context: AdapterContext) -> None:
        """Initialize the adapter.

        Args:
            config: Stored configuration for this source (may be empty)
            context: Shared HTTP client, local storage and settings
        """
        self.config: Dict[str, str] = dict(config)
        self.context = context

    @property
    def http(self) -> httpx.AsyncClient:
        return self.context.http

    @property
    def settings(self) -> "Settings":
        return self.context.settings

    def missing_fields(self, fields: Sequence[str]) -> List[str]:
        """Fields from the list that are absent or blank in the config."""
        return [name for name in fields if not str(self.config.get(name) or "").strip()]

    def require(self, fields: Sequence[str]) -> None:
        """Raise ConfigMissingError when any field is absent."""
        missing = self.missing_fields(fields)
        if missing:
            raise ConfigMissingError(self.source_id, missing)

    async def read(self, key: str) -> Optional[Any]:
        try:
            self.require(self.read_fields)
            return await self._read(key)
        except ConfigMissingError as e:
            logger.warning(f"[{self.source_id}] read skipped: {e.message}")
        except (DataSyncError, httpx.HTTPError, ValueError) as e:
            logger.error(f"[{self.source_id}] read error: {e}", extra={"key": key})
        return None

    async def write(self, key: str, value: Any) -> bool:
        try:
            self.require(self.write_fields)
            return await self._write(key, value)
        except ConfigMissingError as e:
            logger.warning(f"[{self.source_id}] write skipped: {e.message}")
        except (DataSyncError, httpx.HTTPError, ValueError, TypeError) as e:
            logger.error(f"[{self.source_id}] write error: {e}", extra={"key": key})
        return False

    async def test_connection(self) -> ConnectionResult:
        try:
            self.require(self.probe_fields)
            return await self._probe()
        except ConfigMissingError as e:
            return ConnectionResult(False, f"Error: {e.message}")
        except NetworkFailureError as e:
            return ConnectionResult(False, f"Failed: {e.status_code or e.message}")
        except (DataSyncError, httpx.HTTPError) as e:
            return ConnectionResult(False, f"Error: {e}")

    @abstractmethod
    async def _read(self, key: str) -> Optional[Any]:
        ...

    @abstractmethod
    async def _write(self, key: str, value: Any) -> bool:
        ...

    @abstractmethod
    async def _probe(self) -> ConnectionResult:
        ...

    async def request(
        self,
        method: str,
        url: str,
        *,
        ok_statuses: Sequence[int] = (),
        **kwargs: Any,
    ) -> httpx.Response:
        """Issue a request, mapping transport errors and non-2xx statuses
        to NetworkFailureError.

        Args:
            method: HTTP method
            url: Absolute URL
            ok_statuses: Extra non-2xx statuses the caller handles itself
            **kwargs: Passed to httpx

        Returns:
            The response

        Raises:
            NetworkFailureError: If the request failed
        """
        try:
            response = await self.http.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            raise NetworkFailureError(f"{method} {url} failed: {e}", url=url) from e

        if not response.is_success and response.status_code not in ok_statuses:
            raise NetworkFailureError(
                f"{method} {url} returned {response.status_code}",
                url=url,
                status_code=response.status_code,
            )
        return response


def parse_json_text(text: Optional[str]) -> Optional[Any]:
    """Parse JSON text, None when absent or malformed."""
    if text is None:
        return None
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        return None


def token_headers(token: Optional[str]) -> Dict[str, str]:
    """GitHub style token header, empty when no token is configured."""
    return {"Authorization": f"token {token}"} if token else {}
