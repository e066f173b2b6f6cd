"""
Data source manager.

Facade that dispatches read/write to whichever adapter is active, probes
candidate configurations, and commits a configuration as the new active
source.

Invariants:
    - At most one source is active
    - A failed probe never mutates SyncState
    - Missing required fields are reported before any network call
    - Switching source never deletes another source's stored config
    - read/write dispatch even without a stored config; the adapter decides
      how to fail

How to change safely:
    - Keep dispatch going through the registry
    - Persist only through SourceConfigStore so the document stays readable
      by older versions
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional

from .errors import ConfigMissingError, UnknownSourceError
from .sources.base import AdapterContext, BaseAdapter, ConnectionResult
from .sources.registry import SourceDescriptor, create_adapter, get_descriptor
from .sync_state import SourceConfigStore, SyncState

logger = logging.getLogger(__name__)


class DataSourceManager:
    """Dispatches storage operations to the active adapter.

    Attributes:
        store: Persistence for SyncState
        context: Resources handed to adapters
        state: Current SyncState (loaded at construction)

    Example:
        >>> manager = DataSourceManager(store, adapter_context)
        >>> await manager.activate("npoint", {"endpointId": "abc"})
        ConnectionResult(success=True, message='Connected to npoint.io')
        >>> await manager.write("items", [{"id": 1}])
        True
    """

    def __init__(self, store: SourceConfigStore, context: AdapterContext) -> None:
        self.store = store
        self.context = context
        self.state: SyncState = store.load()
        logger.info(f"[DataSource] Initialized. Active source: {self.state.active_source}")

    @property
    def active_source(self) -> str:
        return self.state.active_source

    def configured_sources(self) -> List[str]:
        """Ids with a stored config."""
        return sorted(self.state.configs)

    def adapter_for(
        self,
        source_id: str,
        config: Optional[Mapping[str, str]] = None,
    ) -> BaseAdapter:
        """Adapter for source_id with config (or its stored config)."""
        if config is None:
            config = self.state.config_for(source_id)
        return create_adapter(source_id, config, self.context)

    def _prepare(self, source_id: str, config: Mapping[str, str]) -> Dict[str, str]:
        descriptor: SourceDescriptor = get_descriptor(source_id)
        prepared = descriptor.apply_defaults(config)
        missing = descriptor.missing_required(prepared)
        if missing:
            raise ConfigMissingError(source_id, missing)
        return prepared

    async def test_connection(
        self,
        source_id: str,
        config: Mapping[str, str],
    ) -> ConnectionResult:
        """Probe a candidate configuration without committing it.

        Args:
            source_id: Source to probe
            config: Candidate configuration

        Returns:
            ConnectionResult; missing fields are reported as a failed result

        Raises:
            UnknownSourceError: If source_id is not registered
        """
        try:
            prepared = self._prepare(source_id, config)
        except ConfigMissingError as e:
            return ConnectionResult(False, f"Error: {e.message}")

        result = await self.adapter_for(source_id, prepared).test_connection()
        logger.info(
            f"[DataSource] Probe {source_id}: {result.message}",
            extra={"source_id": source_id, "success": result.success},
        )
        return result

    async def activate(
        self,
        source_id: str,
        config: Mapping[str, str],
        *,
        test: bool = True,
    ) -> ConnectionResult:
        """Configure and activate a source.

        Args:
            source_id: Source to activate
            config: Its configuration
            test: Probe first and commit only on success; False commits
                the configuration untested

        Returns:
            The probe result (or an "untested" success when test is False)

        Raises:
            UnknownSourceError: If source_id is not registered
            ConfigMissingError: If a required field is blank
            QuotaExceededError: If the state cannot be persisted
        """
        prepared = self._prepare(source_id, config)

        if test:
            result = await self.adapter_for(source_id, prepared).test_connection()
            if not result.success:
                logger.warning(
                    f"[DataSource] Not activating {source_id}: {result.message}",
                    extra={"source_id": source_id},
                )
                return result
        else:
            result = ConnectionResult(True, "Activated without connection test")

        new_state = self.state.with_activated(source_id, prepared)
        self.store.save(new_state)
        self.state = new_state
        logger.info(f"[DataSource] Activated: {source_id}")
        return result

    async def read(self, key: str) -> Optional[Any]:
        """Read key from the active source; None on any failure."""
        try:
            adapter = self.adapter_for(self.active_source)
        except UnknownSourceError as e:
            logger.error(f"[DataSource] {e.message}")
            return None
        return await adapter.read(key)

    async def write(self, key: str, value: Any) -> bool:
        """Write key to the active source; False on any failure."""
        try:
            adapter = self.adapter_for(self.active_source)
        except UnknownSourceError as e:
            logger.error(f"[DataSource] {e.message}")
            return False
        return await adapter.write(key, value)

    def reload(self) -> SyncState:
        """Re-read SyncState from storage."""
        self.state = self.store.load()
        return self.state
