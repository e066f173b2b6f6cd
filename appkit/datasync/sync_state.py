"""
Persisted source selection and per-source configuration.

SyncState is the record of which source is active and every source's stored
configuration. It lives as one JSON document in local storage:

    {"activeSource": "githubRepo",
     "configs": {"githubRepo": {"owner": "...", ...}, "npoint": {...}},
     "updatedAt": "2024-01-01T00:00:00+00:00"}

The same store shape persists the database location selection, under a
different key and with ``location`` as the active field name.

Invariants:
    - Exactly one id is active at a time
    - Activating a source replaces only that source's config; every other
      stored config is carried over unchanged
    - The state is overwritten, never deleted
    - A corrupt document falls back to defaults without being rewritten
"""

from __future__ import annotations

import copy
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional

from .local.store import LocalStorage

logger = logging.getLogger(__name__)


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class SyncState:
    """Active source plus all stored configs.

    Attributes:
        active_source: Id of the active source
        configs: Source id -> field name -> value
        updated_at: ISO timestamp of the last commit (None = never saved)
    """

    active_source: str
    configs: Dict[str, Dict[str, str]] = field(default_factory=dict)
    updated_at: Optional[str] = None

    def config_for(self, source_id: str) -> Dict[str, str]:
        """Copy of the stored config for source_id ({} when none)."""
        return dict(self.configs.get(source_id, {}))

    def with_activated(self, source_id: str, config: Mapping[str, str]) -> SyncState:
        """New state with source_id active and its config replaced."""
        configs = copy.deepcopy(self.configs)
        configs[source_id] = dict(config)
        return SyncState(active_source=source_id, configs=configs, updated_at=utc_now_iso())

    def to_dict(self, active_field: str = "activeSource") -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            active_field: self.active_source,
            "configs": self.configs,
            "updatedAt": self.updated_at,
        }

    @classmethod
    def from_dict(
        cls,
        data: Mapping[str, Any],
        default_source: str,
        active_field: str = "activeSource",
    ) -> SyncState:
        """Create from dictionary, tolerating missing fields."""
        configs = data.get("configs") or {}
        if not isinstance(configs, dict):
            configs = {}
        return cls(
            active_source=data.get(active_field) or default_source,
            configs={
                str(k): {str(f): str(v) for f, v in (c or {}).items()}
                for k, c in configs.items()
                if isinstance(c, dict)
            },
            updated_at=data.get("updatedAt"),
        )


class SourceConfigStore:
    """Loads and saves a SyncState document in local storage.

    Example:
        >>> store = SourceConfigStore(storage, "demotemplate_datasource_config", "localStorage")
        >>> state = store.load()
        >>> store.save(state.with_activated("npoint", {"endpointId": "abc"}))
    """

    def __init__(
        self,
        storage: LocalStorage,
        key: str,
        default_source: str,
        active_field: str = "activeSource",
    ) -> None:
        """Initialize the store.

        Args:
            storage: Local durable storage
            key: Storage key of the document
            default_source: Active id used when nothing is stored
            active_field: JSON field naming the active id
        """
        self.storage = storage
        self.key = key
        self.default_source = default_source
        self.active_field = active_field

    def default_state(self) -> SyncState:
        return SyncState(active_source=self.default_source)

    def load(self) -> SyncState:
        """Load the stored state, or defaults when absent or unreadable."""
        raw = self.storage.get_item(self.key)
        if not raw:
            return self.default_state()
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.error(f"Error loading config from '{self.key}': {e}")
            return self.default_state()
        if not isinstance(data, dict):
            logger.error(f"Config under '{self.key}' is not an object; using defaults")
            return self.default_state()
        return SyncState.from_dict(data, self.default_source, self.active_field)

    def save(self, state: SyncState) -> None:
        """Persist state, overwriting the previous document.

        Raises:
            QuotaExceededError: If local storage is full
        """
        if state.updated_at is None:
            state.updated_at = utc_now_iso()
        self.storage.set_item(self.key, json.dumps(state.to_dict(self.active_field)))
        logger.debug(f"Config saved under '{self.key}'", extra={"active": state.active_source})
