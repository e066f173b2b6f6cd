"""
Local-store adapter.

Stores each record set as a JSON string in local durable storage. This is
the default source and the only one with a guaranteed write/read round trip.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Optional

from .base import BaseAdapter, ConnectionResult, parse_json_text

logger = logging.getLogger(__name__)


class LocalStoreAdapter(BaseAdapter):
    """Adapter over the local key/value tier.

    Keys are namespaced with the configured storage prefix so that several
    applications can share one local store.
    """

    source_id = "localStorage"

    def storage_key(self, key: str) -> str:
        prefix = self.settings.storage_prefix
        return f"{prefix}_{key}" if prefix else key

    async def _read(self, key: str) -> Optional[Any]:
        return parse_json_text(self.context.storage.get_item(self.storage_key(key)))

    async def _write(self, key: str, value: Any) -> bool:
        # QuotaExceededError propagates to BaseAdapter.write, which reports False
        self.context.storage.set_item(self.storage_key(key), json.dumps(value))
        return True

    async def _probe(self) -> ConnectionResult:
        return ConnectionResult(True, "localStorage is always available")
