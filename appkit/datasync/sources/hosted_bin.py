"""
Hosted-bin adapter.

A bin is a JSON document addressed by id and guarded by a static master
key. Reads fetch the latest version and unwrap its ``record`` field; writes
replace the whole bin.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from .base import BaseAdapter, ConnectionResult
from .models import BinEnvelope

logger = logging.getLogger(__name__)


class HostedBinAdapter(BaseAdapter):
    """Adapter for a hosted JSON bin.

    Config fields:
        binId: Bin identifier
        apiKey: Master key sent as ``X-Master-Key``
    """

    source_id = "jsonbin"
    read_fields = ("binId", "apiKey")
    write_fields = ("binId", "apiKey")
    probe_fields = ("binId", "apiKey")

    def bin_url(self) -> str:
        return f"{self.settings.jsonbin_api_url}/b/{self.config['binId']}"

    def auth_headers(self) -> Dict[str, str]:
        return {"X-Master-Key": self.config["apiKey"]}

    async def _read(self, key: str) -> Optional[Any]:
        response = await self.request(
            "GET", f"{self.bin_url()}/latest", headers=self.auth_headers()
        )
        return BinEnvelope.model_validate(response.json()).record

    async def _write(self, key: str, value: Any) -> bool:
        await self.request("PUT", self.bin_url(), headers=self.auth_headers(), json=value)
        return True

    async def _probe(self) -> ConnectionResult:
        await self.request("GET", self.bin_url(), headers=self.auth_headers())
        return ConnectionResult(True, "Connected to JSONbin.io")
