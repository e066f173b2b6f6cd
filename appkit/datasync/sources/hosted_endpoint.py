"""
Hosted-endpoint adapter: plain GET/POST of a JSON body, no authentication.
"""

from __future__ import annotations

from typing import Any, Optional

from .base import BaseAdapter, ConnectionResult


class HostedEndpointAdapter(BaseAdapter):
    """Adapter for an identifier-scoped public JSON endpoint.

    Config fields:
        endpointId: Endpoint identifier
    """

    source_id = "npoint"
    read_fields = ("endpointId",)
    write_fields = ("endpointId",)
    probe_fields = ("endpointId",)

    def endpoint_url(self) -> str:
        return f"{self.settings.npoint_api_url}/{self.config['endpointId']}"

    async def _read(self, key: str) -> Optional[Any]:
        response = await self.request("GET", self.endpoint_url())
        return response.json()

    async def _write(self, key: str, value: Any) -> bool:
        await self.request("POST", self.endpoint_url(), json=value)
        return True

    async def _probe(self) -> ConnectionResult:
        await self.request("GET", self.endpoint_url())
        return ConnectionResult(True, "Connected to npoint.io")
