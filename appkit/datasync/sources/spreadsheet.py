"""
Spreadsheet-form adapter.

Reads go to a published script endpoint that answers JSON; writes are form
submissions that the remote answers without a usable body. A write is
therefore reported successful whenever the request itself did not fail, even
if the spreadsheet silently dropped the row. Do not add a confirmation step:
the protocol has none.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Optional

from .base import BaseAdapter, ConnectionResult

logger = logging.getLogger(__name__)


class SpreadsheetFormAdapter(BaseAdapter):
    """Best-effort adapter for a spreadsheet fed by a web form.

    Config fields:
        formUrl: Form submission URL (write)
        apiUrl: Script endpoint answering ``action=get`` (read, probe)
        prefix: Row prefix, informational
    """

    source_id = "googleSheets"
    read_fields = ("apiUrl",)
    write_fields = ("formUrl",)
    probe_fields = ("apiUrl",)

    async def _read(self, key: str) -> Optional[Any]:
        response = await self.request(
            "GET",
            self.config["apiUrl"],
            params={"action": "get", "key": key},
        )
        return response.json()

    async def _write(self, key: str, value: Any) -> bool:
        # Fire-and-forget: the status of the submission is not inspected
        await self.http.post(
            self.config["formUrl"],
            data={"entry.0": json.dumps(value)},
        )
        logger.debug(f"[{self.source_id}] form submitted", extra={"key": key})
        return True

    async def _probe(self) -> ConnectionResult:
        response = await self.http.get(self.config["apiUrl"])
        if response.is_success:
            return ConnectionResult(True, "Connected to Google Sheets API")
        return ConnectionResult(False, "Failed to connect")
