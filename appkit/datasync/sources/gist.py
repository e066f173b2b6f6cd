"""
Gist adapter.

One gist file holds the whole JSON document. Writes replace that file's
content with pretty-printed JSON through a partial update; other files in
the gist are left alone.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Optional

from .base import BaseAdapter, ConnectionResult, parse_json_text, token_headers
from .models import GistDocument

logger = logging.getLogger(__name__)


class GistAdapter(BaseAdapter):
    """Adapter for a single file inside a gist.

    Config fields:
        gistId: Gist identifier
        filename: File inside the gist (defaults to ``<key>.json``)
        token: Write token; optional for reading public gists
    """

    source_id = "githubGist"
    read_fields = ("gistId",)
    write_fields = ("gistId", "token")
    probe_fields = ("gistId",)

    def gist_url(self) -> str:
        return f"{self.settings.github_api_url}/gists/{self.config['gistId']}"

    def filename(self, key: str) -> str:
        return self.config.get("filename") or f"{key}.json"

    async def _read(self, key: str) -> Optional[Any]:
        response = await self.request(
            "GET", self.gist_url(), headers=token_headers(self.config.get("token"))
        )
        gist = GistDocument.model_validate(response.json())
        entry = gist.files.get(self.filename(key))
        return parse_json_text(entry.content if entry else None)

    async def _write(self, key: str, value: Any) -> bool:
        body = {"files": {self.filename(key): {"content": json.dumps(value, indent=2)}}}
        await self.request(
            "PATCH",
            self.gist_url(),
            headers=token_headers(self.config["token"]),
            json=body,
        )
        return True

    async def _probe(self) -> ConnectionResult:
        await self.request(
            "GET", self.gist_url(), headers=token_headers(self.config.get("token"))
        )
        return ConnectionResult(True, "Connected to GitHub Gist")
