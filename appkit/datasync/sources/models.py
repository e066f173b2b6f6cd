"""
Response models for the hosted JSON protocols.

Remote payloads are validated with pydantic before use so that a malformed
answer becomes a parse failure (handled like any other read failure) rather
than a KeyError deep inside an adapter.
"""

from __future__ import annotations

import base64
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class RepoFileContent(BaseModel):
    """``GET repos/{owner}/{repo}/contents/{path}`` response."""

    sha: str
    content: str = ""
    encoding: str = "base64"
    path: Optional[str] = None
    size: Optional[int] = None

    def decoded(self) -> bytes:
        """File bytes; the API wraps base64 at 60 columns."""
        return base64.b64decode(self.content.replace("\n", ""), validate=True)


class RepoCommitResult(BaseModel):
    """``PUT repos/{owner}/{repo}/contents/{path}`` response (subset)."""

    content: Optional[RepoFileContent] = None


class GistFile(BaseModel):
    """One file entry of a gist."""

    content: Optional[str] = None
    truncated: bool = False


class GistDocument(BaseModel):
    """``GET gists/{id}`` response (subset)."""

    id: Optional[str] = None
    files: Dict[str, Optional[GistFile]] = Field(default_factory=dict)


class BinEnvelope(BaseModel):
    """``GET b/{id}/latest`` response."""

    record: Any = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
