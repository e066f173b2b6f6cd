"""
Repository-file adapter.

Stores a document as one file in a version-controlled repository through the
contents API. Updates are optimistic: the file's current blob hash is
fetched first and sent back as a precondition, and the remote rejects the
update if the file changed in between.

Protocol:
    GET  repos/{owner}/{repo}/contents/{path}?ref={branch}
         -> {"content": <base64>, "sha": <hash>}     (404 = no file yet)
    PUT  repos/{owner}/{repo}/contents/{path}
         <- {"message", "content": <base64>, "sha"?, "branch"}
         409 / 422 -> hash missing or stale

Invariants:
    - sha is omitted only when the file does not exist
    - A metadata lookup failing with anything but 404 aborts the write;
      there is no blind overwrite
    - Precondition failures are never retried here

How to change safely:
    - Keep fetch_file/put_file usable on their own; the snapshot manager
      pushes binary content through them
"""

from __future__ import annotations

import base64
import binascii
import dataclasses
import json
import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from pydantic import ValidationError

from ..errors import DeserializationError, NetworkFailureError, PreconditionMismatchError
from .base import BaseAdapter, ConnectionResult, token_headers
from .models import RepoCommitResult, RepoFileContent

logger = logging.getLogger(__name__)

DEFAULT_DOCUMENT_PATH = "data/database.json"
DEFAULT_BRANCH = "main"

# Statuses the contents API uses for a missing or stale sha
PRECONDITION_STATUSES = (409, 422)


@dataclass(frozen=True)
class RemoteFileHandle:
    """Location of one file in a repository.

    Attributes:
        owner: Repository owner
        repo_name: Repository name
        path: File path inside the repository
        branch: Branch to read from and commit to
        content_hash: Blob hash believed current; None means "create"
    """

    owner: str
    repo_name: str
    path: str
    branch: str = DEFAULT_BRANCH
    content_hash: Optional[str] = None

    @classmethod
    def from_config(
        cls,
        config: Mapping[str, str],
        default_path: str = DEFAULT_DOCUMENT_PATH,
    ) -> RemoteFileHandle:
        """Build a handle from a stored source/location config."""
        return cls(
            owner=config.get("owner", ""),
            repo_name=config.get("repo", ""),
            path=config.get("path") or default_path,
            branch=config.get("branch") or DEFAULT_BRANCH,
        )

    def with_hash(self, content_hash: Optional[str]) -> RemoteFileHandle:
        return dataclasses.replace(self, content_hash=content_hash)

    def __str__(self) -> str:
        return f"{self.owner}/{self.repo_name}@{self.branch}:{self.path}"


@dataclass(frozen=True)
class RemoteFile:
    """A fetched file: its bytes and the hash to use for the next update."""

    handle: RemoteFileHandle
    content: bytes

    @property
    def content_hash(self) -> Optional[str]:
        return self.handle.content_hash


class RepoFileAdapter(BaseAdapter):
    """Adapter for a JSON document committed to a repository.

    Config fields:
        owner, repo: Repository coordinates
        path: File path (default ``data/database.json``)
        branch: Branch (default ``main``)
        token: Write token; optional for public reads

    Example:
        >>> adapter = RepoFileAdapter({"owner": "x", "repo": "y", "token": t}, context)
        >>> remote = await adapter.fetch_file()
        >>> await adapter.put_file(remote.handle, b"...", "Update data")
    """

    source_id = "githubRepo"
    read_fields = ("owner", "repo")
    write_fields = ("owner", "repo", "token")
    probe_fields = ("owner", "repo")

    @property
    def handle(self) -> RemoteFileHandle:
        return RemoteFileHandle.from_config(self.config)

    @property
    def token(self) -> Optional[str]:
        return self.config.get("token") or None

    def contents_url(self, handle: RemoteFileHandle) -> str:
        return (
            f"{self.settings.github_api_url}/repos/{handle.owner}/{handle.repo_name}"
            f"/contents/{handle.path}"
        )

    def raw_url(self, handle: RemoteFileHandle) -> str:
        return (
            f"{self.settings.github_raw_url}/{handle.owner}/{handle.repo_name}"
            f"/{handle.branch}/{handle.path}"
        )

    async def fetch_file(self, handle: Optional[RemoteFileHandle] = None) -> Optional[RemoteFile]:
        """Fetch a file's content and current hash.

        Args:
            handle: File location (defaults to the configured one)

        Returns:
            RemoteFile, or None when the file does not exist

        Raises:
            NetworkFailureError: For transport errors, non-2xx other than 404
                and bodies that are not JSON
            DeserializationError: JSON that is not a file entry, or content
                that is not valid base64
        """
        handle = handle or self.handle
        url = self.contents_url(handle)
        response = await self.request(
            "GET",
            url,
            params={"ref": handle.branch},
            headers=token_headers(self.token),
            ok_statuses=(404,),
        )
        if response.status_code == 404:
            logger.info(f"No file on remote at {handle}")
            return None

        try:
            payload = response.json()
        except json.JSONDecodeError as e:
            raise NetworkFailureError(
                f"GET {url} answered with a non-JSON body: {e}",
                url=url,
                status_code=response.status_code,
            ) from e
        try:
            meta = RepoFileContent.model_validate(payload)
            content = meta.decoded()
        except (ValidationError, binascii.Error) as e:
            raise DeserializationError(
                f"Malformed file entry from remote: {e}", origin=str(handle)
            ) from e
        return RemoteFile(handle=handle.with_hash(meta.sha), content=content)

    async def current_hash(self, handle: Optional[RemoteFileHandle] = None) -> Optional[str]:
        """Hash of the file as it is now on the remote, None if absent."""
        remote = await self.fetch_file(handle)
        return remote.content_hash if remote else None

    async def put_file(self, handle: RemoteFileHandle, content: bytes, message: str) -> str:
        """Create or conditionally update a file.

        The handle's content_hash is the precondition: present means update
        that exact version, absent means create.

        Args:
            handle: File location plus expected hash
            content: New file bytes
            message: Commit message

        Returns:
            The new blob hash

        Raises:
            PreconditionMismatchError: Remote hash differs from handle.content_hash
            NetworkFailureError: For other failures
        """
        body: dict[str, Any] = {
            "message": message,
            "content": base64.b64encode(content).decode("ascii"),
            "branch": handle.branch,
        }
        if handle.content_hash:
            body["sha"] = handle.content_hash

        url = self.contents_url(handle)
        response = await self.request(
            "PUT",
            url,
            headers=token_headers(self.token),
            json=body,
            ok_statuses=PRECONDITION_STATUSES,
        )
        if response.status_code in PRECONDITION_STATUSES:
            logger.warning(
                "Remote rejected update precondition",
                extra={"file": str(handle), "status_code": response.status_code},
            )
            raise PreconditionMismatchError(handle.path, handle.content_hash)

        try:
            result = RepoCommitResult.model_validate(response.json())
        except (json.JSONDecodeError, ValidationError) as e:
            raise NetworkFailureError(
                f"PUT {url} answered with a malformed body: {e}",
                url=url,
                status_code=response.status_code,
            ) from e
        new_hash = result.content.sha if result.content else None
        if not new_hash:
            raise NetworkFailureError(
                f"PUT {url} answered without a content hash",
                url=url,
                status_code=response.status_code,
            )
        logger.info(
            "Committed file to remote",
            extra={"file": str(handle), "created": handle.content_hash is None, "sha": new_hash},
        )
        return new_hash

    async def write_file(
        self,
        content: bytes,
        message: str,
        handle: Optional[RemoteFileHandle] = None,
    ) -> str:
        """Two-phase optimistic write: fetch the current hash, then put."""
        handle = handle or self.handle
        content_hash = await self.current_hash(handle)
        return await self.put_file(handle.with_hash(content_hash), content, message)

    async def _read(self, key: str) -> Optional[Any]:
        response = await self.request(
            "GET", self.raw_url(self.handle), headers=token_headers(self.token)
        )
        return response.json()

    async def _write(self, key: str, value: Any) -> bool:
        handle = self.handle
        content = json.dumps(value, indent=2).encode("utf-8")
        await self.write_file(content, f"Update {handle.path}", handle)
        return True

    async def _probe(self) -> ConnectionResult:
        handle = self.handle
        await self.request(
            "GET",
            f"{self.settings.github_api_url}/repos/{handle.owner}/{handle.repo_name}",
            headers=token_headers(self.token),
        )
        return ConnectionResult(True, "Connected to GitHub Repository")
