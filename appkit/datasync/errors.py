"""
Error types for the datasync package.

This module defines every exception raised by the storage layer:
- DataSyncError: Base exception
- ConfigMissingError: Required configuration field absent
- NetworkFailureError: Request raised or returned non-2xx
- PreconditionMismatchError: Optimistic write rejected by the remote
- QuotaExceededError: Local durable storage is full
- DeserializationError: Bytes are not a valid snapshot

Invariants:
    - All errors inherit from DataSyncError
    - Adapter read/write never raise these past the adapter boundary
    - Error details never contain tokens or API keys
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional


class DataSyncError(Exception):
    """Base exception for all datasync errors.

    Attributes:
        message: Error message
        code: Error code for programmatic handling
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or "DATASYNC_ERROR"
        self.details = details or {}


class ConfigMissingError(DataSyncError):
    """Required configuration field is absent or empty.

    Raised before any network call is attempted.
    """

    def __init__(self, source_id: str, missing_fields: List[str]) -> None:
        fields = ", ".join(missing_fields)
        super().__init__(
            f"{source_id}: missing required configuration: {fields}",
            code="CONFIG_MISSING",
            details={"source_id": source_id, "missing_fields": list(missing_fields)},
        )
        self.source_id = source_id
        self.missing_fields = list(missing_fields)


class NetworkFailureError(DataSyncError):
    """A remote request raised or returned a non-2xx status.

    Raised when:
    - The transport failed (DNS, connection refused, timeout)
    - The remote answered with an error status
    """

    def __init__(
        self,
        message: str,
        url: Optional[str] = None,
        status_code: Optional[int] = None,
    ) -> None:
        super().__init__(
            message,
            code="NETWORK_FAILURE",
            details={"url": url, "status_code": status_code},
        )
        self.url = url
        self.status_code = status_code


class PreconditionMismatchError(DataSyncError):
    """The remote rejected an optimistic write.

    The content hash sent with the update no longer matches the remote file
    (or was missing for an existing file). Callers must refresh from the
    remote before retrying; this is never retried automatically.
    """

    def __init__(self, path: str, expected_hash: Optional[str]) -> None:
        super().__init__(
            f"Remote file '{path}' changed since hash {expected_hash or '<none>'} was captured",
            code="PRECONDITION_MISMATCH",
            details={"path": path, "expected_hash": expected_hash},
        )
        self.path = path
        self.expected_hash = expected_hash


class QuotaExceededError(DataSyncError):
    """Local durable storage has no room for the value."""

    def __init__(self, key: str, requested_bytes: int, quota_bytes: int) -> None:
        super().__init__(
            f"Storing {requested_bytes} bytes under '{key}' exceeds quota of {quota_bytes} bytes",
            code="QUOTA_EXCEEDED",
            details={
                "key": key,
                "requested_bytes": requested_bytes,
                "quota_bytes": quota_bytes,
            },
        )
        self.key = key
        self.requested_bytes = requested_bytes
        self.quota_bytes = quota_bytes


class DeserializationError(DataSyncError):
    """Bytes could not be loaded as a database snapshot."""

    def __init__(self, message: str, origin: Optional[str] = None) -> None:
        super().__init__(
            message,
            code="DESERIALIZATION_FAILURE",
            details={"origin": origin},
        )
        self.origin = origin


class UnknownSourceError(DataSyncError):
    """No adapter or location is registered under the given id."""

    def __init__(self, source_id: str, known: Optional[List[str]] = None) -> None:
        known = known or []
        hint = f" (known: {', '.join(known)})" if known else ""
        super().__init__(
            f"Unknown source '{source_id}'{hint}",
            code="UNKNOWN_SOURCE",
            details={"source_id": source_id, "known": known},
        )
        self.source_id = source_id


class SnapshotNotLoadedError(DataSyncError):
    """An operation needs a loaded database but none is loaded."""

    def __init__(self, operation: str) -> None:
        super().__init__(
            f"No database loaded; cannot {operation}",
            code="SNAPSHOT_NOT_LOADED",
            details={"operation": operation},
        )


class UserExistsError(DataSyncError):
    """Username is already taken within the application."""

    def __init__(self, username: str, app_id: str) -> None:
        super().__init__(
            f"Username '{username}' already taken",
            code="USER_EXISTS",
            details={"username": username, "app_id": app_id},
        )
        self.username = username
        self.app_id = app_id
