"""
Data source adapters.

This package provides the uniform read/write contract over:
- Local durable storage (default)
- Spreadsheet form (best-effort writes)
- Gist file
- Repository file (optimistic, hash-guarded writes)
- Hosted JSON bin
- Hosted JSON endpoint

Invariants:
    - read() never raises; failures resolve to None
    - write() never raises; failures resolve to False
    - Adapters are selected through the registry, never by branching

How to change safely:
    - New adapters must subclass BaseAdapter and be registered in SOURCES
    - Keep source ids stable; they are persisted
"""

from .base import AdapterContext, BaseAdapter, ConnectionResult, DataAdapter
from .gist import GistAdapter
from .hosted_bin import HostedBinAdapter
from .hosted_endpoint import HostedEndpointAdapter
from .local import LocalStoreAdapter
from .registry import (
    DEFAULT_SOURCE_ID,
    SOURCES,
    SourceDescriptor,
    create_adapter,
    find_descriptor,
    get_descriptor,
    list_descriptors,
)
from .repo_file import RemoteFile, RemoteFileHandle, RepoFileAdapter
from .spreadsheet import SpreadsheetFormAdapter

__all__ = [
    # Protocol and types
    "DataAdapter",
    "BaseAdapter",
    "AdapterContext",
    "ConnectionResult",
    "RemoteFile",
    "RemoteFileHandle",
    # Registry
    "DEFAULT_SOURCE_ID",
    "SOURCES",
    "SourceDescriptor",
    "create_adapter",
    "find_descriptor",
    "get_descriptor",
    "list_descriptors",
    # Implementations
    "LocalStoreAdapter",
    "SpreadsheetFormAdapter",
    "GistAdapter",
    "RepoFileAdapter",
    "HostedBinAdapter",
    "HostedEndpointAdapter",
]
