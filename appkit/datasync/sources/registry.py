"""
Source registry.

Static catalog of every adapter kind: its id, display label, configuration
fields, which of them are required, their defaults, and the adapter class
that implements it. Dispatch goes through a registry lookup, never through a
branch on the source id.

Invariants:
    - Descriptors are immutable and defined once per adapter kind
    - Source ids are the keys persisted in SyncState; never rename them
    - required_fields is a subset of config_fields

How to change safely:
    - Add a descriptor and adapter class together
    - Adding a required field breaks stored configs that lack it; prefer a
      default instead
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Tuple, Type

from ..errors import UnknownSourceError
from .base import AdapterContext, BaseAdapter
from .gist import GistAdapter
from .hosted_bin import HostedBinAdapter
from .hosted_endpoint import HostedEndpointAdapter
from .local import LocalStoreAdapter
from .repo_file import DEFAULT_BRANCH, DEFAULT_DOCUMENT_PATH, RepoFileAdapter
from .spreadsheet import SpreadsheetFormAdapter

logger = logging.getLogger(__name__)

DEFAULT_SOURCE_ID = "localStorage"


@dataclass(frozen=True)
class SourceDescriptor:
    """Identity and configuration shape of one adapter kind.

    Attributes:
        id: Stable identifier persisted in SyncState
        display_label: Human readable name
        icon: Short glyph for status output
        requires_config: Whether the source can be used without configuration
        config_fields: Every field the source understands
        required_fields: Fields that must be non-empty to activate
        defaults: Values used for optional fields left blank
        adapter_class: Implementation
    """

    id: str
    display_label: str
    icon: str
    requires_config: bool
    adapter_class: Type[BaseAdapter]
    config_fields: Tuple[str, ...] = ()
    required_fields: Tuple[str, ...] = ()
    defaults: Mapping[str, str] = field(default_factory=dict)

    def apply_defaults(self, config: Mapping[str, str]) -> Dict[str, str]:
        """Strip values and fill blank optional fields with defaults."""
        result = {name: str(value).strip() for name, value in config.items()}
        for name, default in self.defaults.items():
            if not result.get(name):
                result[name] = default
        return result

    def missing_required(self, config: Mapping[str, str]) -> List[str]:
        """Required fields absent or blank in config."""
        return [
            name for name in self.required_fields if not str(config.get(name) or "").strip()
        ]

    def to_dict(self) -> Dict[str, object]:
        """Convert to dictionary for display."""
        return {
            "id": self.id,
            "label": self.display_label,
            "icon": self.icon,
            "requiresConfig": self.requires_config,
            "fields": list(self.config_fields),
            "required": list(self.required_fields),
        }


SOURCES: Dict[str, SourceDescriptor] = {
    d.id: d
    for d in (
        SourceDescriptor(
            id="localStorage",
            display_label="Browser Storage",
            icon="💾",
            requires_config=False,
            adapter_class=LocalStoreAdapter,
        ),
        SourceDescriptor(
            id="googleSheets",
            display_label="Google Sheets",
            icon="📊",
            requires_config=True,
            adapter_class=SpreadsheetFormAdapter,
            config_fields=("formUrl", "apiUrl", "prefix"),
            required_fields=("formUrl", "apiUrl"),
            defaults={"prefix": "USER"},
        ),
        SourceDescriptor(
            id="githubGist",
            display_label="GitHub Gist",
            icon="📝",
            requires_config=True,
            adapter_class=GistAdapter,
            config_fields=("gistId", "filename", "token"),
            required_fields=("gistId",),
            defaults={"filename": "data.json"},
        ),
        SourceDescriptor(
            id="githubRepo",
            display_label="GitHub Repo",
            icon="📁",
            requires_config=True,
            adapter_class=RepoFileAdapter,
            config_fields=("owner", "repo", "path", "branch", "token"),
            required_fields=("owner", "repo"),
            defaults={"path": DEFAULT_DOCUMENT_PATH, "branch": DEFAULT_BRANCH},
        ),
        SourceDescriptor(
            id="jsonbin",
            display_label="JSONbin.io",
            icon="🗃️",
            requires_config=True,
            adapter_class=HostedBinAdapter,
            config_fields=("binId", "apiKey"),
            required_fields=("binId", "apiKey"),
        ),
        SourceDescriptor(
            id="npoint",
            display_label="npoint.io",
            icon="📡",
            requires_config=True,
            adapter_class=HostedEndpointAdapter,
            config_fields=("endpointId",),
            required_fields=("endpointId",),
        ),
    )
}


def get_descriptor(source_id: str) -> SourceDescriptor:
    """Look up a descriptor.

    Raises:
        UnknownSourceError: If no source is registered under the id
    """
    try:
        return SOURCES[source_id]
    except KeyError:
        raise UnknownSourceError(source_id, list(SOURCES)) from None


def find_descriptor(source_id: str) -> Optional[SourceDescriptor]:
    """Look up a descriptor, None when unknown."""
    return SOURCES.get(source_id)


def list_descriptors() -> List[SourceDescriptor]:
    """All descriptors in catalog order."""
    return list(SOURCES.values())


def create_adapter(
    source_id: str,
    config: Mapping[str, str],
    context: AdapterContext,
) -> BaseAdapter:
    """Instantiate the adapter registered for source_id.

    Args:
        source_id: Descriptor id
        config: Stored configuration (may be empty)
        context: Shared resources

    Returns:
        Adapter bound to config

    Raises:
        UnknownSourceError: If the id is not registered
    """
    return get_descriptor(source_id).adapter_class(config, context)
