"""
Configuration for the datasync package.

Uses pydantic-settings for environment variable loading. Every setting can
be overridden with a ``DATASYNC_`` prefixed variable, e.g.
``DATASYNC_APP_ID=myapp``.

Invariants:
    - All settings have sensible defaults for local development
    - The default origin is a loopback URL, so auto-discovery never reaches
      the network unless a public origin is configured
    - Secrets are never logged

How to change safely:
    - Add new settings with defaults that keep existing storage keys stable
    - Changing app_id moves every persisted key; treat it as a migration
"""

from __future__ import annotations

import logging
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings

from .sources.repo_file import RemoteFileHandle

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Datasync configuration loaded from environment."""

    # Identity / namespacing
    app_id: str = Field(default="demotemplate", description="Application identifier")
    storage_prefix: str = Field(
        default="demoapp", description="Namespace for record keys in local storage"
    )

    # Local durable storage
    data_dir: str = Field(default="~/.local/share/datasync", description="Local data directory")
    storage_quota_bytes: int = Field(
        default=5 * 1024 * 1024, description="Maximum bytes held in local storage"
    )

    # Remote endpoints
    http_timeout: float = Field(default=30.0, description="HTTP timeout seconds")
    github_api_url: str = Field(default="https://api.github.com")
    github_raw_url: str = Field(default="https://raw.githubusercontent.com")
    jsonbin_api_url: str = Field(default="https://api.jsonbin.io/v3")
    npoint_api_url: str = Field(default="https://api.npoint.io")

    # Shared default snapshot location (auto-discovery)
    default_remote_owner: str = Field(default="AIUNITES")
    default_remote_repo: str = Field(default="AIUNITES-database-sync")
    default_remote_path: str = Field(default="data/app.db")
    default_remote_branch: str = Field(default="main")

    # Where this process believes it is served from
    origin_url: str = Field(
        default="http://localhost/", description="Execution context used by auto-discovery"
    )

    # Query history
    history_limit: int = Field(default=50, description="History entries retained")
    history_display_limit: int = Field(default=20, description="History entries displayed")

    # Logging
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="text", description="Log format (json, text)")

    model_config = {"env_prefix": "DATASYNC_"}

    @property
    def sync_state_key(self) -> str:
        """Local key holding the active source and all source configs."""
        return f"{self.app_id}_datasource_config"

    @property
    def snapshot_key(self) -> str:
        """Local key holding the base64 database snapshot."""
        return f"{self.app_id}_sqldb"

    @property
    def history_key(self) -> str:
        """Local key holding the query history."""
        return f"{self.app_id}_sql_history"

    @property
    def location_key(self) -> str:
        """Local key holding the database location config."""
        return f"{self.app_id}_db_location"

    @property
    def local_store_path(self) -> Path:
        """SQLite file backing local durable storage."""
        return Path(self.data_dir).expanduser() / "localstore.db"

    @property
    def default_remote_location(self) -> RemoteFileHandle:
        """Well-known shared snapshot location."""
        return RemoteFileHandle(
            owner=self.default_remote_owner,
            repo_name=self.default_remote_repo,
            path=self.default_remote_path,
            branch=self.default_remote_branch,
        )

    def log_config(self) -> None:
        """Log configuration (no secrets are held here)."""
        logger.info(
            "Datasync configuration loaded",
            extra={
                "app_id": self.app_id,
                "storage_prefix": self.storage_prefix,
                "local_store": str(self.local_store_path),
                "origin_url": self.origin_url,
                "default_remote": f"{self.default_remote_owner}/{self.default_remote_repo}"
                f"/{self.default_remote_path}",
                "log_level": self.log_level,
            },
        )
