"""
Unit tests for Settings and logging setup.
"""

import logging

import json_log_formatter
import pytest

from appkit.datasync.config import Settings
from appkit.datasync.main import parse_assignments, setup_logging


class TestSettings:
    """Tests for Settings."""

    def test_defaults(self):
        settings = Settings()
        assert settings.app_id == "demotemplate"
        assert settings.history_limit == 50
        assert settings.history_display_limit == 20
        assert settings.storage_quota_bytes == 5 * 1024 * 1024

    def test_storage_keys_namespaced_by_app(self):
        settings = Settings(app_id="quiz")
        assert settings.sync_state_key == "quiz_datasource_config"
        assert settings.snapshot_key == "quiz_sqldb"
        assert settings.history_key == "quiz_sql_history"
        assert settings.location_key == "quiz_db_location"

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("DATASYNC_APP_ID", "fromenv")
        monkeypatch.setenv("DATASYNC_HISTORY_LIMIT", "7")
        settings = Settings()
        assert settings.app_id == "fromenv"
        assert settings.history_limit == 7

    def test_default_remote_location(self):
        handle = Settings().default_remote_location
        assert str(handle) == "AIUNITES/AIUNITES-database-sync@main:data/app.db"
        assert handle.content_hash is None

    def test_local_store_path(self, tmp_path):
        settings = Settings(data_dir=str(tmp_path))
        assert settings.local_store_path == tmp_path / "localstore.db"


class TestLogging:
    """Tests for setup_logging."""

    @pytest.fixture(autouse=True)
    def restore_root_logger(self):
        root = logging.getLogger()
        handlers, level = list(root.handlers), root.level
        yield
        root.handlers = handlers
        root.setLevel(level)

    def test_json_format(self):
        setup_logging(Settings(log_format="json", log_level="debug"))
        root = logging.getLogger()
        assert root.level == logging.DEBUG
        assert isinstance(root.handlers[0].formatter, json_log_formatter.JSONFormatter)
        assert logging.getLogger("httpx").level == logging.WARNING

    def test_text_format(self):
        setup_logging(Settings(log_format="text", log_level="WARNING"))
        root = logging.getLogger()
        assert root.level == logging.WARNING
        assert not isinstance(root.handlers[0].formatter, json_log_formatter.JSONFormatter)


class TestParseAssignments:
    """Tests for CLI key=value parsing."""

    def test_parses_pairs(self):
        assert parse_assignments(["owner=me", "token=a=b"]) == {"owner": "me", "token": "a=b"}

    def test_empty(self):
        assert parse_assignments(None) == {}
