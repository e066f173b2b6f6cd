"""
Unit tests for the app-scoped user directory.

Tests cover:
- Table creation and legacy migration
- Registration and duplicate detection per app
- Authentication by username or email
- Listing and status counts
"""

import pytest

from appkit.datasync.engine.snapshot import SnapshotManager
from appkit.datasync.engine.users import UserDirectory
from appkit.datasync.errors import SnapshotNotLoadedError, UserExistsError


@pytest.fixture
def snapshots(app):
    app.snapshots.create_new()
    return app.snapshots


@pytest.fixture
def users(snapshots):
    directory = UserDirectory(snapshots, "quiz")
    directory.ensure_users_table()
    return directory


class TestUserDirectory:
    """Tests for UserDirectory."""

    def test_nothing_loaded(self, app):
        directory = UserDirectory(app.snapshots, "quiz")
        assert directory.ensure_users_table() is False
        assert directory.authenticate("a", "b") is None
        assert directory.list_for_app() == []
        assert directory.app_status().loaded is False
        with pytest.raises(SnapshotNotLoadedError):
            directory.register({"username": "a", "password": "b"})

    def test_ensure_table_is_idempotent(self, users, snapshots):
        assert "users" in snapshots.tables()
        assert users.ensure_users_table() is False

    def test_legacy_table_gets_app_column(self, snapshots):
        snapshots.execute("CREATE TABLE users (id INTEGER PRIMARY KEY, username TEXT, password TEXT)")
        snapshots.execute("INSERT INTO users (username, password) VALUES ('old', 'pw')")

        directory = UserDirectory(snapshots, "quiz")
        assert directory.ensure_users_table() is True

        rows = snapshots.execute("SELECT username, app FROM users").as_dicts()
        assert rows == [{"username": "old", "app": "quiz"}]

    def test_register_and_get(self, users):
        user = users.register(
            {"username": "Alice", "email": "Alice@Example.com", "password": "pw", "firstName": "A"}
        )

        assert user["username"] == "alice"
        assert user["email"] == "alice@example.com"
        assert user["app"] == "quiz"
        assert user["badges"] == []
        assert user["role"] == "user"
        assert user["id"] is not None
        assert users.username_exists("ALICE") is True

    def test_register_without_email_returns_stored_row(self, users):
        first = users.register({"username": "Nomail", "password": "pw"})
        second = users.register({"username": "alsonomail", "password": "pw"})

        assert first["username"] == "nomail"
        assert first["email"] is None
        assert second["id"] != first["id"]

    def test_duplicate_username_in_same_app(self, users):
        users.register({"username": "bob", "password": "pw"})
        with pytest.raises(UserExistsError) as exc_info:
            users.register({"username": "Bob", "password": "other"})
        assert exc_info.value.code == "USER_EXISTS"

    def test_duplicate_email_in_same_app(self, users):
        users.register({"username": "bob", "email": "b@x.io", "password": "pw"})
        with pytest.raises(UserExistsError):
            users.register({"username": "robert", "email": "B@x.io", "password": "pw"})

    def test_same_username_in_other_app(self, users, snapshots):
        users.register({"username": "carol", "password": "pw"})
        other = UserDirectory(snapshots, "trivia")

        other.register({"username": "carol", "password": "different"})

        assert users.authenticate("carol", "different") is None
        assert other.authenticate("carol", "different")["app"] == "trivia"

    def test_authenticate_by_email_updates_last_login(self, users):
        users.register({"username": "dave", "email": "dave@x.io", "password": "pw"})

        user = users.authenticate("DAVE@x.io", "pw")

        assert user["username"] == "dave"
        assert user["lastLogin"] is not None
        assert user["lastLogin"] == users.get_by_username("dave")["lastLogin"]
        assert users.authenticate("dave", "wrong") is None

    def test_list_ordered_by_score(self, users, snapshots):
        for name in ("low", "high", "mid"):
            users.register({"username": name, "password": "pw"})
        snapshots.execute("UPDATE users SET totalScore = 90 WHERE username = 'high'")
        snapshots.execute("UPDATE users SET totalScore = 50 WHERE username = 'mid'")

        assert [u["username"] for u in users.list_for_app()] == ["high", "mid", "low"]

    def test_app_status_counts(self, users, snapshots):
        users.register({"username": "e", "password": "pw"})
        UserDirectory(snapshots, "trivia").register({"username": "f", "password": "pw"})

        status = users.app_status()

        assert status.loaded is True
        assert status.user_count == 1
        assert status.total_users == 2
        assert status.app == "quiz"

    def test_registration_is_autosaved(self, users, app):
        users.register({"username": "gina", "password": "pw"})

        reloaded = SnapshotManager(app.adapter_context, app.locations)
        assert reloaded.load_local() is True
        assert UserDirectory(reloaded, "quiz").username_exists("gina")
