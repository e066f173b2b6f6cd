"""
App-scoped user directory inside the embedded database.

Several applications share one database snapshot; every user row carries
the ``app`` column and every lookup is filtered by it. All mutations go
through the snapshot manager, so they are autosaved like any other query.

Table schema:
    users:
        - id INTEGER PRIMARY KEY AUTOINCREMENT
        - app TEXT NOT NULL
        - username, email, password, firstName, lastName, role
        - totalScore, gamesPlayed, correctAnswers, wrongAnswers, bestStreak
        - badges TEXT (JSON list)
        - createdAt, lastLogin
        - UNIQUE (app, username), UNIQUE (app, email)

Passwords are stored as given; credential protection is outside this layer.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from ..errors import SnapshotNotLoadedError, UserExistsError
from .snapshot import SnapshotManager

logger = logging.getLogger(__name__)

USERS_TABLE_SQL = """
CREATE TABLE users (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    app TEXT NOT NULL DEFAULT '{app_id}',
    username TEXT NOT NULL,
    email TEXT,
    password TEXT NOT NULL,
    firstName TEXT,
    lastName TEXT,
    role TEXT DEFAULT 'user',
    totalScore INTEGER DEFAULT 0,
    gamesPlayed INTEGER DEFAULT 0,
    correctAnswers INTEGER DEFAULT 0,
    wrongAnswers INTEGER DEFAULT 0,
    bestStreak INTEGER DEFAULT 0,
    badges TEXT DEFAULT '[]',
    createdAt TEXT DEFAULT CURRENT_TIMESTAMP,
    lastLogin TEXT,
    UNIQUE(app, username),
    UNIQUE(app, email)
)
"""


@dataclass
class AppStatus:
    """User counts for the current application."""

    loaded: bool
    has_database: bool
    user_count: int
    total_users: int
    app: str


def _decode_user(row: Dict[str, Any]) -> Dict[str, Any]:
    try:
        row["badges"] = json.loads(row.get("badges") or "[]")
    except (json.JSONDecodeError, TypeError):
        row["badges"] = []
    return row


class UserDirectory:
    """User records for one application id.

    Example:
        >>> users = UserDirectory(snapshots, app_id="demotemplate")
        >>> users.ensure_users_table()
        >>> users.register({"username": "alice", "password": "secret"})
        >>> users.authenticate("alice", "secret")["username"]
        'alice'
    """

    def __init__(self, snapshots: SnapshotManager, app_id: str) -> None:
        self.snapshots = snapshots
        self.app_id = app_id

    def _rows(self, sql: str, params: tuple = ()) -> List[Dict[str, Any]]:
        return self.snapshots.database.execute(sql, params).as_dicts()

    def ensure_users_table(self) -> bool:
        """Create the users table, or add the app column to a legacy one.

        Returns:
            True if the schema was changed
        """
        if not self.snapshots.is_loaded:
            return False
        db = self.snapshots.database
        if "users" not in db.tables():
            logger.info("[SQLDatabase] Creating users table with app column")
            # Schema text cannot be parameterized; app_id comes from settings
            self.snapshots.execute(USERS_TABLE_SQL.format(app_id=self.app_id.replace("'", "''")))
            return True

        columns = {row["name"] for row in db.execute("PRAGMA table_info(users)").as_dicts()}
        if "app" not in columns:
            logger.info("[SQLDatabase] Adding app column to existing users table")
            self.snapshots.execute(
                "ALTER TABLE users ADD COLUMN app TEXT NOT NULL DEFAULT '{}'".format(
                    self.app_id.replace("'", "''")
                )
            )
            return True
        return False

    def authenticate(self, username_or_email: str, password: str) -> Optional[Dict[str, Any]]:
        """Matching user (with lastLogin updated) or None."""
        if not self.snapshots.is_loaded:
            return None
        rows = self._rows(
            """
            SELECT * FROM users
            WHERE app = ?
            AND (LOWER(username) = LOWER(?) OR LOWER(email) = LOWER(?))
            AND password = ?
            """,
            (self.app_id, username_or_email, username_or_email, password),
        )
        if not rows:
            return None
        user = rows[0]
        self.snapshots.execute(
            "UPDATE users SET lastLogin = datetime('now') WHERE id = ?", (user["id"],)
        )
        user = self._rows("SELECT * FROM users WHERE id = ?", (user["id"],))[0]
        logger.info(f"[SQLDatabase] Auth successful: {user['username']} (app: {user['app']})")
        return _decode_user(user)

    def get_by_username(self, username: str) -> Optional[Dict[str, Any]]:
        if not self.snapshots.is_loaded:
            return None
        rows = self._rows(
            "SELECT * FROM users WHERE app = ? AND LOWER(username) = LOWER(?)",
            (self.app_id, username),
        )
        return _decode_user(rows[0]) if rows else None

    def username_exists(self, username: str) -> bool:
        return self.get_by_username(username) is not None

    def register(self, user: Dict[str, Any]) -> Dict[str, Any]:
        """Insert a new user for this app.

        Args:
            user: username, password and optional email, firstName, lastName

        Returns:
            The stored user

        Raises:
            SnapshotNotLoadedError: If no database is loaded
            UserExistsError: If the username or email is taken in this app
        """
        if not self.snapshots.is_loaded:
            raise SnapshotNotLoadedError("register a user")
        username = user["username"]
        # NULL keeps users without an email out of the (app, email) constraint
        email = (user.get("email") or "").strip().lower() or None
        if self.username_exists(username):
            raise UserExistsError(username, self.app_id)
        try:
            self.snapshots.execute(
                """
                INSERT INTO users (app, username, email, password, firstName, lastName, role, badges)
                VALUES (?, ?, ?, ?, ?, ?, 'user', '[]')
                """,
                (
                    self.app_id,
                    username.lower(),
                    email,
                    user["password"],
                    user.get("firstName") or "",
                    user.get("lastName") or "",
                ),
            )
        except sqlite3.IntegrityError as e:
            raise UserExistsError(username, self.app_id) from e
        logger.info(f"[SQLDatabase] User registered: {username} for app: {self.app_id}")
        rows = self._rows(
            "SELECT * FROM users WHERE app = ? AND username = ?", (self.app_id, username.lower())
        )
        return _decode_user(rows[0])

    def list_for_app(self) -> List[Dict[str, Any]]:
        """All users of this app, best score first."""
        if not self.snapshots.is_loaded:
            return []
        rows = self._rows(
            "SELECT * FROM users WHERE app = ? ORDER BY totalScore DESC", (self.app_id,)
        )
        return [_decode_user(row) for row in rows]

    def app_status(self) -> AppStatus:
        if not self.snapshots.is_loaded:
            return AppStatus(False, False, 0, 0, self.app_id)
        db = self.snapshots.database
        if "users" not in db.tables():
            return AppStatus(True, True, 0, 0, self.app_id)
        (total,) = db.execute("SELECT COUNT(*) FROM users").rows[0]
        (count,) = db.execute("SELECT COUNT(*) FROM users WHERE app = ?", (self.app_id,)).rows[0]
        return AppStatus(True, True, count, total, self.app_id)
