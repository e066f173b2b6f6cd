"""
Integration tests for the full synchronization flow.

Tests cover:
- Two application instances sharing one repository snapshot
- Concurrent edits detected by the hash precondition
- Data source switching alongside the embedded database
- CLI command dispatch over a wired context
"""

import argparse
import json

import pytest

from appkit.datasync.bootstrap import BootstrapOutcome
from appkit.datasync.config import Settings
from appkit.datasync.context import AppContext
from appkit.datasync.errors import PreconditionMismatchError
from appkit.datasync.local.store import MemoryLocalStorage, SqliteLocalStorage
from appkit.datasync.main import build_parser, parse_assignments, run_command

REMOTE = {"owner": "me", "repo": "sync", "token": "t0k"}


def make_app(tmp_path, http, name, storage=None):
    settings = Settings(app_id="quiz", data_dir=str(tmp_path / name))
    return AppContext.from_settings(settings, storage=storage or MemoryLocalStorage(), http=http)


class TestSharedSnapshot:
    """Two devices syncing through the repository file."""

    @pytest.mark.asyncio
    async def test_device_b_sees_device_a_changes(self, tmp_path, http, remote):
        device_a = make_app(tmp_path, http, "a")
        device_b = make_app(tmp_path, http, "b")

        device_a.users.snapshots.create_new()
        device_a.users.ensure_users_table()
        device_a.users.register({"username": "alice", "password": "pw"})
        await device_a.snapshots.push_remote(REMOTE)

        await device_b.snapshots.pull_remote(REMOTE)

        assert device_b.users.authenticate("alice", "pw")["username"] == "alice"

    @pytest.mark.asyncio
    async def test_concurrent_push_is_rejected(self, tmp_path, http, remote):
        device_a = make_app(tmp_path, http, "a")
        device_b = make_app(tmp_path, http, "b")
        device_a.snapshots.execute("CREATE TABLE scores (v INTEGER)")
        await device_a.snapshots.push_remote(REMOTE)

        await device_b.snapshots.pull_remote(REMOTE)
        device_a.snapshots.execute("INSERT INTO scores VALUES (1)")
        device_b.snapshots.execute("INSERT INTO scores VALUES (2)")

        await device_a.snapshots.push_remote(REMOTE, expected_hash=device_a.snapshots.remote_hash)
        after_a = remote.repo_file("me", "sync", "data/app.db")

        with pytest.raises(PreconditionMismatchError):
            await device_b.snapshots.push_remote(
                REMOTE, expected_hash=device_b.snapshots.remote_hash
            )
        assert remote.repo_file("me", "sync", "data/app.db") == after_a

        # Refresh, reapply, retry
        await device_b.snapshots.pull_remote(REMOTE)
        device_b.snapshots.execute("INSERT INTO scores VALUES (2)")
        await device_b.snapshots.push_remote(REMOTE, expected_hash=device_b.snapshots.remote_hash)

        await device_a.snapshots.pull_remote(REMOTE)
        rows = device_a.snapshots.execute("SELECT v FROM scores ORDER BY v").rows
        assert rows == [(1,), (2,)]

    @pytest.mark.asyncio
    async def test_restart_restores_from_disk(self, tmp_path, http, remote):
        store_path = tmp_path / "disk" / "localstore.db"
        first = make_app(tmp_path, http, "a", storage=SqliteLocalStorage(store_path))
        first.snapshots.execute("CREATE TABLE items (name TEXT)")
        first.snapshots.execute("INSERT INTO items VALUES ('persisted')")
        await first.manager.activate("localStorage", {})
        await first.manager.write("items", [{"id": 1}])

        second = make_app(tmp_path, http, "b", storage=SqliteLocalStorage(store_path))

        assert await second.bootstrap() is BootstrapOutcome.LOCAL_SNAPSHOT
        assert second.snapshots.execute("SELECT name FROM items").rows == [("persisted",)]
        assert await second.manager.read("items") == [{"id": 1}]
        assert remote.requests == []


class TestSourceSwitching:
    """Record sets move between sources without losing configuration."""

    @pytest.mark.asyncio
    async def test_switch_and_back(self, app, remote):
        remote.endpoints["e1"] = []
        await app.manager.activate("localStorage", {})
        await app.manager.write("items", [{"id": 1}])

        await app.manager.activate("npoint", {"endpointId": "e1"})
        await app.manager.write("items", [{"id": 2}])
        await app.manager.activate("localStorage", {})

        assert await app.manager.read("items") == [{"id": 1}]
        assert app.manager.state.config_for("npoint") == {"endpointId": "e1"}
        assert remote.endpoints["e1"] == [{"id": 2}]


class TestCommandLine:
    """run_command over a wired context."""

    @pytest.fixture
    def parser(self):
        return build_parser()

    async def run(self, parser, app, capsys, *argv):
        code = await run_command(parser.parse_args(list(argv)), app)
        out = capsys.readouterr().out
        return code, json.loads(out)

    @pytest.mark.asyncio
    async def test_write_read(self, parser, app, capsys):
        code, result = await self.run(parser, app, capsys, "write", "items", '[{"id": 1}]')
        assert code == 0
        assert result == {"success": True}

        code, result = await self.run(parser, app, capsys, "read", "items")
        assert result == [{"id": 1}]

    @pytest.mark.asyncio
    async def test_query_and_history(self, parser, app, capsys):
        await self.run(parser, app, capsys, "query", "CREATE TABLE t (x); INSERT INTO t VALUES (1);", "--script")
        code, result = await self.run(parser, app, capsys, "query", "SELECT x FROM t")

        assert code == 0
        assert result["columns"] == ["x"]
        assert result["rows"] == [[1]]

        _, history = await self.run(parser, app, capsys, "history")
        assert history[0]["query"] == "SELECT x FROM t"

    @pytest.mark.asyncio
    async def test_activate_failure_exit_code(self, parser, app, capsys):
        code, result = await self.run(
            parser, app, capsys, "activate", "npoint", "--set", "endpointId=missing"
        )
        assert code == 1
        assert result["success"] is False

    @pytest.mark.asyncio
    async def test_sources_marks_active(self, parser, app, capsys):
        _, sources = await self.run(parser, app, capsys, "sources")
        active = [s["id"] for s in sources if s["active"]]
        assert active == ["localStorage"]

    @pytest.mark.asyncio
    async def test_push_and_pull(self, parser, app, capsys, remote):
        await self.run(parser, app, capsys, "query", "CREATE TABLE t (x)")
        code, pushed = await self.run(
            parser, app, capsys, "push", "--set", "owner=me", "--set", "repo=sync", "--set", "token=t0k"
        )
        assert code == 0
        assert remote.repo_file("me", "sync", "data/app.db") is not None

        code, pulled = await self.run(parser, app, capsys, "pull", "--set", "owner=me", "--set", "repo=sync")
        assert pulled["sha"] == pushed["sha"]
        assert pulled["tables"] == ["t"]

    @pytest.mark.asyncio
    async def test_status(self, parser, app, capsys):
        code, status = await self.run(parser, app, capsys, "status")
        assert code == 0
        assert status["bootstrap"] == "local_development"
        assert status["location"] == "browser"

    def test_bad_assignment_rejected(self, parser):
        args = parser.parse_args(["test", "npoint", "--set", "novalue"])
        with pytest.raises(argparse.ArgumentTypeError):
            parse_assignments(args.set)
