"""
Unit tests for the backend adapters against the fake remote.

Tests cover:
- Local store round trip and namespacing
- Best-effort spreadsheet writes
- Gist, hosted bin and hosted endpoint read/write/probe
- Repository file optimistic writes
- Failure policy: read -> None, write -> False, probe -> failed result
"""

import base64
import json

import pytest

from appkit.datasync.errors import NetworkFailureError, PreconditionMismatchError
from appkit.datasync.local.store import MemoryLocalStorage
from appkit.datasync.sources import (
    GistAdapter,
    HostedBinAdapter,
    HostedEndpointAdapter,
    LocalStoreAdapter,
    RepoFileAdapter,
    SpreadsheetFormAdapter,
)
from appkit.datasync.sources.base import AdapterContext

from tests.fakes import FORM_URL, SCRIPT_URL, blob_sha


class TestLocalStoreAdapter:
    """Tests for LocalStoreAdapter."""

    @pytest.mark.asyncio
    async def test_round_trip(self, adapter_context):
        adapter = LocalStoreAdapter({}, adapter_context)
        value = [{"id": 1, "name": "a", "tags": ["x"], "score": 1.5}]

        assert await adapter.write("users", value) is True
        assert await adapter.read("users") == value

    @pytest.mark.asyncio
    async def test_keys_are_prefixed(self, adapter_context, storage):
        adapter = LocalStoreAdapter({}, adapter_context)
        await adapter.write("items", {"a": 1})
        assert json.loads(storage.get_item("testapp_items")) == {"a": 1}

    @pytest.mark.asyncio
    async def test_read_missing_and_corrupt(self, adapter_context, storage):
        adapter = LocalStoreAdapter({}, adapter_context)
        assert await adapter.read("missing") is None

        storage.set_item("testapp_broken", "{not json")
        assert await adapter.read("broken") is None

    @pytest.mark.asyncio
    async def test_quota_exceeded_write_returns_false(self, http, settings):
        context = AdapterContext(http=http, storage=MemoryLocalStorage(quota_bytes=32), settings=settings)
        adapter = LocalStoreAdapter({}, context)
        assert await adapter.write("users", ["x" * 100]) is False

    @pytest.mark.asyncio
    async def test_probe_always_succeeds(self, adapter_context, remote):
        result = await LocalStoreAdapter({}, adapter_context).test_connection()
        assert result.success is True
        assert remote.requests == []


class TestSpreadsheetFormAdapter:
    """Tests for SpreadsheetFormAdapter."""

    @pytest.fixture
    def adapter(self, adapter_context):
        return SpreadsheetFormAdapter({"formUrl": FORM_URL, "apiUrl": SCRIPT_URL}, adapter_context)

    @pytest.mark.asyncio
    async def test_write_submits_form(self, adapter, remote):
        assert await adapter.write("users", [{"id": 1}]) is True
        assert remote.form_submissions == [{"entry.0": '[{"id": 1}]'}]

    @pytest.mark.asyncio
    async def test_write_ignores_response_status(self, adapter, remote):
        remote.overrides[("POST", "forms.example.com", "/formResponse")] = 500
        assert await adapter.write("users", []) is True

    @pytest.mark.asyncio
    async def test_write_fails_on_transport_error(self, adapter, remote):
        remote.offline = True
        assert await adapter.write("users", []) is False

    @pytest.mark.asyncio
    async def test_read_sends_action_and_key(self, adapter, remote):
        remote.sheet_rows = [["USER", "alice"]]
        assert await adapter.read("users") == {"rows": [["USER", "alice"]]}
        params = remote.requests[-1].url.params
        assert params["action"] == "get"
        assert params["key"] == "users"

    @pytest.mark.asyncio
    async def test_probe(self, adapter, remote):
        assert (await adapter.test_connection()).message == "Connected to Google Sheets API"

        remote.overrides[("GET", "script.example.com", "/macros/exec")] = 503
        result = await adapter.test_connection()
        assert result.success is False
        assert result.message == "Failed to connect"


class TestGistAdapter:
    """Tests for GistAdapter."""

    @pytest.fixture
    def gist(self, remote):
        remote.gists["g1"] = {"data.json": json.dumps({"items": [1, 2]})}
        return "g1"

    @pytest.mark.asyncio
    async def test_read_configured_file(self, adapter_context, gist):
        adapter = GistAdapter({"gistId": gist, "filename": "data.json"}, adapter_context)
        assert await adapter.read("items") == {"items": [1, 2]}

    @pytest.mark.asyncio
    async def test_filename_defaults_to_key(self, adapter_context, gist, remote):
        remote.gists[gist]["users.json"] = "[]"
        adapter = GistAdapter({"gistId": gist}, adapter_context)
        assert await adapter.read("users") == []

    @pytest.mark.asyncio
    async def test_write_requires_token(self, adapter_context, gist, remote):
        adapter = GistAdapter({"gistId": gist}, adapter_context)
        assert await adapter.write("items", [3]) is False
        assert remote.requests == []

    @pytest.mark.asyncio
    async def test_write_replaces_only_target_file(self, adapter_context, gist, remote):
        remote.gists[gist]["other.txt"] = "keep"
        adapter = GistAdapter(
            {"gistId": gist, "filename": "data.json", "token": "t0k"}, adapter_context
        )

        assert await adapter.write("items", {"items": [3]}) is True

        assert json.loads(remote.gists[gist]["data.json"]) == {"items": [3]}
        assert remote.gists[gist]["other.txt"] == "keep"
        assert remote.requests[-1].headers["Authorization"] == "token t0k"

    @pytest.mark.asyncio
    async def test_missing_gist(self, adapter_context):
        adapter = GistAdapter({"gistId": "nope"}, adapter_context)
        assert await adapter.read("items") is None
        result = await adapter.test_connection()
        assert result.success is False
        assert result.message == "Failed: 404"

    @pytest.mark.asyncio
    async def test_probe_without_id_makes_no_request(self, adapter_context, remote):
        result = await GistAdapter({}, adapter_context).test_connection()
        assert result.success is False
        assert "gistId" in result.message
        assert remote.requests == []


class TestRepoFileAdapter:
    """Tests for RepoFileAdapter."""

    @pytest.fixture
    def config(self):
        return {"owner": "me", "repo": "data", "token": "t0k"}

    @pytest.mark.asyncio
    async def test_write_creates_file_without_sha(self, adapter_context, remote, config):
        adapter = RepoFileAdapter(config, adapter_context)

        assert await adapter.write("items", [{"id": 1}]) is True

        put = remote.requests_to("PUT", "/contents/data/database.json")[0]
        body = json.loads(put.content)
        assert "sha" not in body
        assert body["branch"] == "main"
        assert json.loads(base64.b64decode(body["content"])) == [{"id": 1}]

    @pytest.mark.asyncio
    async def test_update_sends_current_sha(self, adapter_context, remote, config):
        old_sha = remote.put_repo_file("me", "data", "data/database.json", b"[]")
        adapter = RepoFileAdapter(config, adapter_context)

        assert await adapter.write("items", [1]) is True

        body = json.loads(remote.requests_to("PUT", "/contents/")[0].content)
        assert body["sha"] == old_sha
        assert json.loads(remote.repo_file("me", "data", "data/database.json")) == [1]

    @pytest.mark.asyncio
    async def test_read_uses_raw_file(self, adapter_context, remote, config):
        remote.put_repo_file("me", "data", "data/database.json", b'{"a": 1}')
        adapter = RepoFileAdapter(config, adapter_context)

        assert await adapter.read("anything") == {"a": 1}
        assert remote.requests[-1].url.host == "raw.githubusercontent.com"

    @pytest.mark.asyncio
    async def test_fetch_file_absent_returns_none(self, adapter_context, config):
        adapter = RepoFileAdapter(config, adapter_context)
        assert await adapter.fetch_file() is None
        assert await adapter.current_hash() is None

    @pytest.mark.asyncio
    async def test_fetch_file_returns_content_and_hash(self, adapter_context, remote, config):
        content = bytes(range(256)) * 4
        sha = remote.put_repo_file("me", "data", "data/database.json", content)

        fetched = await RepoFileAdapter(config, adapter_context).fetch_file()

        assert fetched.content == content
        assert fetched.content_hash == sha

    @pytest.mark.asyncio
    async def test_stale_hash_rejected(self, adapter_context, remote, config):
        remote.put_repo_file("me", "data", "data/database.json", b"v2")
        adapter = RepoFileAdapter(config, adapter_context)
        stale = adapter.handle.with_hash(blob_sha(b"v1"))

        with pytest.raises(PreconditionMismatchError):
            await adapter.put_file(stale, b"v3", "Update")

        assert remote.repo_file("me", "data", "data/database.json") == b"v2"

    @pytest.mark.asyncio
    async def test_metadata_failure_aborts_write(self, adapter_context, remote, config):
        remote.put_repo_file("me", "data", "data/database.json", b"[]")
        remote.overrides[("GET", "api.github.com", "/repos/me/data/contents/data/database.json")] = 500
        adapter = RepoFileAdapter(config, adapter_context)

        with pytest.raises(NetworkFailureError) as exc_info:
            await adapter.write_file(b"[1]", "Update")

        assert exc_info.value.status_code == 500
        assert remote.requests_to("PUT", "/contents/") == []
        assert await adapter.write("items", [1]) is False

    @pytest.mark.asyncio
    async def test_write_without_token_is_skipped(self, adapter_context, remote):
        adapter = RepoFileAdapter({"owner": "me", "repo": "data"}, adapter_context)
        assert await adapter.write("items", []) is False
        assert remote.requests == []

    @pytest.mark.asyncio
    async def test_probe(self, adapter_context, remote, config):
        remote.repos.add(("me", "data"))
        assert (await RepoFileAdapter(config, adapter_context).test_connection()).success

        result = await RepoFileAdapter({"owner": "me", "repo": "gone"}, adapter_context).test_connection()
        assert result.success is False
        assert result.message == "Failed: 404"


class TestHostedBinAdapter:
    """Tests for HostedBinAdapter."""

    @pytest.mark.asyncio
    async def test_round_trip_unwraps_record(self, adapter_context, remote):
        adapter = HostedBinAdapter({"binId": "b1", "apiKey": remote.bin_key}, adapter_context)

        assert await adapter.write("items", {"items": [1]}) is True
        assert await adapter.read("items") == {"items": [1]}
        assert remote.requests[-1].url.path == "/v3/b/b1/latest"

    @pytest.mark.asyncio
    async def test_wrong_key(self, adapter_context, remote):
        remote.bins["b1"] = {"a": 1}
        adapter = HostedBinAdapter({"binId": "b1", "apiKey": "wrong"}, adapter_context)

        assert await adapter.read("items") is None
        assert await adapter.write("items", {}) is False
        assert (await adapter.test_connection()).message == "Failed: 401"
        assert remote.bins["b1"] == {"a": 1}


class TestHostedEndpointAdapter:
    """Tests for HostedEndpointAdapter."""

    @pytest.mark.asyncio
    async def test_round_trip(self, adapter_context):
        adapter = HostedEndpointAdapter({"endpointId": "e1"}, adapter_context)
        assert await adapter.write("items", [1, 2, 3]) is True
        assert await adapter.read("items") == [1, 2, 3]
        assert (await adapter.test_connection()).message == "Connected to npoint.io"

    @pytest.mark.asyncio
    async def test_offline(self, adapter_context, remote):
        remote.offline = True
        adapter = HostedEndpointAdapter({"endpointId": "e1"}, adapter_context)

        assert await adapter.read("items") is None
        assert await adapter.write("items", []) is False
        result = await adapter.test_connection()
        assert result.success is False
        assert result.message.startswith("Failed:")

    @pytest.mark.asyncio
    async def test_unserializable_value_returns_false(self, adapter_context, remote):
        adapter = HostedEndpointAdapter({"endpointId": "e1"}, adapter_context)
        assert await adapter.write("items", {"when": object()}) is False
        assert remote.requests == []
