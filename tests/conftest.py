"""
Shared fixtures: settings, in-memory storage, a client routed to
FakeRemote, and a fully wired AppContext.
"""

import httpx
import pytest

from appkit.datasync.config import Settings
from appkit.datasync.context import AppContext
from appkit.datasync.local.store import MemoryLocalStorage
from appkit.datasync.sources.base import AdapterContext

from tests.fakes import FakeRemote


@pytest.fixture
def remote():
    """Fresh fake remote."""
    return FakeRemote()


@pytest.fixture
def http(remote):
    """Async client routed to the fake remote."""
    return httpx.AsyncClient(transport=httpx.MockTransport(remote.handler))


@pytest.fixture
def storage():
    """Empty in-memory local storage."""
    return MemoryLocalStorage()


@pytest.fixture
def settings(tmp_path):
    """Settings for a local-development origin."""
    return Settings(app_id="testapp", storage_prefix="testapp", data_dir=str(tmp_path))


@pytest.fixture
def adapter_context(http, storage, settings):
    return AdapterContext(http=http, storage=storage, settings=settings)


@pytest.fixture
def app(settings, storage, http):
    """Fully wired application context over the fakes."""
    return AppContext.from_settings(settings, storage=storage, http=http)
