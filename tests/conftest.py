"""Shared pytest fixtures for session cleanup tests."""

import pytest
import tempfile
import shutil

from mcp_server_botsess.bot_filter import clear_filter_cache
from mcp_server_botsess.config import StaticConfigProvider
from mcp_server_botsess.in_memory_session_store import InMemorySessionStore
from tests.utils.session_blobs import FILTER_LINES


@pytest.fixture(autouse=True)
def fresh_filter_cache():
    """Start every test with an empty compiled-filter cache."""
    clear_filter_cache()
    yield
    clear_filter_cache()


@pytest.fixture
def temp_dir():
    """Create a temporary directory for testing."""
    temp_dir = tempfile.mkdtemp()
    yield temp_dir
    shutil.rmtree(temp_dir, ignore_errors=True)


@pytest.fixture
def config_provider():
    """Static configuration: shop-like bot filter, one hour lifetime."""
    return StaticConfigProvider(FILTER_LINES, session_lifetime_seconds=3600)


@pytest.fixture
def memory_store():
    """Create an empty in-memory session store."""
    return InMemorySessionStore()
