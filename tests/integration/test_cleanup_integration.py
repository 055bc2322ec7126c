"""
Integration tests for the cleanup sweep

Runs complete sweeps against the persistent stores, with real session blobs,
settings read from the environment and a second connection writing to the
same store while the sweep pages through it.
"""

import os
import tempfile
import time
from unittest.mock import patch

import pytest

from mcp_server_botsess.config import (
    EnvConfigProvider,
    StoreSettings,
    create_store,
    load_store_settings,
)
from mcp_server_botsess.errors import StoreError
from mcp_server_botsess.sqlite_session_store import SQLiteSessionStore
from mcp_server_botsess.storage_types import StoreBackend
from mcp_server_botsess.sweep_engine import run_cleanup
from tests.utils.session_blobs import make_record, session_blob

ENV = {
    "BOTSESS_FILTER": "^alexa\n^blitz\\.io\nyandex\n\ngooglebot\n",
    "BOTSESS_SESSION_LIFETIME": "3600",
}


def seed(store, now):
    """Forty sessions: 10 bots, 10 old humans, 15 fresh humans, 5 broken."""
    for i in range(10):
        store.add(
            make_record(f"bot-{i:02d}", now, "Mozilla/5.0 (compatible; YandexBot/3.0)")
        )
    for i in range(10):
        store.add(make_record(f"old-{i:02d}", now - 7200, "Mozilla/5.0 (X11)"))
    for i in range(15):
        agent = "Mozilla/5.0 (Windows)" if i % 3 else "Mozilla/5.0 (Mac)"
        store.add(make_record(f"usr-{i:02d}", now - 60, agent))
    for i in range(3):
        store.add(make_record(f"zzz-noagent-{i}", now, user_agent=None))
    store.add(make_record("zzz-garbage-0", now, raw_data="not base64 at all!"))
    store.add(
        make_record(
            "zzz-garbage-1",
            now,
            raw_data=session_blob("Mozilla/5.0 (X11)")[:-8],
        )
    )


class TestCleanupIntegration:
    """End-to-end sweeps over persistent stores."""

    @pytest.fixture
    def temp_store_dir(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            yield temp_dir

    @pytest.fixture(params=[StoreBackend.SQLITE, StoreBackend.DISKCACHE])
    def store_settings(self, request, temp_store_dir):
        path = os.path.join(temp_store_dir, "sessions")
        return StoreSettings(backend=request.param, path=path)

    def test_full_sweep(self, store_settings):
        now = int(time.time())
        with create_store(store_settings) as store:
            if isinstance(store, SQLiteSessionStore):
                store.ensure_schema()
            seed(store, now)

        with patch.dict(os.environ, ENV, clear=True):
            with create_store(store_settings) as store:
                result = run_cleanup(EnvConfigProvider(), store, batch_limit=7)
                remaining = store.count()

        assert result.total == 40
        assert result.removed_bots == 10
        assert result.removed_inactive == 10
        assert result.active == 15
        assert result.failures == 5
        assert result.agents == {"Mozilla/5.0 (Windows)": 10, "Mozilla/5.0 (Mac)": 5}
        assert remaining == 20

    def test_second_sweep_removes_nothing(self, store_settings):
        now = int(time.time())
        with create_store(store_settings) as store:
            if isinstance(store, SQLiteSessionStore):
                store.ensure_schema()
            seed(store, now)

        with patch.dict(os.environ, ENV, clear=True):
            with create_store(store_settings) as store:
                run_cleanup(EnvConfigProvider(), store)
                second = run_cleanup(EnvConfigProvider(), store)

        assert second.total == 20
        assert second.removed_bots == 0
        assert second.removed_inactive == 0
        assert second.active == 15
        assert second.failures == 5

    def test_store_selected_from_environment(self, temp_store_dir):
        db_path = os.path.join(temp_store_dir, "env.db")
        env = {
            "BOTSESS_STORE": "SQLite",
            "BOTSESS_DB_PATH": db_path,
            "BOTSESS_TABLE": "core_session",
        }
        with patch.dict(os.environ, env, clear=True):
            settings = load_store_settings()

        assert settings.backend is StoreBackend.SQLITE
        assert settings.table == "core_session"
        with create_store(settings) as store:
            store.ensure_schema()
            store.add(make_record("s1", 0))
            assert store.count() == 1

    def test_missing_table_raises_store_error(self, temp_store_dir):
        store = SQLiteSessionStore(os.path.join(temp_store_dir, "empty.db"))
        try:
            with patch.dict(os.environ, ENV, clear=True):
                with pytest.raises(StoreError, match="Cannot count sessions"):
                    run_cleanup(EnvConfigProvider(), store)
        finally:
            store.close()


class TestConcurrentSqliteWriter:
    """A second connection writes to the table between pages of the sweep."""

    @pytest.fixture
    def db_path(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            yield os.path.join(temp_dir, "sessions.db")

    def test_writer_between_pages(self, db_path):
        now = int(time.time())
        with SQLiteSessionStore(db_path) as setup:
            setup.ensure_schema()
            for i in range(10):
                setup.add(make_record(f"m{i:02d}", now - 7200, "Mozilla/5.0"))

        writer = SQLiteSessionStore(db_path)
        inserted = []

        class SweptStore(SQLiteSessionStore):
            def fetch_batch(self, after_id, limit):
                batch = super().fetch_batch(after_id, limit)
                # Other request handlers keep creating and expiring sessions
                key = f"a{len(inserted):02d}"
                writer.add(make_record(key, now, "Mozilla/5.0"))
                inserted.append(key)
                if batch:
                    writer.delete(batch[-1].session_id)
                return batch

        try:
            with patch.dict(os.environ, ENV, clear=True):
                with SweptStore(db_path) as store:
                    result = run_cleanup(EnvConfigProvider(), store, batch_limit=3)
                    remaining = store.count()
        finally:
            writer.close()

        assert result.total == 10
        assert result.processed <= result.total
        assert (
            result.removed_bots + result.removed_inactive + result.active + result.failures
            == result.processed
        )
        # The last record of every page was removed by the writer first
        assert result.failures >= 1
        assert result.active == 0
        assert remaining == len(inserted)
