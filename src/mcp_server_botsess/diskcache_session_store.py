"""
DiskCache-based Session Store Implementation

A filesystem-backed session store using the diskcache library. Sessions are
kept under ``session:<id>`` keys with ``(timestamp, session_data)`` values,
which lets the store share a cache directory with other data.

diskcache has no ordered key range query, so every page is cut from a sorted
scan of the session keys. That is fine for the cache sizes this store is
meant for; large tables belong in SQLiteSessionStore.
"""

from __future__ import annotations

import logging
import sqlite3
from pathlib import Path

import diskcache

from .base_session_store import SessionStore
from .errors import StoreError
from .storage_types import SessionRecord, coerce_timestamp

logger = logging.getLogger(__name__)

KEY_PREFIX = "session:"


class DiskCacheSessionStore(SessionStore):
    """Filesystem session store using diskcache."""

    def __init__(self, cache_dir: str | Path = "/tmp/botsess_cache") -> None:
        """
        Initialize DiskCacheSessionStore.

        Args:
            cache_dir: Directory for cache storage
        """
        self._cache_dir = Path(cache_dir)
        self._cache_dir.mkdir(parents=True, exist_ok=True)
        self._cache = diskcache.Cache(directory=str(self._cache_dir))

    def close(self) -> None:
        """Close the cache and cleanup resources."""
        if hasattr(self, "_cache"):
            self._cache.close()

    @property
    def storage_path(self) -> Path | None:
        return self._cache_dir

    def size_on_disk(self) -> int | None:
        try:
            return self._cache.volume()
        except (sqlite3.Error, diskcache.Timeout) as exc:
            raise StoreError(f"Cannot measure session cache: {exc}") from exc

    def _get_key(self, session_id: str) -> str:
        return f"{KEY_PREFIX}{session_id}"

    def _session_ids(self) -> list[str]:
        try:
            return sorted(
                key[len(KEY_PREFIX) :]
                for key in self._cache
                if isinstance(key, str) and key.startswith(KEY_PREFIX)
            )
        except (sqlite3.Error, diskcache.Timeout) as exc:
            raise StoreError(f"Cannot scan session cache: {exc}") from exc

    def add(self, record: SessionRecord) -> None:
        """Insert or replace one session."""
        self._cache.set(
            self._get_key(record.session_id),
            (record.expires_or_created_at, record.raw_data),
        )

    def count(self) -> int:
        return len(self._session_ids())

    def fetch_batch(self, after_id: str | None, limit: int) -> list[SessionRecord]:
        ids = self._session_ids()
        if after_id is not None:
            ids = [session_id for session_id in ids if session_id > after_id]

        records = []
        for session_id in ids:
            if len(records) >= limit:
                break
            try:
                value = self._cache.get(self._get_key(session_id))
            except (sqlite3.Error, diskcache.Timeout) as exc:
                raise StoreError(f"Cannot read session '{session_id}': {exc}") from exc
            if value is None:
                # Removed since the key scan
                continue
            if isinstance(value, tuple) and len(value) == 2:
                timestamp, raw_data = value
            else:
                logger.warning("Session '%s' has an unexpected cache value.", session_id)
                timestamp, raw_data = 0, b""
            records.append(
                SessionRecord(
                    session_id=session_id,
                    expires_or_created_at=coerce_timestamp(timestamp),
                    raw_data=raw_data,
                )
            )
        return records

    def delete(self, session_id: str) -> int:
        try:
            return 1 if self._cache.delete(self._get_key(session_id)) else 0
        except (sqlite3.Error, diskcache.Timeout) as exc:
            raise StoreError(f"Cannot delete session '{session_id}': {exc}") from exc
