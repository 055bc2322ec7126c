"""
In-Memory Session Store Implementation

This module provides an in-memory implementation of the SessionStore
interface. Records live in a dictionary with a sorted key index so pages can
be cut with bisect.
"""

import bisect
import threading

from .base_session_store import SessionStore
from .storage_types import SessionRecord


class InMemorySessionStore(SessionStore):
    """
    In-memory implementation of SessionStore.

    Safe to mutate from another thread while a sweep is running, which is how
    concurrent session writers are simulated.
    """

    def __init__(self, records: list[SessionRecord] | None = None) -> None:
        """Initialize the store, optionally seeded with records."""
        # Session storage: {session_id: SessionRecord}
        self._records: dict[str, SessionRecord] = {}
        # Sorted session ids
        self._keys: list[str] = []
        self._lock = threading.RLock()
        for record in records or []:
            self.add(record)

    def add(self, record: SessionRecord) -> None:
        """
        Insert or replace a session record.

        Args:
            record: The record to store
        """
        with self._lock:
            if record.session_id not in self._records:
                bisect.insort(self._keys, record.session_id)
            self._records[record.session_id] = record

    def has_session(self, session_id: str) -> bool:
        with self._lock:
            return session_id in self._records

    def count(self) -> int:
        with self._lock:
            return len(self._records)

    def fetch_batch(self, after_id: str | None, limit: int) -> list[SessionRecord]:
        with self._lock:
            start = 0 if after_id is None else bisect.bisect_right(self._keys, after_id)
            return [self._records[key] for key in self._keys[start : start + limit]]

    def delete(self, session_id: str) -> int:
        with self._lock:
            if session_id not in self._records:
                return 0
            del self._records[session_id]
            idx = bisect.bisect_left(self._keys, session_id)
            del self._keys[idx]
            return 1
