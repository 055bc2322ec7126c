"""
SQLite Session Store Implementation

Reads and deletes rows of a database-backed session table shaped like the
one PHP shops persist sessions in::

    session_id       TEXT NOT NULL PRIMARY KEY
    session_expires  INTEGER
    session_data     BLOB   (base64 text)

Every page is its own SELECT and every delete is its own committed statement,
so a long sweep never holds a lock other session writers wait on.
"""

from __future__ import annotations

import logging
import re
import sqlite3
from pathlib import Path

from .base_session_store import SessionStore
from .errors import StoreError
from .storage_types import SessionRecord, coerce_timestamp

logger = logging.getLogger(__name__)

DEFAULT_TABLE = "session"

_IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class SQLiteSessionStore(SessionStore):
    """Session table stored in a SQLite database file."""

    def __init__(self, db_path: str | Path, table: str = DEFAULT_TABLE) -> None:
        """
        Initialize SQLiteSessionStore.

        Args:
            db_path: Database file path (":memory:" for a private in-memory db)
            table: Session table name
        """
        if not _IDENTIFIER_RE.match(table):
            raise ValueError(f"Invalid table name: {table!r}")
        self.db_path = str(db_path)
        self.table = table
        self._conn: sqlite3.Connection | None = None

    @property
    def conn(self) -> sqlite3.Connection:
        if self._conn is None:
            if self.db_path != ":memory:":
                Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
            try:
                self._conn = sqlite3.connect(self.db_path)
                self._conn.execute("PRAGMA journal_mode=WAL;")
            except sqlite3.Error as exc:
                raise StoreError(f"Cannot open session db {self.db_path}: {exc}") from exc
            logger.info("Session store opened: %s (table %s)", self.db_path, self.table)
        return self._conn

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    @property
    def storage_path(self) -> Path | None:
        if self.db_path == ":memory:":
            return None
        return Path(self.db_path)

    def size_on_disk(self) -> int | None:
        path = self.storage_path
        if path is None:
            return None
        # WAL mode keeps recent writes in the -wal and -shm side files
        files = [path.with_name(path.name + suffix) for suffix in ("", "-wal", "-shm")]
        return sum(f.stat().st_size for f in files if f.exists())

    def ensure_schema(self) -> None:
        """Create the session table if it does not exist."""
        try:
            self.conn.execute(
                f"""CREATE TABLE IF NOT EXISTS {self.table} (
                        session_id       TEXT NOT NULL PRIMARY KEY,
                        session_expires  INTEGER NOT NULL DEFAULT 0,
                        session_data     BLOB
                    )"""
            )
            self.conn.commit()
        except sqlite3.Error as exc:
            raise StoreError(f"Cannot create table {self.table}: {exc}") from exc

    def add(self, record: SessionRecord) -> None:
        """Insert or replace one session row."""
        try:
            self.conn.execute(
                f"""INSERT OR REPLACE INTO {self.table}
                    (session_id, session_expires, session_data) VALUES (?, ?, ?)""",
                (record.session_id, record.expires_or_created_at, record.raw_data),
            )
            self.conn.commit()
        except sqlite3.Error as exc:
            raise StoreError(f"Cannot store session '{record.session_id}': {exc}") from exc

    def count(self) -> int:
        try:
            row = self.conn.execute(
                f"SELECT COUNT(session_id) FROM {self.table}"
            ).fetchone()
        except sqlite3.Error as exc:
            raise StoreError(f"Cannot count sessions: {exc}") from exc
        return int(row[0]) if row else 0

    def fetch_batch(self, after_id: str | None, limit: int) -> list[SessionRecord]:
        if after_id is None:
            sql = (
                f"SELECT session_id, session_expires, session_data FROM {self.table}"
                " ORDER BY session_id LIMIT ?"
            )
            params: tuple = (limit,)
        else:
            sql = (
                f"SELECT session_id, session_expires, session_data FROM {self.table}"
                " WHERE session_id > ? ORDER BY session_id LIMIT ?"
            )
            params = (after_id, limit)
        try:
            rows = self.conn.execute(sql, params).fetchall()
        except sqlite3.Error as exc:
            raise StoreError(f"Cannot fetch sessions after {after_id!r}: {exc}") from exc
        return [
            SessionRecord(
                session_id=row[0],
                expires_or_created_at=coerce_timestamp(row[1]),
                raw_data=row[2] if row[2] is not None else b"",
            )
            for row in rows
        ]

    def delete(self, session_id: str) -> int:
        try:
            cursor = self.conn.execute(
                f"DELETE FROM {self.table} WHERE session_id = ?", (session_id,)
            )
            self.conn.commit()
        except sqlite3.Error as exc:
            raise StoreError(f"Cannot delete session '{session_id}': {exc}") from exc
        return cursor.rowcount
