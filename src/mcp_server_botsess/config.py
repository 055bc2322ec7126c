"""
Cleanup Configuration

Configuration providers supply the bot filter lines and the lifetime
thresholds. The sweep never reads settings on its own: everything is resolved
into a SweepSettings object before a sweep starts.
"""

from __future__ import annotations

import logging
import os
import tempfile
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable

from .base_session_store import SessionStore
from .bot_filter import compile_filter, split_filter_lines
from .errors import ConfigError
from .storage_types import StoreBackend

logger = logging.getLogger(__name__)

DEF_BOT_CLEANUP_DELTA = 3600
DEF_BATCH_LIMIT = 1000


def parse_int(value: Any) -> int | None:
    """Return value as an integer, or None when it is not one."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    try:
        return int(str(value).strip())
    except ValueError:
        return None


def resolve_bots_cleanup_delta(value: Any) -> int:
    """Bots cleanup delta with the 3600s default for absent or non-positive values."""
    result = parse_int(value)
    if result is None or result <= 0:
        return DEF_BOT_CLEANUP_DELTA
    return result


class ConfigProvider(ABC):
    """Source of the cleanup settings."""

    @abstractmethod
    def get_filter_lines(self) -> list[str]:
        """Raw bot signature fragments, one per line."""
        pass

    @abstractmethod
    def get_session_lifetime_seconds(self) -> int:
        """Inactivity lifetime for human sessions, in seconds."""
        pass

    @abstractmethod
    def get_bots_cleanup_delta(self) -> int:
        """Max lifetime for bot sessions, in seconds (3600 by default)."""
        pass


class StaticConfigProvider(ConfigProvider):
    """Settings given explicitly, e.g. by an embedding application or tests."""

    def __init__(
        self,
        filter_lines: str | Iterable[str],
        session_lifetime_seconds: int,
        bots_cleanup_delta: Any = None,
    ) -> None:
        if isinstance(filter_lines, str):
            filter_lines = filter_lines.splitlines()
        self._filter_lines = list(filter_lines)
        self._session_lifetime_seconds = session_lifetime_seconds
        self._bots_cleanup_delta = bots_cleanup_delta

    def get_filter_lines(self) -> list[str]:
        return list(self._filter_lines)

    def get_session_lifetime_seconds(self) -> int:
        return self._session_lifetime_seconds

    def get_bots_cleanup_delta(self) -> int:
        return resolve_bots_cleanup_delta(self._bots_cleanup_delta)


class EnvConfigProvider(ConfigProvider):
    """Settings read from BOTSESS_* environment variables."""

    def get_filter_lines(self) -> list[str]:
        inline = os.environ.get("BOTSESS_FILTER")
        if inline is not None:
            return inline.splitlines()

        filter_file = os.environ.get("BOTSESS_FILTER_FILE")
        if filter_file:
            try:
                return Path(filter_file).read_text(encoding="utf-8").splitlines()
            except OSError as exc:
                raise ConfigError(f"Cannot read bot filter file {filter_file}: {exc}") from exc

        return []

    def get_session_lifetime_seconds(self) -> int:
        raw = os.environ.get("BOTSESS_SESSION_LIFETIME")
        value = parse_int(raw)
        if value is None:
            raise ConfigError(
                f"BOTSESS_SESSION_LIFETIME must be an integer number of seconds, got {raw!r}"
            )
        return value

    def get_bots_cleanup_delta(self) -> int:
        return resolve_bots_cleanup_delta(os.environ.get("BOTSESS_BOTS_CLEANUP_DELTA"))


@dataclass(frozen=True)
class SweepSettings:
    """Settings resolved once, before a sweep runs."""

    filter_lines: tuple[str, ...]
    session_lifetime_seconds: int
    bots_cleanup_delta: int
    batch_limit: int = DEF_BATCH_LIMIT


def load_sweep_settings(
    provider: ConfigProvider, batch_limit: int = DEF_BATCH_LIMIT
) -> SweepSettings:
    """
    Resolve and validate settings from a provider.

    Raises:
        ConfigError: If the lifetime is unusable or the filter does not compile
    """
    lifetime = provider.get_session_lifetime_seconds()
    if lifetime is None or lifetime <= 0:
        raise ConfigError(f"Session lifetime must be a positive integer, got {lifetime!r}")
    if batch_limit <= 0:
        raise ConfigError(f"Batch limit must be a positive integer, got {batch_limit!r}")

    filter_lines = tuple(split_filter_lines(provider.get_filter_lines()))
    # Compile now so a broken fragment fails before any session is touched
    compile_filter(filter_lines)

    return SweepSettings(
        filter_lines=filter_lines,
        session_lifetime_seconds=lifetime,
        bots_cleanup_delta=provider.get_bots_cleanup_delta(),
        batch_limit=batch_limit,
    )


@dataclass(frozen=True)
class StoreSettings:
    """Where the session table lives."""

    backend: StoreBackend
    path: str
    table: str = "session"


def load_store_settings() -> StoreSettings:
    """Read store selection from BOTSESS_STORE / BOTSESS_DB_PATH / BOTSESS_TABLE."""
    raw_backend = os.environ.get("BOTSESS_STORE", StoreBackend.SQLITE.value).lower()
    try:
        backend = StoreBackend(raw_backend)
    except ValueError:
        raise ConfigError(f"Unknown BOTSESS_STORE backend: {raw_backend!r}") from None
    if not backend.persistent:
        raise ConfigError(
            f"BOTSESS_STORE={raw_backend!r} holds no sessions between tool calls;"
            " use sqlite or diskcache"
        )

    default_path = os.path.join(tempfile.gettempdir(), "botsess", "sessions.db")
    if backend is StoreBackend.DISKCACHE:
        default_path = os.path.join(tempfile.gettempdir(), "botsess", "cache")

    return StoreSettings(
        backend=backend,
        path=os.environ.get("BOTSESS_DB_PATH", default_path),
        table=os.environ.get("BOTSESS_TABLE", "session"),
    )


def load_batch_limit() -> int:
    raw = os.environ.get("BOTSESS_BATCH_LIMIT")
    value = parse_int(raw)
    if raw is not None and value is None:
        logger.warning("Ignoring non-integer BOTSESS_BATCH_LIMIT=%r", raw)
    return value if value is not None else DEF_BATCH_LIMIT


def create_store(settings: StoreSettings) -> SessionStore:
    """Build the session store selected by settings."""
    if settings.backend is StoreBackend.SQLITE:
        from .sqlite_session_store import SQLiteSessionStore

        return SQLiteSessionStore(settings.path, table=settings.table)
    if settings.backend is StoreBackend.DISKCACHE:
        from .diskcache_session_store import DiskCacheSessionStore

        return DiskCacheSessionStore(cache_dir=settings.path)

    from .in_memory_session_store import InMemorySessionStore

    return InMemorySessionStore()
