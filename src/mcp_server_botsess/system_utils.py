"""
Sweep host status

Logged once per triggered sweep: where the session store lives, how much
disk it takes, free space on its filesystem and the memory held by this
process.
"""

import logging
from pathlib import Path
from typing import Any

import psutil

from .base_session_store import SessionStore
from .errors import StoreError

logger = logging.getLogger(__name__)

_MB = 1024**2
_GB = 1024**3


def _existing_dir(path: Path) -> Path:
    # The store file or directory may not be created until first use
    for candidate in (path, *path.parents):
        if candidate.is_dir():
            return candidate
    return Path(path.anchor or "/")


def collect_system_status(store: SessionStore) -> dict[str, Any]:
    """Store footprint and host resources as plain numbers."""
    path = store.storage_path
    size = store.size_on_disk()
    disk_free_gb = None
    if path is not None:
        disk_free_gb = round(psutil.disk_usage(str(_existing_dir(path))).free / _GB, 1)

    return {
        "store": type(store).__name__,
        "path": str(path) if path is not None else None,
        "size_mb": round(size / _MB, 1) if size is not None else None,
        "disk_free_gb": disk_free_gb,
        "ram_used_percent": psutil.virtual_memory().percent,
        "process_rss_mb": psutil.Process().memory_info().rss // _MB,
    }


def format_system_status(status: dict[str, Any]) -> str:
    parts = [f"store={status['store']}"]
    if status["path"] is not None:
        parts.append(f"path={status['path']} ({status['size_mb']}MB)")
    if status["disk_free_gb"] is not None:
        parts.append(f"disk free={status['disk_free_gb']}GB")
    parts.append(f"RAM used={status['ram_used_percent']:.1f}%")
    parts.append(f"RSS={status['process_rss_mb']}MB")
    return " | ".join(parts)


def log_system_status(store: SessionStore) -> dict[str, Any] | None:
    """
    Log the store and host status before a sweep.

    Returns:
        The collected status, or None when it could not be read
    """
    try:
        status = collect_system_status(store)
    except (psutil.Error, OSError, StoreError) as exc:
        logger.warning("Cannot read sweep host status: %s", exc)
        return None
    logger.info("Sweep host status: %s", format_system_status(status))
    return status
