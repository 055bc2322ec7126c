"""
Abstract Base Session Store

This module contains the abstract base class that defines the interface
for all session store implementations used by the sweep engine.
"""

from abc import ABC, abstractmethod
from pathlib import Path

from .storage_types import SessionRecord


class SessionStore(ABC):
    """
    Abstract base class for paginated session storage access.

    This class defines the interface that all session store implementations
    must follow. The SweepEngine reads records page by page and deletes them
    one at a time without knowing the underlying storage mechanism.

    The interface is designed to support:
    - A single count probe used as the sweep loop bound
    - Keyset pagination (ascending key, exclusive lower bound)
    - Idempotent single-record deletion

    Implementations wrap backend failures in StoreError.
    """

    @abstractmethod
    def count(self) -> int:
        """
        Get the total number of stored sessions.

        Returns:
            Number of session records at call time
        """
        pass

    @abstractmethod
    def fetch_batch(self, after_id: str | None, limit: int) -> list[SessionRecord]:
        """
        Get one page of sessions ordered by session id.

        Args:
            after_id: Exclusive lower bound, or None to start from the beginning
            limit: Maximum number of records to return

        Returns:
            Records with session_id > after_id, ascending by session_id
        """
        pass

    @abstractmethod
    def delete(self, session_id: str) -> int:
        """
        Delete one session.

        Args:
            session_id: The session identifier

        Returns:
            Number of rows removed (0 or 1). Missing ids return 0.
        """
        pass

    @property
    def storage_path(self) -> Path | None:
        """Filesystem location of the store, or None when it lives in memory."""
        return None

    def size_on_disk(self) -> int | None:
        """Bytes the store occupies on disk, or None when not on disk."""
        return None

    def close(self) -> None:
        """Release backend resources."""

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()
