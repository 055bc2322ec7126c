"""
Storage Types and Data Classes

This module contains the core data structures and enums shared by the session
stores, the eviction policy and the sweep engine.
"""

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class StoreBackend(Enum):
    """Session store backend selection.

    MEMORY is a per-process store for tests and embedding code; it cannot be
    selected through BOTSESS_STORE.
    """

    MEMORY = "memory"
    SQLITE = "sqlite"
    DISKCACHE = "diskcache"

    @property
    def persistent(self) -> bool:
        return self is not StoreBackend.MEMORY


class Disposition(Enum):
    """Per-record decision made during a sweep."""

    DELETE_BOT = "delete_bot"
    DELETE_INACTIVE = "delete_inactive"
    ACTIVE = "active"
    MALFORMED_NO_USER_AGENT = "malformed_no_user_agent"
    DECODE_FAILED = "decode_failed"

    @property
    def is_deletion(self) -> bool:
        return self in (Disposition.DELETE_BOT, Disposition.DELETE_INACTIVE)


@dataclass(frozen=True)
class SessionRecord:
    """One row of the session table.

    ``expires_or_created_at`` is the stored timestamp column. The sweep uses it
    as the session age reference, whatever the session writer put there.
    None marks a stored value that is not a timestamp.
    """

    session_id: str
    expires_or_created_at: int | None
    raw_data: bytes | str


def coerce_timestamp(value: Any) -> int | None:
    """Stored timestamp as epoch seconds; NULL reads as 0, junk as None."""
    if value is None:
        return 0
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return int(value) if math.isfinite(value) else None
    if isinstance(value, bytes):
        value = value.decode("ascii", errors="replace")
    try:
        return int(str(value).strip())
    except ValueError:
        return None


@dataclass
class SweepResult:
    """Aggregate counters of one sweep."""

    total: int = 0
    removed_bots: int = 0
    removed_inactive: int = 0
    active: int = 0
    failures: int = 0
    agents: dict[str, int] = field(default_factory=dict)

    @property
    def processed(self) -> int:
        """Number of records visited by the sweep."""
        return self.removed_bots + self.removed_inactive + self.active + self.failures

    def tally_agent(self, agent: str) -> None:
        self.agents[agent] = self.agents.get(agent, 0) + 1

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "removed_bots": self.removed_bots,
            "removed_inactive": self.removed_inactive,
            "active": self.active,
            "failures": self.failures,
            "agents": dict(self.agents),
        }
