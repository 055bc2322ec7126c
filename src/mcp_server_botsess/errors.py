"""
Error types for the session cleanup sweep.

Per-record problems (DecodeError) are folded into the sweep counters and never
escape the sweep loop. Store and configuration problems terminate the whole
invocation.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .storage_types import SweepResult


class BotSessError(Exception):
    """Base class for all errors raised by this package."""


class ConfigError(BotSessError):
    """Filter or threshold configuration is missing or unusable."""


class DecodeError(BotSessError):
    """A stored session blob could not be decoded into a mapping."""


class StoreError(BotSessError):
    """I/O failure while talking to the session store."""


class SweepCancelledError(BotSessError):
    """The sweep was stopped between batches by a deadline or cancel event.

    Deletions performed before cancellation stay committed; ``result`` holds
    the counters accumulated up to that point.
    """

    def __init__(self, message: str, result: "SweepResult") -> None:
        super().__init__(message)
        self.result = result
