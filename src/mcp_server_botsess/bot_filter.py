"""
Bot Filter

Compiles the configured bot signature fragments into one case-insensitive
alternation and classifies user-agent strings against it.

The fragments come from a multi-line admin setting such as::

    ^alexa
    ^blitz\\.io
    yandex

and become the pattern ``^alexa|^blitz\\.io|yandex`` (flag IGNORECASE).
Fragments are passed through verbatim, so anchors and metacharacters keep
their regex meaning.
"""

from __future__ import annotations

import logging
import re
from typing import Iterable

from cacheout import Cache

from .errors import ConfigError

logger = logging.getLogger(__name__)

# Pattern with no possible match, used when the filter has no fragments
NEVER_MATCH = "(?!)"

# Compiled matchers keyed by fragment tuple
_compiled_cache = Cache(maxsize=32, ttl=60 * 60)


def split_filter_lines(lines: str | Iterable[str]) -> list[str]:
    """Return the trimmed, non-blank fragments of a filter setting."""
    if isinstance(lines, str):
        lines = lines.splitlines()
    fragments = []
    for line in lines:
        one = line.strip()
        if one:
            fragments.append(one)
    return fragments


def compile_filter(lines: str | Iterable[str]) -> re.Pattern[str]:
    """Compile filter lines into a single case-insensitive alternation.

    Args:
        lines: Raw filter lines, or one newline-separated string

    Returns:
        Compiled pattern. With no usable fragments the pattern never matches.

    Raises:
        ConfigError: If a fragment is not a valid regular expression
    """
    fragments = tuple(split_filter_lines(lines))
    cached = _compiled_cache.get(fragments)
    if cached is not None:
        return cached

    if not fragments:
        logger.error("Bot filter has no usable fragments; no session will match.")
        source = NEVER_MATCH
    else:
        source = "|".join(fragments)

    try:
        pattern = re.compile(source, re.IGNORECASE)
    except re.error as exc:
        raise ConfigError(f"Invalid bot filter '{source}': {exc}") from exc

    _compiled_cache.set(fragments, pattern)
    return pattern


def clear_filter_cache() -> None:
    """Drop all cached matchers."""
    _compiled_cache.clear()


class BotClassifier:
    """Binary bot/human verdict for user-agent strings."""

    def __init__(self, pattern: re.Pattern[str]) -> None:
        self._pattern = pattern

    @classmethod
    def from_lines(cls, lines: str | Iterable[str]) -> "BotClassifier":
        return cls(compile_filter(lines))

    @property
    def pattern(self) -> re.Pattern[str]:
        return self._pattern

    def is_bot(self, user_agent: str) -> bool:
        return self._pattern.search(user_agent) is not None
