"""
Eviction Policy

Decides what happens to one decoded session: bots are removed whatever their
age, human sessions are removed once older than the configured lifetime.
"""

from __future__ import annotations

from dataclasses import dataclass

from .bot_filter import BotClassifier
from .session_codec import DecodedSession
from .storage_types import Disposition


@dataclass(frozen=True)
class PolicyDecision:
    """Disposition of one session and the user agent it was decided on."""

    disposition: Disposition
    agent: str | None = None


class EvictionPolicy:
    """Bot / inactivity eviction rules."""

    def __init__(self, classifier: BotClassifier) -> None:
        self._classifier = classifier

    @property
    def classifier(self) -> BotClassifier:
        return self._classifier

    def classify(
        self,
        session: DecodedSession,
        now: int,
        created_at: int,
        lifetime_seconds: int,
    ) -> PolicyDecision:
        """
        Classify one session.

        Args:
            session: Decoded session data
            now: Sweep reference time (epoch seconds)
            created_at: Stored session timestamp (epoch seconds)
            lifetime_seconds: Inactivity threshold for human sessions

        Returns:
            PolicyDecision. A session without the validator user agent is
            MALFORMED_NO_USER_AGENT and must be kept.
        """
        agent = session.user_agent
        if agent is None:
            return PolicyDecision(Disposition.MALFORMED_NO_USER_AGENT)

        if self._classifier.is_bot(agent):
            return PolicyDecision(Disposition.DELETE_BOT, agent)

        # Negative deltas (clock skew) compare like any other number
        delta = now - created_at
        if delta > lifetime_seconds:
            return PolicyDecision(Disposition.DELETE_INACTIVE, agent)
        return PolicyDecision(Disposition.ACTIVE, agent)
