"""Unit tests for EvictionPolicy."""

import pytest

from mcp_server_botsess.bot_filter import BotClassifier
from mcp_server_botsess.eviction_policy import EvictionPolicy, PolicyDecision
from mcp_server_botsess.session_codec import DecodedSession
from mcp_server_botsess.storage_types import Disposition


def session_with_agent(agent):
    return DecodedSession({"_session_validator_data": {"http_user_agent": agent}})


@pytest.fixture
def policy():
    return EvictionPolicy(BotClassifier.from_lines(["^alexa", "blitz\\.io", "yandex"]))


class TestEvictionPolicy:
    """Test cases for session disposition rules."""

    def test_missing_user_agent_is_malformed(self, policy):
        decision = policy.classify(DecodedSession({}), 10000, 0, 3600)
        assert decision == PolicyDecision(Disposition.MALFORMED_NO_USER_AGENT)
        assert decision.agent is None

    @pytest.mark.parametrize("created_at", [10000, 9999, 0, -50000, 20000])
    def test_bot_deleted_regardless_of_age(self, policy, created_at):
        decision = policy.classify(
            session_with_agent("YandexBot/3.0"), 10000, created_at, 3600
        )
        assert decision.disposition is Disposition.DELETE_BOT
        assert decision.agent == "YandexBot/3.0"

    def test_old_human_session_is_inactive(self, policy):
        """now=10000, createdAt=6000: delta 4000 > 3600."""
        decision = policy.classify(session_with_agent("Mozilla/5.0"), 10000, 6000, 3600)
        assert decision.disposition is Disposition.DELETE_INACTIVE
        assert decision.agent == "Mozilla/5.0"

    def test_recent_human_session_is_active(self, policy):
        """now=10000, createdAt=6500: delta 3500 <= 3600."""
        decision = policy.classify(session_with_agent("Mozilla/5.0"), 10000, 6500, 3600)
        assert decision.disposition is Disposition.ACTIVE
        assert decision.agent == "Mozilla/5.0"

    def test_exact_lifetime_is_still_active(self, policy):
        decision = policy.classify(session_with_agent("Mozilla/5.0"), 10000, 6400, 3600)
        assert decision.disposition is Disposition.ACTIVE

    def test_one_second_over_lifetime_is_inactive(self, policy):
        decision = policy.classify(session_with_agent("Mozilla/5.0"), 10000, 6399, 3600)
        assert decision.disposition is Disposition.DELETE_INACTIVE

    def test_future_timestamp_is_active(self, policy):
        """Test that a negative delta is compared numerically."""
        decision = policy.classify(
            session_with_agent("Mozilla/5.0"), 10000, 10000 + 86400, 3600
        )
        assert decision.disposition is Disposition.ACTIVE

    def test_classifier_property(self):
        classifier = BotClassifier.from_lines(["bot"])
        assert EvictionPolicy(classifier).classifier is classifier
