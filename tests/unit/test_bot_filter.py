"""
Unit tests for Bot Filter

Tests filter compilation and user-agent classification.
"""

import logging
import re

import pytest

from mcp_server_botsess.bot_filter import (
    NEVER_MATCH,
    BotClassifier,
    compile_filter,
    split_filter_lines,
)
from mcp_server_botsess.errors import ConfigError


class TestSplitFilterLines:
    """Test suite for filter line normalization."""

    def test_blank_lines_dropped_and_fragments_trimmed(self):
        """Test that blank and whitespace-only lines are removed."""
        lines = ["  ^alexa ", "", "\t", "yandex\r"]
        assert split_filter_lines(lines) == ["^alexa", "yandex"]

    def test_multiline_string_input(self):
        """Test that a newline-separated admin setting is split into fragments."""
        assert split_filter_lines("^alexa\n^blitz\\.io\r\n\nyandex") == [
            "^alexa",
            "^blitz\\.io",
            "yandex",
        ]


class TestCompileFilter:
    """Test suite for compile_filter."""

    def test_alternation_source(self):
        """Test that fragments are joined verbatim into one alternation."""
        pattern = compile_filter(["^alexa", "", "blitz\\.io", "yandex"])
        assert pattern.pattern == "^alexa|blitz\\.io|yandex"
        assert pattern.flags & re.IGNORECASE

    def test_scenario_from_shop_filter(self):
        """Test the documented accept/reject scenario."""
        classifier = BotClassifier(compile_filter(["^alexa", "blitz\\.io", "yandex"]))

        assert classifier.is_bot("alexabot/1.0")
        assert classifier.is_bot("blitz.io/crawler")
        assert classifier.is_bot("Yandex/3.0")
        assert not classifier.is_bot("Mozilla/5.0")

    def test_anchors_are_kept(self):
        """Test that an anchored fragment only matches at the start."""
        classifier = BotClassifier.from_lines(["^alexa"])
        assert classifier.is_bot("Alexa Crawler")
        assert not classifier.is_bot("Mozilla/5.0 (compatible; alexa)")

    def test_escaped_dot_is_literal(self):
        """Test that an escaped metacharacter stays literal."""
        classifier = BotClassifier.from_lines(["blitz\\.io"])
        assert classifier.is_bot("blitz.io")
        assert not classifier.is_bot("blitzxio")

    def test_fragment_order_does_not_change_verdict(self):
        """Test that reordering fragments gives the same verdicts."""
        agents = ["alexabot", "YandexBot", "Mozilla/5.0", "blitz.io", ""]
        forward = BotClassifier.from_lines(["^alexa", "blitz\\.io", "yandex"])
        backward = BotClassifier.from_lines(["yandex", "blitz\\.io", "^alexa"])
        assert [forward.is_bot(a) for a in agents] == [
            backward.is_bot(a) for a in agents
        ]

    def test_empty_filter_never_matches(self, caplog):
        """Test that a filter without fragments is reported and matches nothing."""
        with caplog.at_level(logging.ERROR, logger="mcp_server_botsess.bot_filter"):
            pattern = compile_filter(["", "  "])

        assert pattern.pattern == NEVER_MATCH
        classifier = BotClassifier(pattern)
        assert not classifier.is_bot("")
        assert not classifier.is_bot("alexabot")
        assert "no usable fragments" in caplog.text

    def test_invalid_fragment_raises_config_error(self):
        """Test that a broken regular expression is a configuration error."""
        with pytest.raises(ConfigError, match="Invalid bot filter"):
            compile_filter(["^alexa", "bad(group"])

    def test_compiled_pattern_is_cached(self):
        """Test that the same fragments reuse one compiled matcher."""
        first = compile_filter(["^alexa", "yandex"])
        second = compile_filter("  ^alexa\n\nyandex\n")
        assert first is second


class TestBotClassifier:
    """Test suite for BotClassifier."""

    def test_empty_user_agent_not_special_cased(self):
        """Test that an empty agent only matches when the pattern matches empty."""
        assert not BotClassifier.from_lines(["bot"]).is_bot("")
        assert BotClassifier.from_lines(["^$"]).is_bot("")

    def test_case_insensitive(self):
        """Test that matching ignores case."""
        classifier = BotClassifier.from_lines(["googlebot"])
        assert classifier.is_bot("Mozilla/5.0 (compatible; GoogleBot/2.1)")

    def test_pattern_property(self):
        """Test that the compiled pattern is exposed."""
        pattern = compile_filter(["bot"])
        assert BotClassifier(pattern).pattern is pattern
