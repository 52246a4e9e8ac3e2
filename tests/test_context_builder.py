"""Tests for token-budgeted context selection."""

import pytest

from chimpflow.config.schema import ConversationConfig
from chimpflow.conversation import ContextBuilder, ConversationMessage, estimate_tokens

NOW = 1_700_000_000.0


def msg(content, seconds_ago=0, user_id="u1", **kwargs):
    return ConversationMessage(content=content, timestamp=NOW - seconds_ago, user_id=user_id, **kwargs)


@pytest.fixture
def builder():
    return ContextBuilder()


class TestEstimateTokens:
    """Test the token estimate."""

    @pytest.mark.parametrize("text, expected", [("", 0), ("abcd", 1), ("abcde", 2), ("x" * 400, 100)])
    def test_four_chars_per_token(self, text, expected):
        assert estimate_tokens(text) == expected

    def test_available_on_builder(self, builder):
        assert builder.estimate_tokens("abcdefgh") == 2

    def test_none_is_zero(self):
        assert estimate_tokens(None) == 0


class TestScoreMessages:
    """Test per-message scoring."""

    def test_keeps_input_order_and_indices(self, builder):
        messages = [msg("first message here", 30), msg("hey chimp, what's up?", 20), msg("third one", 10)]

        scored = builder.score_messages(messages, now=NOW)

        assert [s.original_index for s in scored] == [0, 1, 2]
        assert [s.content for s in scored] == [m.content for m in messages]
        assert scored[1].is_bot_directed

    def test_user_activity_counts_per_user(self, builder):
        messages = [msg("random thoughts", user_id="quiet")] + [
            msg(f"chatter number {i}", user_id="busy") for i in range(3)
        ]

        scored = builder.score_messages(messages, now=NOW)

        assert scored[0].relevance_components.user == pytest.approx(0.1)
        assert scored[1].relevance_components.user == pytest.approx(0.1)


class TestBuildWeightedContext:
    """Test context admission."""

    def test_empty_input(self, builder):
        assert builder.build_weighted_context([], now=NOW) == []

    def test_budget_is_never_exceeded(self, builder):
        messages = [msg(f"hey chimp, question number {i} " + "x" * 40 * i, 10 * i) for i in range(10)]

        for budget in (0, 5, 20, 60, 200):
            selected = builder.build_weighted_context(messages, max_tokens=budget, now=NOW)
            assert sum(estimate_tokens(s.content) for s in selected) <= budget

    def test_oversized_message_is_skipped_not_truncated(self, builder):
        messages = [
            msg("hey chimp " + "x" * 400, 30),
            msg("hey chimp, what's the weather?", 20),
        ]

        selected = builder.build_weighted_context(messages, max_tokens=50, now=NOW)

        assert [s.content for s in selected] == ["hey chimp, what's the weather?"]

    def test_result_is_chronological(self, builder):
        messages = [
            msg("hey chimp, third?", 10),
            msg("hey chimp, first?", 300),
            msg("hey chimp, second?", 60),
        ]

        selected = builder.build_weighted_context(messages, now=NOW)

        timestamps = [s.timestamp for s in selected]
        assert timestamps == sorted(timestamps)
        assert [s.original_index for s in selected] == [1, 2, 0]

    def test_low_relevance_is_dropped(self, builder):
        messages = [
            msg("hey chimp, what's the weather?"),
            msg("ancient chatter nobody cares about", 3600),
        ]

        selected = builder.build_weighted_context(messages, now=NOW)

        assert [s.content for s in selected] == ["hey chimp, what's the weather?"]

    def test_ambient_share_is_limited(self, builder):
        ambient = [msg(f"ambient chatter line {i}", i, user_id=f"user{i}") for i in range(10)]
        directed = [msg("hey chimp, can you help?", 5)]

        selected = builder.build_weighted_context(ambient + directed, ambient_ratio=0.2, now=NOW)

        assert sum(1 for s in selected if s.is_bot_directed) == 1
        assert sum(1 for s in selected if not s.is_bot_directed) == 2

    def test_no_ambient_when_ratio_is_zero(self, builder):
        messages = [msg("ambient chatter line", user_id="a"), msg("hey chimp, hello?", user_id="b")]

        selected = builder.build_weighted_context(messages, ambient_ratio=0.0, now=NOW)

        assert len(selected) == 1
        assert selected[0].is_bot_directed

    def test_defaults_come_from_config(self):
        builder = ContextBuilder(config=ConversationConfig(max_weighted_context_tokens=3))
        messages = [msg("hey chimp, what's the weather?")]

        assert builder.build_weighted_context(messages, now=NOW) == []

    def test_min_relevance_override(self, builder):
        messages = [msg("hey chimp, what's the weather?")]
        assert builder.build_weighted_context(messages, min_relevance=0.95, now=NOW) == []


class TestToChatMessages:
    """Test rendering a selection as chat turns."""

    def test_roles(self, builder):
        messages = [msg("hey chimp, hi?", 20, user_id="alice"), msg("Hello alice!", 10, user_id="bot-9")]
        selected = builder.build_weighted_context(messages, ambient_ratio=1.0, now=NOW)

        chat = builder.to_chat_messages(selected, bot_user_id="bot-9")

        assert chat == [
            {"role": "user", "content": "hey chimp, hi?"},
            {"role": "assistant", "content": "Hello alice!"},
        ]

    def test_without_bot_id_everything_is_user(self, builder):
        scored = builder.score_messages([msg("one"), msg("two")], now=NOW)
        assert {m["role"] for m in builder.to_chat_messages(scored)} == {"user"}
