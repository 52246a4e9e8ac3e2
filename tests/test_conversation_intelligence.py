"""Tests for conversation relevance scoring."""

import math
from datetime import datetime, timezone

import pytest

from chimpflow.config.schema import ConversationConfig
from chimpflow.conversation import ConversationIntelligence, ConversationMessage

NOW = 1_700_000_000.0


@pytest.fixture
def intelligence():
    return ConversationIntelligence()


def minutes_ago(minutes):
    return NOW - minutes * 60


class TestConversationMessage:
    """Test message construction."""

    def test_create_accepts_datetime(self):
        when = datetime.fromtimestamp(NOW, tz=timezone.utc)
        message = ConversationMessage.create("hello", when, user_id="u1")

        assert message.timestamp == NOW
        assert message.user_id == "u1"

    def test_from_dict_accepts_camel_case(self):
        message = ConversationMessage.from_dict({
            "content": "hi",
            "timestamp": NOW,
            "userId": 7,
            "isReply": True,
            "replyToBotMessage": True,
            "replyChainDepth": 2,
        })

        assert message.user_id == "7"
        assert message.is_reply and message.reply_to_bot_message
        assert message.reply_chain_depth == 2


class TestTemporalDecay:
    """Test recency weighting."""

    def test_brand_new_message(self, intelligence):
        assert intelligence.calculate_temporal_decay(NOW, now=NOW) == 1.0

    def test_future_timestamp_counts_as_new(self, intelligence):
        assert intelligence.calculate_temporal_decay(NOW + 300, now=NOW) == 1.0

    def test_exponential_decay(self, intelligence):
        assert intelligence.calculate_temporal_decay(minutes_ago(1), now=NOW) == pytest.approx(math.exp(-0.1))
        assert intelligence.calculate_temporal_decay(minutes_ago(10), now=NOW) == pytest.approx(math.exp(-1))

    def test_floor_after_three_memory_windows(self, intelligence):
        assert intelligence.calculate_temporal_decay(minutes_ago(15), now=NOW) == 0.1
        assert intelligence.calculate_temporal_decay(minutes_ago(600), now=NOW) == 0.1

    def test_monotonic_and_bounded(self, intelligence):
        values = [intelligence.calculate_temporal_decay(minutes_ago(m), now=NOW) for m in range(0, 30)]

        assert all(0.1 <= v <= 1.0 for v in values)
        assert values == sorted(values, reverse=True)

    def test_memory_window_from_config(self):
        intelligence = ConversationIntelligence(ConversationConfig(memory_minutes=1))
        assert intelligence.calculate_temporal_decay(minutes_ago(3), now=NOW) == 0.1


class TestBotIntent:
    """Test bot-directed intent detection."""

    def test_greeting_question_is_directed(self, intelligence):
        intent = intelligence.detect_bot_intent("hey chimp, what's the weather?")

        assert intent.is_bot_directed
        assert intent.confidence >= 0.8
        assert {"bot_name", "greeting", "question_mark"} <= set(intent.patterns)

    def test_platform_mention(self, intelligence):
        intent = intelligence.detect_bot_intent("<@123456789> hello there")

        assert intent.is_bot_directed
        assert intent.confidence == 1.0
        assert "platform_mention" in intent.patterns

    def test_command_prefix(self, intelligence):
        intent = intelligence.detect_bot_intent("!help")

        assert intent.is_bot_directed
        assert intent.confidence == pytest.approx(0.8)
        assert intent.patterns == ["command"]

    def test_plain_chatter_is_not_directed(self, intelligence):
        intent = intelligence.detect_bot_intent("the weather is nice today")

        assert not intent.is_bot_directed
        assert intent.confidence == 0.0
        assert intent.patterns == []

    def test_laughter_is_not_directed(self, intelligence):
        intent = intelligence.detect_bot_intent("lol")

        assert not intent.is_bot_directed
        assert "general:laughter" in intent.patterns

    def test_emoji_halves_confidence(self, intelligence):
        plain = intelligence.detect_bot_intent("chimp can you help")
        with_emoji = intelligence.detect_bot_intent("chimp can you help 😀")

        assert "general:emoji" in with_emoji.patterns
        assert with_emoji.confidence == pytest.approx(plain.confidence / 2)

    @pytest.mark.parametrize("symbol", ["✅", "➡", "☀"])
    def test_dingbats_are_not_chatter(self, intelligence, symbol):
        plain = intelligence.detect_bot_intent("chimp can you help")
        with_symbol = intelligence.detect_bot_intent(f"chimp can you help {symbol}")

        assert "general:emoji" not in with_symbol.patterns
        assert with_symbol.confidence == pytest.approx(plain.confidence)

    def test_continuation_alone_stays_below_threshold(self, intelligence):
        intent = intelligence.detect_bot_intent("thanks")

        assert intent.confidence == pytest.approx(0.2)
        assert not intent.is_bot_directed

    def test_reply_to_bot_boost(self, intelligence):
        plain = intelligence.detect_bot_intent("that works for me")
        reply = intelligence.detect_bot_intent(
            "that works for me", is_reply=True, reply_to_bot_message=True
        )

        assert plain.confidence == 0.0
        assert reply.confidence == pytest.approx(0.3)
        assert "reply_to_bot" in reply.patterns

    def test_reply_to_someone_else_gets_no_boost(self, intelligence):
        intent = intelligence.detect_bot_intent("that works for me", is_reply=True)
        assert intent.confidence == 0.0

    def test_short_messages_are_damped(self, intelligence):
        intent = intelligence.detect_bot_intent("?")
        assert intent.confidence == pytest.approx(0.15)

    @pytest.mark.parametrize("content", ["", None, 42])
    def test_missing_content(self, intelligence, content):
        intent = intelligence.detect_bot_intent(content)

        assert not intent.is_bot_directed
        assert intent.confidence == 0.0

    def test_confidence_is_clamped(self, intelligence):
        intent = intelligence.detect_bot_intent(
            "hey chimp can you please tell me what's up?", is_reply=True, reply_to_bot_message=True
        )
        assert intent.confidence == 1.0

    def test_custom_bot_names(self):
        intelligence = ConversationIntelligence(ConversationConfig(bot_names=["jarvis"]))

        assert "bot_name" in intelligence.detect_bot_intent("jarvis, lights on").patterns
        assert "bot_name" not in intelligence.detect_bot_intent("chimp, lights on").patterns


class TestSemanticSimilarity:
    """Test keyword overlap scoring."""

    def test_shared_topic_gets_boost(self, intelligence):
        similarity = intelligence.calculate_semantic_similarity(
            "what is the weather today", "the weather today is sunny"
        )
        assert similarity == pytest.approx(0.8)

    def test_identical_text(self, intelligence):
        assert intelligence.calculate_semantic_similarity(
            "python generators explained", "python generators explained"
        ) == 1.0

    def test_disjoint_text(self, intelligence):
        assert intelligence.calculate_semantic_similarity("apples oranges", "cars trucks") == 0.0

    def test_short_words_are_ignored(self, intelligence):
        assert intelligence.calculate_semantic_similarity("it is", "is it") == 0.0

    def test_empty_input(self, intelligence):
        assert intelligence.calculate_semantic_similarity("", "something") == 0.0
        assert intelligence.calculate_semantic_similarity("something", "") == 0.0

    def test_symmetric_and_bounded(self, intelligence):
        a = "server stats look weird today"
        b = "can you show server stats"
        forward = intelligence.calculate_semantic_similarity(a, b)

        assert forward == intelligence.calculate_semantic_similarity(b, a)
        assert 0.0 <= forward <= 1.0


class TestRelevanceScore:
    """Test the composite relevance score."""

    def test_fresh_directed_message(self, intelligence):
        message = ConversationMessage(content="hey chimp, what's the weather?", timestamp=NOW, user_id="u1")

        score = intelligence.calculate_relevance_score(message, now=NOW)

        assert score.is_bot_directed
        assert score.total_score == pytest.approx(0.8)
        assert score.components.temporal == 1.0
        assert score.components.bot_directed == pytest.approx(0.4)
        assert score.components.user == pytest.approx(0.1)

    def test_old_ambient_message(self, intelligence):
        message = ConversationMessage(content="just chatting about stuff", timestamp=minutes_ago(20), user_id="u1")

        score = intelligence.calculate_relevance_score(message, now=NOW)

        assert not score.is_bot_directed
        assert score.total_score == pytest.approx(0.04)

    def test_semantic_boost_from_recent_bot_messages(self, intelligence):
        message = ConversationMessage(content="the weather today is sunny", timestamp=NOW)

        without = intelligence.calculate_relevance_score(message, now=NOW)
        with_refs = intelligence.calculate_relevance_score(
            message, recent_messages=["what is the weather today"], now=NOW
        )

        assert with_refs.components.semantic == pytest.approx(0.8 * 0.3)
        assert with_refs.total_score > without.total_score

    def test_accepts_message_objects_as_references(self, intelligence):
        message = ConversationMessage(content="the weather today is sunny", timestamp=NOW)
        reference = ConversationMessage(content="what is the weather today", timestamp=NOW)

        score = intelligence.calculate_relevance_score(message, recent_messages=[reference], now=NOW)

        assert score.components.semantic == pytest.approx(0.24)

    def test_only_three_references_considered(self, intelligence):
        message = ConversationMessage(content="the weather today is sunny", timestamp=NOW)
        refs = ["apples", "oranges", "pears", "the weather today is sunny"]

        score = intelligence.calculate_relevance_score(message, recent_messages=refs, now=NOW)

        assert score.components.semantic == 0.0

    def test_score_is_clamped(self, intelligence):
        message = ConversationMessage(
            content="hey chimp, what's the weather?",
            timestamp=NOW,
            is_reply=True,
            reply_to_bot_message=True,
            reply_chain_depth=2,
        )

        score = intelligence.calculate_relevance_score(
            message, recent_messages=["hey chimp, what's the weather?"], user_message_count=5, now=NOW
        )

        assert score.total_score == 1.0

    @pytest.mark.parametrize("count, expected", [(0, 0.0), (1, 0.1), (7, 0.1)])
    def test_user_activity_boost_is_capped(self, intelligence, count, expected):
        message = ConversationMessage(content="random thoughts here", timestamp=NOW)

        score = intelligence.calculate_relevance_score(message, user_message_count=count, now=NOW)

        assert score.components.user == pytest.approx(expected)

    def test_empty_message_scores_zero(self, intelligence):
        score = intelligence.calculate_relevance_score(ConversationMessage(content="", timestamp=NOW), now=NOW)
        assert score.total_score == 0.0
