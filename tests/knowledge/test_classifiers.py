"""Tests for knowledge intent detection and cache classification."""

from datetime import datetime

import pytest

from chimpflow.errors import ChimpflowError, ErrorKind
from chimpflow.knowledge import Author, ChatMessage, KnowledgeIntentDetector, cache_ttl
from chimpflow.knowledge.classifiers import (
    cache_class,
    is_code_related,
    is_financial_query,
    is_time_sensitive_query,
)


class TestQueryClassification:
    """Test keyword classifiers."""

    def test_financial(self):
        assert is_financial_query("current bitcoin price")
        assert not is_financial_query("history of rome")

    def test_time_sensitive(self):
        assert is_time_sensitive_query("latest python release")
        assert is_time_sensitive_query(f"best laptops {datetime.now().year}")
        assert not is_time_sensitive_query("history of rome")

    def test_code_related(self):
        assert is_code_related("pocketflow workflow example")
        assert is_code_related("sql joins explained")
        assert not is_code_related("history of rome")


class TestCacheTTL:
    """Test cache freshness windows."""

    @pytest.mark.parametrize("query, confidence, expected", [
        ("bitcoin price", 90, 3600),
        ("latest news headlines", 90, 3600),
        ("what is pocketflow", 30, 1800),
        ("history of rome", 80, 86400),
        ("history of rome", 50, 86400),
    ])
    def test_ttl(self, query, confidence, expected):
        assert cache_ttl(query, confidence) == expected

    def test_volatile_beats_low_confidence(self):
        assert cache_ttl("bitcoin price", 10) == 3600

    def test_class_labels(self):
        assert cache_class("bitcoin price", 90) == "financial"
        assert cache_class("latest news headlines", 90) == "time-sensitive"
        assert cache_class("history of rome", 10) == "low-confidence"
        assert cache_class("history of rome", 90) == "general"


class TestKnowledgeIntentDetector:
    """Test request classification."""

    @pytest.fixture
    def detector(self):
        return KnowledgeIntentDetector(owner_id="owner-1")

    def test_information_request(self, detector):
        intent = detector.detect(ChatMessage(content="What is PocketFlow?", author=Author(id="u1")), now=123.0)

        assert intent.original_message == "what is pocketflow?"
        assert intent.query == "pocketflow?"
        assert intent.needs_information
        assert not intent.needs_code
        assert intent.user_id == "u1"
        assert not intent.is_owner
        assert intent.timestamp == 123.0

    def test_code_request_from_owner(self, detector):
        intent = detector.detect(ChatMessage(content="give me pocketflow code", author=Author(id="owner-1")))

        assert intent.needs_code
        assert intent.is_owner

    def test_query_cleanup(self, detector):
        intent = detector.detect(
            ChatMessage(content="Search pocketflow docs and show me the code", author=Author(id="u1"))
        )

        assert intent.query == "pocketflow docs"
        assert intent.needs_code

    def test_cleanup_that_removes_everything_keeps_message(self, detector):
        assert detector.extract_query("give me the code") == ""

        intent = detector.detect(ChatMessage(content="Give me the code", author=Author(id="u1")))

        assert intent.query == "give me the code"
        assert intent.needs_code

    def test_short_greeting_needs_nothing(self, detector):
        intent = detector.detect(ChatMessage(content="hi", author=Author(id="u1")))

        assert not intent.needs_information
        assert not intent.needs_code

    def test_long_message_needs_information(self, detector):
        assert detector.needs_information("sixteen chars!!!")
        assert detector.needs_information("ok?")

    def test_numeric_author_ids(self, detector):
        intent = detector.detect(ChatMessage(content="hi", author=Author(id=12345)))
        assert intent.user_id == "12345"

    def test_no_owner_configured(self):
        intent = KnowledgeIntentDetector().detect(ChatMessage(content="hi", author=Author(id="u1")))
        assert not intent.is_owner

    def test_missing_author(self, detector):
        with pytest.raises(ChimpflowError) as exc_info:
            detector.detect(ChatMessage(content="what is pocketflow?"))

        assert exc_info.value.kind is ErrorKind.VALIDATION
        assert exc_info.value.code == "MISSING_USER_ID"
        assert exc_info.value.message == "Missing user context"

    def test_blank_content(self, detector):
        with pytest.raises(ChimpflowError) as exc_info:
            detector.detect(ChatMessage(content="   ", author=Author(id="u1")))

        assert exc_info.value.kind is ErrorKind.VALIDATION
        assert exc_info.value.code == "EMPTY_QUERY"

    def test_non_text_content(self, detector):
        with pytest.raises(ChimpflowError) as exc_info:
            detector.detect(ChatMessage(content=None, author=Author(id="u1")))

        assert exc_info.value.kind is ErrorKind.PLATFORM
