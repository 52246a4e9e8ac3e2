"""Tests for fitting responses into a chat message."""

import pytest

from chimpflow.knowledge import DISCORD_LIMIT, SAFE_LIMIT, KnowledgeResult, format_for_discord
from chimpflow.knowledge.formatter import shrink_code_block, trim_at_whitespace


def long_code_response():
    code = "\n".join(f"step_{i} = Node('step_{i}', action_{i})" for i in range(120))
    return (
        "📚 **PocketFlow Framework:**\nA small graph framework.\n\n"
        f"💻 **PocketFlow Implementation:**\n```python\n{code}\n```\n\n"
        "✅ **Analysis Confidence:** 82%"
    )


def long_report():
    results = "\n".join(f"{i}. **Result {i}**\n   " + "detail " * 30 for i in range(1, 12))
    return (
        '🔍 **Search Results from DuckDuckGo:** "pocketflow"\n\n'
        f"📖 **Related Information:**\n{results}\n\n"
        "⚠️ **Analysis Confidence:** 55%\n\n"
        "🎭 **Quick Take:** 🤔 ❓ 😅"
    )


class TestFormatForDiscord:
    """Test response trimming."""

    def test_short_response_is_untouched(self):
        result = KnowledgeResult(success=True, response="short answer")

        assert format_for_discord(result) is result

    def test_empty_response_is_untouched(self):
        result = KnowledgeResult(success=True, response="")
        assert format_for_discord(result) is result

    def test_code_survives_truncation(self):
        text = long_code_response()
        result = KnowledgeResult(success=True, response=text, has_code=True, confidence=82)

        formatted = format_for_discord(result)

        assert len(text) > DISCORD_LIMIT
        assert len(formatted.response) <= SAFE_LIMIT
        assert "```python" in formatted.response
        assert formatted.response.count("```") == 2
        assert "step_0 = Node" in formatted.response
        assert formatted.truncated
        assert formatted.original_length == len(text)
        assert f"Original: {len(text)} chars" in formatted.response
        assert formatted.confidence == 82
        assert formatted.has_code

    def test_key_information_survives(self):
        text = long_report()
        formatted = format_for_discord(KnowledgeResult(success=True, response=text))

        assert len(text) > SAFE_LIMIT
        assert len(formatted.response) <= SAFE_LIMIT
        assert "⚠️ **Analysis Confidence:** 55%" in formatted.response
        assert "🎭 **Quick Take:**" in formatted.response
        assert formatted.response.startswith("🔍 **Search Results")
        assert formatted.truncated

    def test_plain_text_is_cut_at_whitespace(self):
        text = "lorem ipsum " * 400
        formatted = format_for_discord(KnowledgeResult(success=True, response=text))

        assert len(formatted.response) <= SAFE_LIMIT
        assert formatted.response.startswith("lorem ipsum")
        assert "Response truncated to fit Discord limits" in formatted.response

    @pytest.mark.parametrize("text", [
        "y" * 1951,
        "y" * 100_000,
        "```python\n" + "x = 1\n" * 2000 + "```",
        "```\nunterminated " * 500,
    ])
    def test_never_exceeds_limit(self, text):
        formatted = format_for_discord(KnowledgeResult(success=True, response=text))

        assert len(formatted.response) <= SAFE_LIMIT

    def test_original_is_not_mutated(self):
        text = long_report()
        result = KnowledgeResult(success=True, response=text)

        format_for_discord(result)

        assert result.response == text
        assert not result.truncated


class TestHelpers:
    """Test trimming helpers."""

    def test_trim_prefers_word_break(self):
        assert trim_at_whitespace("alpha beta gamma", 12) == "alpha beta"

    def test_trim_short_text(self):
        assert trim_at_whitespace("alpha", 12) == "alpha"

    def test_trim_without_spaces(self):
        assert trim_at_whitespace("x" * 20, 10) == "x" * 10

    def test_shrink_code_block_keeps_fences(self):
        block = "```python\n" + "\n".join(f"line_{i} = {i}" for i in range(100)) + "\n```"

        shrunk = shrink_code_block(block, 200)

        assert len(shrunk) <= 200
        assert shrunk.startswith("```python\n")
        assert shrunk.endswith("```")
        assert "line_0 = 0" in shrunk

    def test_shrink_small_block_is_noop(self):
        block = "```python\nx = 1\n```"
        assert shrink_code_block(block, 200) == block
