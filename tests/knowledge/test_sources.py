"""Tests for information gathering and fact-check scoring."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from chimpflow.knowledge.sources import (
    confidence_emoji,
    format_search_results,
    gather_sources,
    score_search_data,
    search_confidence,
    with_fact_check,
)


def search_payload(query="pocketflow", **data):
    return {"success": True, "data": {"query": query, "source": "DuckDuckGo", **data}}


def doc_payload(query, site):
    return {"success": True, "documentation": {"site": site, "title": f"{site} docs for {query}"}}


class TestScoreSearchData:
    """Test confidence scoring of search payloads."""

    def test_rich_result_is_capped(self):
        score, verification = score_search_data({
            "instantAnswer": {"text": "42"},
            "abstract": {"text": "The answer.", "source": "Wikipedia"},
            "results": [{"title": str(i)} for i in range(3)],
        })

        assert score == 100
        assert verification == "The answer."

    def test_results_only(self):
        score, verification = score_search_data({"results": [{"title": "a"}, {"title": "b"}]})

        assert score == 30
        assert verification == "Search completed but no specific verification found"

    def test_results_bonus_is_capped(self):
        score, _ = score_search_data({"results": [{"title": str(i)} for i in range(20)]})
        assert score == 50

    def test_unknown_abstract_source_gets_no_bonus(self):
        score, _ = score_search_data({"abstract": {"text": "x", "source": "Unknown"}, "results": [{}]})
        assert score == 25

    def test_empty_result(self):
        score, verification = score_search_data({})

        assert score == 40
        assert "no direct answer" in verification


class TestFactCheck:
    """Test factCheck attachment."""

    def test_adds_fact_check(self):
        result = with_fact_check(search_payload(results=[{"title": "a"}]), "pocketflow")

        fact_check = result["factCheck"]
        assert fact_check["statement"] == "pocketflow"
        assert fact_check["confidenceScore"] == 25
        assert fact_check["sources"] == 1
        assert search_confidence(result) == 25

    def test_keeps_client_fact_check(self):
        payload = {**search_payload(), "factCheck": {"confidenceScore": 77}}
        assert with_fact_check(payload, "x")["factCheck"] == {"confidenceScore": 77}

    def test_skips_failed_search(self):
        assert "factCheck" not in with_fact_check({"success": False}, "x")

    def test_search_confidence_without_result(self):
        assert search_confidence(None) == 0.0

    @pytest.mark.parametrize("score, emoji", [(100, "✅"), (70, "✅"), (69, "⚠️"), (40, "⚠️"), (39, "❓")])
    def test_confidence_emoji(self, score, emoji):
        assert confidence_emoji(score) == emoji


class TestFormatSearchResults:
    """Test markdown rendering of search payloads."""

    def test_header_and_sections(self):
        payload = with_fact_check(search_payload(
            query="pocketflow",
            abstract={"text": "A tiny framework.", "source": "Wikipedia"},
            results=[{"title": "PocketFlow", "snippet": "Graph workflows", "url": "https://example.org"}],
        ), "pocketflow")

        text = format_search_results(payload)

        assert text.startswith('🔍 **Search Results from DuckDuckGo:** "pocketflow"')
        assert "📋 **Summary:**" in text
        assert "*Source: Wikipedia*" in text
        assert "**Confidence:** 55%" in text
        assert "🔗 https://example.org" in text

    def test_links_can_be_omitted(self):
        payload = search_payload(results=[{"title": "PocketFlow", "url": "https://example.org"}])
        assert "https://example.org" not in format_search_results(payload, include_links=False)

    def test_failed_search(self):
        assert format_search_results({"success": False}).startswith("❌ **Search Failed**")

    def test_empty_search(self):
        assert "No direct results found" in format_search_results(search_payload())


class TestGatherSources:
    """Test concurrent gathering."""

    @pytest.mark.asyncio
    async def test_all_sources_settle(self):
        search = AsyncMock(return_value=search_payload(results=[{"title": "a"}]))

        async def fetch_docs(query, site):
            if site == "stackoverflow":
                raise ConnectionError("stackoverflow unreachable")
            return doc_payload(query, site)

        records = await gather_sources(
            "pocketflow", search, fetch_docs,
            doc_sites=["github", "stackoverflow", "mdn"], max_results=7,
        )

        assert [r.type for r in records] == [
            "web_search", "documentation_github", "documentation_stackoverflow", "documentation_mdn",
        ]
        assert records[0].succeeded
        assert records[0].result["factCheck"]["confidenceScore"] == 25
        assert records[1].succeeded and records[1].site == "github"
        assert not records[2].succeeded
        assert "unreachable" in records[2].error
        assert records[3].succeeded
        search.assert_awaited_once_with("pocketflow", max_results=7)

    @pytest.mark.asyncio
    async def test_timeout_degrades_source(self):
        async def slow_search(query, *, max_results=5):
            await asyncio.sleep(5)
            return search_payload()

        records = await gather_sources("pocketflow", slow_search, timeout=0.05)

        assert len(records) == 1
        assert records[0].error == "timed out after 0.05s"
        assert not records[0].succeeded

    @pytest.mark.asyncio
    async def test_unsuccessful_payload_is_degraded(self):
        search = AsyncMock(return_value={"success": False, "error": "rate limited"})

        records = await gather_sources("pocketflow", search)

        assert records[0].error == "rate limited"
        assert records[0].result == {"success": False, "error": "rate limited"}
        assert "factCheck" not in records[0].result

    @pytest.mark.asyncio
    async def test_non_dict_payload_is_degraded(self):
        records = await gather_sources("pocketflow", AsyncMock(return_value="oops"))
        assert records[0].error == "unexpected str payload"

    @pytest.mark.asyncio
    async def test_no_sources(self):
        assert await gather_sources("pocketflow", None) == []

    @pytest.mark.asyncio
    async def test_docs_skipped_without_sites(self):
        fetch_docs = AsyncMock()

        records = await gather_sources("pocketflow", None, fetch_docs, doc_sites=[])

        assert records == []
        fetch_docs.assert_not_called()

    @pytest.mark.asyncio
    async def test_cancellation_is_not_swallowed(self):
        async def cancelled_search(query, *, max_results=5):
            raise asyncio.CancelledError()

        with pytest.raises(asyncio.CancelledError):
            await gather_sources("pocketflow", cancelled_search)
