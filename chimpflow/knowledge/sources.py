"""Information sources: parallel gathering and fact-check scoring.

Search and documentation clients are injected. They must raise on
failure; a raised error, a timeout, or an unsuccessful payload turns the
source into a degraded ``SourceRecord`` instead of failing the gather.

Search payload shape (camelCase, as returned by the search client and as
stored in the knowledge cache)::

    {"success": True,
     "data": {"query": ..., "source": ..., "instantAnswer": {"text", "title", "source"},
              "abstract": {"text", "source"}, "infobox": {"content": [{"label", "value"}]},
              "results": [{"title", "snippet", "url"}]},
     "factCheck": {"confidenceScore": ..., "verification": ..., "sources": ...}}
"""

import asyncio
import time
from typing import Any, Awaitable, Dict, List, Optional, Protocol, Sequence, Tuple

from loguru import logger

from chimpflow.knowledge.models import DOCUMENTATION_PREFIX, WEB_SEARCH, SourceRecord
from chimpflow.utils.helpers import preview


class SearchFn(Protocol):
    async def __call__(self, query: str, *, max_results: int = 5) -> Dict[str, Any]: ...


class FetchDocsFn(Protocol):
    async def __call__(self, query: str, site: str) -> Dict[str, Any]: ...


BASE_CONFIDENCE = 20
INSTANT_ANSWER_BONUS = 40
ABSTRACT_BONUS = 30
PER_RESULT_BONUS = 5
MAX_RESULTS_BONUS = 30
INFOBOX_BONUS = 20
NO_CONTENT_CONFIDENCE = 40

MAX_LISTED_RESULTS = 3
MAX_SNIPPET = 120


def score_search_data(data: Dict[str, Any]) -> Tuple[float, str]:
    """Confidence (0-100) and a verification sentence for a search payload."""
    instant = data.get("instantAnswer")
    abstract = data.get("abstract")
    results = data.get("results") or []
    infobox = data.get("infobox") or {}

    score = BASE_CONFIDENCE
    verification = "Search completed but no specific verification found"

    if instant:
        score += INSTANT_ANSWER_BONUS
        verification = instant.get("text") or verification

    if abstract and abstract.get("source") != "Unknown":
        score += ABSTRACT_BONUS
        verification = abstract.get("text") or verification

    if results:
        score += min(len(results) * PER_RESULT_BONUS, MAX_RESULTS_BONUS)

    if infobox.get("content"):
        score += INFOBOX_BONUS
        if not instant and not abstract:
            verification = "Information found in knowledge base"

    if not instant and not abstract and not results:
        score = NO_CONTENT_CONFIDENCE
        verification = "Search completed, but the search service returned no direct answer for this query."

    return min(score, 100), verification


def with_fact_check(result: Dict[str, Any], statement: str) -> Dict[str, Any]:
    """Attach a ``factCheck`` block unless the search client supplied one."""
    if not result.get("success") or result.get("factCheck"):
        return result

    data = result.get("data") or {}
    score, verification = score_search_data(data)
    results = data.get("results") or []
    infobox = data.get("infobox") or {}
    return {
        **result,
        "factCheck": {
            "statement": statement,
            "confidenceScore": score,
            "verification": verification,
            "sources": len(results),
            "hasInstantAnswer": bool(data.get("instantAnswer")),
            "hasAbstract": bool(data.get("abstract")),
            "hasInfobox": bool(infobox.get("content")),
        },
    }


def search_confidence(result: Optional[Dict[str, Any]]) -> float:
    if not result:
        return 0.0
    return float((result.get("factCheck") or {}).get("confidenceScore") or 0)


def confidence_emoji(confidence: float) -> str:
    if confidence >= 70:
        return "✅"
    if confidence >= 40:
        return "⚠️"
    return "❓"


def format_search_results(result: Dict[str, Any], include_links: bool = True) -> str:
    """Render a search payload as chat markdown."""
    if not result.get("success"):
        return "❌ **Search Failed**\nUnable to retrieve search results at this time."

    data = result.get("data") or {}
    fact_check = result.get("factCheck")
    source = data.get("source") or "web search"
    results = data.get("results") or []
    instant = data.get("instantAnswer")
    abstract = data.get("abstract")

    lines = [f'🔍 **Search Results from {source}:** "{data.get("query", "")}"', ""]

    if instant:
        lines.append(f"💡 **{instant.get('title') or 'Quick Answer'}:**")
        lines.append(instant.get("text", ""))
        if instant.get("source") and instant.get("source") != source:
            lines.append(f"*Source: {instant['source']}*")
        lines.append("")

    if abstract and abstract.get("text"):
        lines.append("📋 **Summary:**")
        lines.append(abstract["text"])
        if abstract.get("source") and abstract.get("source") != "Unknown":
            lines.append(f"*Source: {abstract['source']}*")
        lines.append("")

    infobox = (data.get("infobox") or {}).get("content") or []
    if infobox:
        lines.append("📊 **Key Information:**")
        for item in infobox[:3]:
            if item.get("label") and item.get("value"):
                lines.append(f"• **{item['label']}**: {item['value']}")
        lines.append("")

    if fact_check:
        score = fact_check.get("confidenceScore", 0)
        lines.append(f"{confidence_emoji(score)} **Confidence:** {score}%")
        lines.append("")

    if results:
        lines.append("📖 **Related Information:**")
        for index, item in enumerate(results[:MAX_LISTED_RESULTS], 1):
            title = item.get("title", "")
            lines.append(f"{index}. **{title}**")
            snippet = item.get("snippet")
            if snippet and snippet != title:
                if len(snippet) > MAX_SNIPPET:
                    snippet = snippet[:MAX_SNIPPET] + "..."
                lines.append(f"   {snippet}")
            if include_links and item.get("url"):
                lines.append(f"   🔗 {item['url']}")
            lines.append("")
    elif not instant and not abstract:
        lines.append(f"📝 **Note:** No direct results found, but search was completed using {source}.")
        lines.append("")

    if results or instant or abstract:
        lines.append(f"*Searched via {source} • {len(results)} results*")

    return "\n".join(lines).rstrip()


async def _collect(
    kind: str,
    call: Awaitable[Dict[str, Any]],
    timeout: Optional[float],
) -> SourceRecord:
    result = await asyncio.wait_for(call, timeout=timeout)
    if not isinstance(result, dict):
        return SourceRecord(type=kind, error=f"unexpected {type(result).__name__} payload")
    if not result.get("success"):
        return SourceRecord(type=kind, result=result, error=str(result.get("error") or "source returned no data"))
    return SourceRecord(type=kind, result=result)


async def gather_sources(
    query: str,
    search: Optional[SearchFn],
    fetch_docs: Optional[FetchDocsFn] = None,
    *,
    doc_sites: Sequence[str] = (),
    max_results: int = 5,
    timeout: Optional[float] = None,
) -> List[SourceRecord]:
    """
    Query every source concurrently and wait for all of them to settle.

    Args:
        query: Cleaned query text.
        search: Web search client; skipped when None.
        fetch_docs: Documentation client; skipped when None.
        doc_sites: Documentation sites to ask (empty for non-code queries).
        max_results: Passed to the search client.
        timeout: Per-source timeout in seconds.

    Returns:
        One record per source, in launch order. Failed sources carry
        ``error``; the web search record carries a ``factCheck`` block.
    """
    kinds: List[str] = []
    calls = []

    if search is not None:
        kinds.append(WEB_SEARCH)
        calls.append(_collect(WEB_SEARCH, search(query, max_results=max_results), timeout))

    if fetch_docs is not None:
        for site in doc_sites:
            kind = f"{DOCUMENTATION_PREFIX}{site}"
            kinds.append(kind)
            calls.append(_collect(kind, fetch_docs(query, site), timeout))

    if not calls:
        return []

    start = time.time()
    outcomes = await asyncio.gather(*calls, return_exceptions=True)
    elapsed = (time.time() - start) * 1000

    records: List[SourceRecord] = []
    for kind, outcome in zip(kinds, outcomes):
        if isinstance(outcome, asyncio.TimeoutError):
            logger.warning(f"Source {kind} timed out after {timeout}s")
            records.append(SourceRecord(type=kind, error=f"timed out after {timeout}s"))
        elif isinstance(outcome, Exception):
            logger.warning(f"Information gathering failed for source {kind}: {outcome}")
            records.append(SourceRecord(type=kind, error=str(outcome) or type(outcome).__name__))
        elif isinstance(outcome, BaseException):
            raise outcome
        else:
            if outcome.error:
                logger.info(f"Source {kind} attempted but returned no results: {outcome.error}")
            elif kind == WEB_SEARCH:
                outcome.result = with_fact_check(outcome.result, query)
            records.append(outcome)

    logger.debug(f"Gathered {len(records)} sources for {preview(query)!r} in {elapsed:.0f}ms")
    return records
