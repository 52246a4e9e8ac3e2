"""KnowledgeFlow: the intent → gather → confirm → respond → format pipeline.

Each stage is a graph node. Stages talk through three keys of a run-local
SharedStore: ``currentIntent``, ``gatheredInformation`` and
``confirmedInformation``. Every request gets its own store, so concurrent
requests never see each other's intent; only the knowledge cache is shared.
Every stage catches its own failures and routes to fallback text; only an
unexpected error escapes to ``process_knowledge_request``, which turns it
into a generic apology.
"""

import time
from typing import Any, Dict, Optional

from loguru import logger

from chimpflow.errors import ChimpflowError
from chimpflow.graph.engine import Flow, Node, SharedStore
from chimpflow.graph.persistent_store import PersistentSharedStore
from chimpflow.knowledge.classifiers import (
    KnowledgeIntentDetector,
    cache_class,
    cache_ttl,
    is_code_related,
)
from chimpflow.knowledge.formatter import format_for_discord
from chimpflow.knowledge.models import (
    KNOWLEDGE_CACHE,
    WEB_SEARCH,
    ConfirmationResult,
    ConfirmedInformation,
    GatheredInformation,
    GatheringResult,
    IncomingMessage,
    Intent,
    IntentResult,
    KnowledgeResult,
    SourceRecord,
)
from chimpflow.knowledge.responses import (
    GENERATION_APOLOGY,
    SYSTEM_ERROR_TEXT,
    build_natural_messages,
    build_structured_report,
    fallback_response,
    needs_structured_response,
)
from chimpflow.knowledge.sources import FetchDocsFn, SearchFn, gather_sources, search_confidence
from chimpflow.providers.base import CompleteFn
from chimpflow.runtime import RuntimeState
from chimpflow.utils.helpers import preview

CURRENT_INTENT = "currentIntent"
GATHERED_INFORMATION = "gatheredInformation"
CONFIRMED_INFORMATION = "confirmedInformation"

WEB_SEARCH_WEIGHT = 0.4
FAILED_SEARCH_CONFIDENCE = 10
DOC_CONFIDENCE_EACH = 20
MAX_DOC_CONFIDENCE = 60
NATURAL_CONFIDENCE = 95

REQUEST_ERROR_TEXT = "I encountered an error while processing your knowledge request."


class KnowledgeFlow:
    """
    Answers knowledge requests from chat messages.

    Collaborators are injected: ``complete`` generates natural answers,
    ``search`` and ``fetch_docs`` gather information. Search results are
    cached in a PersistentSharedStore that survives restarts.
    """

    def __init__(
        self,
        runtime: RuntimeState,
        complete: CompleteFn,
        search: Optional[SearchFn] = None,
        fetch_docs: Optional[FetchDocsFn] = None,
        store: Optional[PersistentSharedStore] = None,
    ):
        self.runtime = runtime
        self.config = runtime.config.knowledge
        self.metrics = runtime.metrics
        self.complete = complete
        self.search = search if self.config.web_search_enabled else None
        self.fetch_docs = fetch_docs if self.config.docs_fetch_enabled else None
        self.store = store if store is not None else PersistentSharedStore(
            self.config.store_file,
            save_delay=self.config.save_debounce_seconds,
        )
        self.detector = KnowledgeIntentDetector(self.config.owner_id)
        self.start_node = self._build_graph()

    def _build_graph(self) -> Node:
        intent = Node("intent_detection", self._detect_intent)
        gather = Node("information_gathering", self._gather_information)
        confirm = Node("confirmation", self._confirm_information)
        respond = Node("response_generation", self._generate_response)
        fmt = Node("discord_formatting", self._format)
        fallback = Node("fallback", self._fallback)

        intent.connect(fallback, lambda out, _s: not out.success)
        intent.connect(gather, lambda out, _s: out.success and out.needs_information)
        intent.connect(respond, lambda out, _s: out.success and not out.needs_information)

        gather.connect(confirm, lambda out, _s: out.success and out.information_gathered)
        gather.connect(respond, lambda out, _s: not (out.success and out.information_gathered))

        confirm.connect(respond)
        respond.connect(fmt)
        fallback.connect(fmt)

        return intent

    def can_receive_code(self, intent: Optional[Intent]) -> bool:
        if intent is None:
            return False
        return intent.is_owner or not self.config.owner_only_code

    # -- stages --------------------------------------------------------------

    async def _detect_intent(self, store: SharedStore, data: Dict[str, Any]) -> IntentResult:
        message = data.get("message")
        try:
            intent = self.detector.detect(message)
        except ChimpflowError as e:
            logger.warning(f"Intent detection failed: {e}")
            return IntentResult(success=False, message=message, error=str(e))

        store.set(CURRENT_INTENT, intent)
        return IntentResult(success=True, intent=intent, message=message)

    async def _gather_information(self, store: SharedStore, _data: IntentResult) -> GatheringResult:
        intent: Intent = store.get(CURRENT_INTENT)
        query = intent.query

        try:
            logger.info(f'Gathering information for query: "{preview(query)}"')

            cached = self._cached_information(query)
            if cached is not None:
                store.set(GATHERED_INFORMATION, cached)
                return GatheringResult(success=True, information_gathered=True, information=cached)

            doc_sites = self.config.doc_sites if is_code_related(query) else []
            if doc_sites and self.fetch_docs is not None:
                logger.info(f"Query detected as code-related, fetching from {len(doc_sites)} documentation sites")

            with self.metrics.timer("knowledge.gather.duration"):
                sources = await gather_sources(
                    query,
                    self.search,
                    self.fetch_docs,
                    doc_sites=doc_sites,
                    max_results=self.config.max_search_results,
                    timeout=self.config.source_timeout,
                )

            information = GatheredInformation(
                query=query,
                sources=sources,
                has_errors=any(s.error for s in sources),
            )
            store.set(GATHERED_INFORMATION, information)

            degraded = sum(1 for s in sources if s.error)
            if degraded:
                self.metrics.incr("knowledge.sources.degraded", degraded)

            web = information.web_search
            if web is not None and web.type == WEB_SEARCH and web.succeeded:
                self.store.cache_search_result(query, web.result, search_confidence(web.result))

            logger.info(f"Information gathering completed: {len(sources)} sources found")
            return GatheringResult(
                success=True,
                information_gathered=len(sources) > 0,
                information=information,
            )
        except Exception as e:
            logger.error(f"Error in information gathering: {e}")
            return GatheringResult(success=False, error=str(e))

    def _cached_information(self, query: str) -> Optional[GatheredInformation]:
        entry = self.store.get_cached_result(query)
        if entry is None:
            return None

        ttl = cache_ttl(query, entry.confidence)
        age = time.time() - entry.timestamp
        if age >= ttl:
            logger.info(f'Cache expired for: "{preview(query)}" ({cache_class(query, entry.confidence)} query)')
            self.metrics.incr("knowledge.cache.expired")
            return None

        logger.info(
            f'Using cached knowledge for: "{preview(query)}" '
            f"(confidence: {entry.confidence}%, TTL: {round(ttl / 60)}min)"
        )
        self.metrics.incr("knowledge.cache.hits")
        return GatheredInformation(
            query=query,
            sources=[SourceRecord(type=KNOWLEDGE_CACHE, result=entry.result)],
            from_cache=True,
        )

    async def _confirm_information(self, store: SharedStore, _data: GatheringResult) -> ConfirmationResult:
        intent: Intent = store.get(CURRENT_INTENT)
        information: GatheredInformation = store.get(GATHERED_INFORMATION)

        try:
            logger.info(f"Confirming information from {information.source_count} sources")

            overall = 0.0
            consistent = 0
            summary = []

            web = information.web_search
            if web is not None:
                fact_check = (web.result or {}).get("factCheck")
                if web.succeeded and fact_check:
                    score = float(fact_check.get("confidenceScore") or 0)
                    overall += score * WEB_SEARCH_WEIGHT
                    summary.append({
                        "type": web.type,
                        "confidence": score,
                        "verification": fact_check.get("verification", "Search completed"),
                        "sources": fact_check.get("sources", 0),
                    })
                    consistent += 1
                elif web.error:
                    overall += FAILED_SEARCH_CONFIDENCE
                    summary.append({
                        "type": web.type,
                        "confidence": FAILED_SEARCH_CONFIDENCE,
                        "verification": "Search attempted but encountered issues",
                        "sources": 0,
                        "error": web.error,
                    })
                    consistent += 1

            docs = [s for s in information.documentation if s.succeeded]
            if docs:
                doc_confidence = min(len(docs) * DOC_CONFIDENCE_EACH, MAX_DOC_CONFIDENCE)
                overall += doc_confidence
                summary.append({
                    "type": "documentation",
                    "confidence": doc_confidence,
                    "sources": len(docs),
                    "sites": [s.site for s in docs],
                })
                consistent += 1

            overall = min(overall, 100.0)
            confirmed = ConfirmedInformation(
                query=intent.query,
                overall_confidence=overall,
                consistent_sources=consistent,
                summary=summary,
                meets_threshold=overall >= self.config.confidence_threshold,
            )
            store.set(CONFIRMED_INFORMATION, confirmed)
            self.store.record_confidence(intent.query, overall)

            logger.info(f"Information confirmation completed: {overall}% confidence")
            return ConfirmationResult(
                success=True,
                confidence=overall,
                meets_threshold=confirmed.meets_threshold,
                confirmation=confirmed,
            )
        except Exception as e:
            logger.error(f"Error in information confirmation: {e}")
            return ConfirmationResult(success=False, error=str(e))

    async def _generate_response(self, store: SharedStore, _data: Any) -> KnowledgeResult:
        intent: Intent = store.get(CURRENT_INTENT)
        information: Optional[GatheredInformation] = store.get(GATHERED_INFORMATION)
        confirmation: Optional[ConfirmedInformation] = store.get(CONFIRMED_INFORMATION)
        can_code = self.can_receive_code(intent)

        try:
            logger.info(f"Generating response for user {intent.user_id} (owner: {intent.is_owner})")

            if needs_structured_response(intent):
                report = build_structured_report(intent, information, confirmation, can_code)
                result = KnowledgeResult(
                    success=True,
                    response=report,
                    type="knowledge",
                    confidence=confirmation.overall_confidence if confirmation else 0.0,
                    has_code=intent.needs_code and can_code,
                )
            else:
                result = await self._generate_natural(intent, information)
        except Exception as e:
            logger.error(f"Error in response generation: {e}")
            self.metrics.incr("knowledge.fallbacks")
            return fallback_response(intent.original_message, can_code, "response_generation", e)

        if not result.response.strip():
            logger.warning("Empty response detected, using fallback")
            self.metrics.incr("knowledge.fallbacks")
            result = fallback_response(intent.original_message, can_code, "empty_response")

        if not result.response.strip():
            logger.error("Final response is still empty")
            result.response = SYSTEM_ERROR_TEXT

        return result

    async def _generate_natural(
        self,
        intent: Intent,
        information: Optional[GatheredInformation],
    ) -> KnowledgeResult:
        logger.info(f"Generating natural response for user {intent.user_id} about: {preview(intent.query)}")
        try:
            completion = await self.complete(
                model=self.config.model,
                messages=build_natural_messages(intent, information),
                max_tokens=self.config.max_response_tokens,
                temperature=self.config.temperature,
            )
        except Exception as e:
            logger.error(f"Error generating natural response: {e}")
            self.metrics.incr("knowledge.generation.errors")
            return KnowledgeResult(
                success=False,
                response=GENERATION_APOLOGY,
                type="natural_conversation",
                confidence=0.0,
                error=str(e),
            )

        text = (completion.text or "").strip()
        logger.info(f"Generated natural response ({len(text)} chars) for user {intent.user_id}")
        return KnowledgeResult(
            success=True,
            response=text,
            type="natural_conversation",
            confidence=NATURAL_CONFIDENCE,
            is_natural=True,
        )

    async def _fallback(self, _store: SharedStore, data: IntentResult) -> KnowledgeResult:
        self.metrics.incr("knowledge.fallbacks")
        content = getattr(data.message, "content", "")
        logger.info("Generating fallback response for reason: intent_detection_failed")
        return fallback_response(content if isinstance(content, str) else "", False, "intent_detection_failed")

    async def _format(self, _store: SharedStore, data: KnowledgeResult) -> KnowledgeResult:
        return format_for_discord(data)

    # -- public API ----------------------------------------------------------

    async def process_knowledge_request(self, message: IncomingMessage) -> KnowledgeResult:
        """Run one request through the pipeline. Never raises."""
        if not self.config.enabled:
            return KnowledgeResult(
                success=False,
                response="Knowledge features are disabled.",
                type="knowledge_disabled",
            )

        start = time.time()
        self.metrics.incr("knowledge.requests")
        author = getattr(message, "author", None)
        user_id = getattr(author, "id", None)

        try:
            logger.info(
                f"Starting knowledge processing for user {user_id}: "
                f"{preview(getattr(message, 'content', '') or '')!r}"
            )
            result = await Flow(self.start_node, SharedStore()).run({"message": message})
        except Exception as e:
            logger.exception(
                f"Error in KnowledgeFlow for user {user_id} after {(time.time() - start) * 1000:.0f}ms: {e}"
            )
            self.metrics.incr("knowledge.errors")
            return KnowledgeResult(
                success=False,
                response=REQUEST_ERROR_TEXT,
                type="error",
                confidence=0.0,
                error=str(e),
            )

        duration = (time.time() - start) * 1000
        logger.info(
            f"Knowledge flow completed: success={result.success}, confidence={result.confidence}, "
            f"has_code={result.has_code}, duration={duration:.0f}ms"
        )
        self.metrics.observe("knowledge.request.duration", duration)
        self.metrics.set_gauge("knowledge.cache.size", len(self.store.knowledge_cache))
        return result

    def get_stats(self) -> Dict[str, Any]:
        return self.store.get_knowledge_stats()

    async def save_knowledge(self) -> None:
        """Force save current knowledge state."""
        logger.info("Force saving knowledge to disk...")
        await self.store.force_save()

    def cleanup(self) -> int:
        """Prune stale, rarely used cache entries."""
        return self.store.cleanup_old_knowledge()

    async def shutdown(self) -> None:
        """Flush knowledge to disk; call before the process exits."""
        logger.info("Shutting down KnowledgeFlow and saving knowledge...")
        await self.store.shutdown()
