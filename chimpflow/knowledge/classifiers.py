"""Knowledge intent detection and query classification."""

import re
import time
from datetime import datetime
from typing import List, Optional

from loguru import logger

from chimpflow.errors import ChimpflowError, ErrorKind
from chimpflow.knowledge.models import IncomingMessage, Intent

HOUR = 60 * 60
FINANCIAL_TTL = HOUR
LOW_CONFIDENCE_TTL = 30 * 60
DEFAULT_TTL = 24 * HOUR
LOW_CONFIDENCE = 50

FINANCIAL_KEYWORDS = (
    "price", "cost", "value", "worth", "bitcoin", "crypto", "stock", "market",
    "currency", "exchange", "trading", "investment", "ethereum", "usd", "dollar",
    "euro", "yen", "rates", "inflation", "economy", "financial", "money",
)

TIME_SENSITIVE_KEYWORDS = (
    "current", "latest", "now", "today", "recent", "new", "breaking", "live",
    "real-time", "updated", "this year", "happening", "trending",
)

CODE_KEYWORDS = (
    "function", "class", "method", "api", "library", "framework", "javascript",
    "python", "node", "react", "vue", "angular", "database", "sql", "mongodb",
    "programming", "code", "implementation", "algorithm", "data structure",
    "design pattern", "architecture", "pocketflow", "workflow", "automation",
    "pipeline",
)


def is_financial_query(query: str) -> bool:
    """Prices and markets go stale quickly."""
    q = query.lower()
    return any(keyword in q for keyword in FINANCIAL_KEYWORDS)


def is_time_sensitive_query(query: str) -> bool:
    q = query.lower()
    if str(datetime.now().year) in q:
        return True
    return any(keyword in q for keyword in TIME_SENSITIVE_KEYWORDS)


def is_code_related(query: str) -> bool:
    q = query.lower()
    return any(keyword in q for keyword in CODE_KEYWORDS)


def cache_ttl(query: str, cached_confidence: float) -> int:
    """Seconds a cached answer for ``query`` stays usable."""
    if is_financial_query(query) or is_time_sensitive_query(query):
        return FINANCIAL_TTL
    if cached_confidence < LOW_CONFIDENCE:
        return LOW_CONFIDENCE_TTL
    return DEFAULT_TTL


def cache_class(query: str, cached_confidence: float) -> str:
    """Label used in log lines for the TTL bucket."""
    if is_financial_query(query):
        return "financial"
    if is_time_sensitive_query(query):
        return "time-sensitive"
    if cached_confidence < LOW_CONFIDENCE:
        return "low-confidence"
    return "general"


class KnowledgeIntentDetector:
    """Decide whether a request needs code, information gathering, or neither.

    Pattern lists are matched against the lower-cased message content.
    """

    CODE_PATTERNS = [
        re.compile(r"give\s+me\s+(?:the\s+)?(?:pocketflow\s+)?code", re.I),
        re.compile(r"show\s+me\s+(?:the\s+)?code", re.I),
        re.compile(r"how\s+to\s+(?:implement|code|build)", re.I),
        re.compile(r"pocketflow\s+(?:implementation|example|code)", re.I),
        re.compile(r"write\s+(?:the\s+)?code", re.I),
    ]

    SEARCH_PATTERNS = [
        re.compile(r"(?:search|look\s+up|lookup|find|confirm|verify|check)", re.I),
        re.compile(r"is\s+(?:it\s+)?true\s+that", re.I),
        re.compile(r"can\s+you\s+(?:confirm|verify|search|tell\s+me)", re.I),
        re.compile(r"what\s+(?:is|are|does|was|were)", re.I),
        re.compile(r"(?:what's|whats)", re.I),
        re.compile(r"documentation|docs", re.I),
        re.compile(r"tell\s+me\s+about", re.I),
        re.compile(r"explain", re.I),
        re.compile(r"information\s+about", re.I),
        re.compile(r"details\s+on", re.I),
        re.compile(r"summary\s+of", re.I),
        re.compile(r"(?:give\s+me|show\s+me)", re.I),
        re.compile(r"how\s+(?:does|do|can|to|is|are)", re.I),
        re.compile(r"why\s+(?:is|are|does|do|did|was|were)", re.I),
        re.compile(r"where\s+(?:is|are|can|to|was|were)", re.I),
        re.compile(r"when\s+(?:is|are|was|were|did|do|does)", re.I),
        re.compile(r"who\s+(?:is|are|was|were)", re.I),
        re.compile(r"which\s+(?:is|are|was|were)", re.I),
        re.compile(r"do\s+you\s+know", re.I),
        re.compile(r"have\s+you\s+heard", re.I),
        re.compile(r"(?:top|best|latest|current|new|recent)", re.I),
        re.compile(r"(?:tutorial|guide|example)", re.I),
        re.compile(r"(?:price|cost|value)", re.I),
        re.compile(r"(?:javascript|python|react|node|programming|coding|development|tech|technology)", re.I),
    ]

    # Applied in order to strip command phrasing from the query
    QUERY_CLEANUP = [
        re.compile(r"^(?:search|look\s+up|find|confirm|verify|check)\s+", re.I),
        re.compile(r"^(?:is\s+(?:it\s+)?true\s+that)\s+", re.I),
        re.compile(r"^(?:can\s+you\s+(?:confirm|verify|search))\s+", re.I),
        re.compile(r"^(?:what\s+(?:is|are|does))\s+", re.I),
        re.compile(r",?\s*(?:and\s+)?(?:give|show)\s+me\s+(?:the\s+)?code.*$", re.I),
    ]

    MIN_INFORMATION_LENGTH = 15

    def __init__(self, owner_id: str = ""):
        self.owner_id = str(owner_id) if owner_id else ""

    def matched_search_patterns(self, content: str) -> List[str]:
        return [p.pattern for p in self.SEARCH_PATTERNS if p.search(content)]

    def needs_code(self, content: str) -> bool:
        return any(p.search(content) for p in self.CODE_PATTERNS)

    def needs_information(self, content: str) -> bool:
        return (
            any(p.search(content) for p in self.SEARCH_PATTERNS)
            or len(content) > self.MIN_INFORMATION_LENGTH
            or "?" in content
        )

    def extract_query(self, content: str) -> str:
        """Strip leading command verbs and a trailing code request."""
        query = content
        for pattern in self.QUERY_CLEANUP:
            query = pattern.sub("", query)
        return query.strip()

    def detect(self, message: IncomingMessage, now: Optional[float] = None) -> Intent:
        """
        Classify a knowledge request.

        Raises:
            ChimpflowError: PLATFORM if the message has no readable content,
                VALIDATION if it carries no user id or only whitespace.
        """
        raw = getattr(message, "content", None)
        if not isinstance(raw, str):
            raise ChimpflowError(
                ErrorKind.PLATFORM,
                "Message has no text content",
                component="knowledge_intent",
                operation="detect",
            )

        author = getattr(message, "author", None)
        user_id = getattr(author, "id", None) if author is not None else None
        if not user_id:
            logger.warning("No user ID found in message object")
            raise ChimpflowError(
                ErrorKind.VALIDATION,
                "Missing user context",
                code="MISSING_USER_ID",
                component="knowledge_intent",
                operation="detect",
            )
        user_id = str(user_id)

        if not raw.strip():
            raise ChimpflowError(
                ErrorKind.VALIDATION,
                "Empty query",
                code="EMPTY_QUERY",
                component="knowledge_intent",
                operation="detect",
            )

        content = raw.lower()
        needs_code = self.needs_code(content)
        needs_information = self.needs_information(content)
        matched = self.matched_search_patterns(content)

        if matched:
            logger.debug(f"Search patterns matched: {', '.join(matched)}")

        logger.info(
            f"Intent detected: {'information gathering' if needs_information else 'direct'}"
            f"{' + code generation' if needs_code else ''} - matched {len(matched)} search patterns"
        )

        query = self.extract_query(content)
        if not query:
            # nothing left after cleanup, e.g. "give me the code"
            query = content.strip()

        return Intent(
            original_message=content,
            query=query,
            needs_code=needs_code,
            needs_information=needs_information,
            user_id=user_id,
            is_owner=bool(self.owner_id) and user_id == self.owner_id,
            timestamp=time.time() if now is None else now,
        )
