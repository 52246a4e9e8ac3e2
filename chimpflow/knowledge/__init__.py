"""Knowledge pipeline: intent detection, gathering, confirmation and answers."""

from chimpflow.knowledge.classifiers import KnowledgeIntentDetector, cache_ttl
from chimpflow.knowledge.flow import KnowledgeFlow
from chimpflow.knowledge.formatter import DISCORD_LIMIT, SAFE_LIMIT, format_for_discord
from chimpflow.knowledge.models import (
    Author,
    ChatMessage,
    IncomingMessage,
    Intent,
    KnowledgeResult,
    SourceRecord,
)
from chimpflow.knowledge.sources import FetchDocsFn, SearchFn

__all__ = [
    "Author",
    "ChatMessage",
    "DISCORD_LIMIT",
    "FetchDocsFn",
    "IncomingMessage",
    "Intent",
    "KnowledgeFlow",
    "KnowledgeIntentDetector",
    "KnowledgeResult",
    "SAFE_LIMIT",
    "SearchFn",
    "SourceRecord",
    "cache_ttl",
    "format_for_discord",
]
