"""Conversation relevance scoring and context selection."""

from chimpflow.conversation.context_builder import ContextBuilder, estimate_tokens
from chimpflow.conversation.intelligence import ConversationIntelligence
from chimpflow.conversation.models import (
    BotIntent,
    ConversationMessage,
    RelevanceComponents,
    RelevanceScore,
    ScoredMessage,
)
from chimpflow.conversation.threads import (
    ConversationThread,
    ThreadAnalysis,
    analyze_conversation_threads,
)

__all__ = [
    "BotIntent",
    "ContextBuilder",
    "ConversationIntelligence",
    "ConversationMessage",
    "ConversationThread",
    "RelevanceComponents",
    "RelevanceScore",
    "ScoredMessage",
    "ThreadAnalysis",
    "analyze_conversation_threads",
    "estimate_tokens",
]
