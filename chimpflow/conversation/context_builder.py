"""Token-budgeted context selection.

Picks the subset of candidate messages the model should see:
high-relevance messages first, a sample of ambient chatter second, then
everything back in chronological order.
"""

import math
import time
from collections import Counter
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

from loguru import logger

from chimpflow.config.schema import ConversationConfig
from chimpflow.conversation.intelligence import ConversationIntelligence
from chimpflow.conversation.models import ConversationMessage, ScoredMessage

CHARS_PER_TOKEN = 4
HIGH_RELEVANCE_SCORE = 0.6
MAX_BOT_REFERENCES = 3


def estimate_tokens(text: str) -> int:
    """Rough token estimate (~4 characters per token)."""
    return math.ceil(len(text or "") / CHARS_PER_TOKEN)


class ContextBuilder:
    """
    Selects conversation context within a token budget.

    Two-phase admission: bot-directed or strongly relevant messages are
    admitted first in score order, then up to ``floor(ambient * ratio)``
    ambient messages. Any message that would overflow the budget is
    skipped, never truncated.
    """

    def __init__(
        self,
        intelligence: Optional[ConversationIntelligence] = None,
        config: Optional[ConversationConfig] = None,
    ):
        self.intelligence = intelligence or ConversationIntelligence(config)
        self.config = config or self.intelligence.config

    estimate_tokens = staticmethod(estimate_tokens)

    def score_messages(
        self,
        messages: Sequence[ConversationMessage],
        recent_bot_messages: Iterable[Union[str, ConversationMessage]] = (),
        now: Optional[float] = None,
    ) -> List[ScoredMessage]:
        """Score every candidate, keeping input order."""
        now = time.time() if now is None else now
        references = list(recent_bot_messages)[:MAX_BOT_REFERENCES]
        per_user = Counter(m.user_id for m in messages)

        scored = []
        for index, message in enumerate(messages):
            relevance = self.intelligence.calculate_relevance_score(
                message,
                recent_messages=references,
                user_message_count=per_user[message.user_id],
                now=now,
            )
            scored.append(ScoredMessage(
                message=message,
                relevance_score=relevance.total_score,
                relevance_components=relevance.components,
                is_bot_directed=relevance.is_bot_directed,
                original_index=index,
            ))
        return scored

    def build_weighted_context(
        self,
        messages: Sequence[ConversationMessage],
        max_tokens: Optional[int] = None,
        min_relevance: Optional[float] = None,
        ambient_ratio: Optional[float] = None,
        now: Optional[float] = None,
        recent_bot_messages: Iterable[Union[str, ConversationMessage]] = (),
    ) -> List[ScoredMessage]:
        """
        Select messages for the model's context.

        Args:
            messages: Candidate messages in any order.
            max_tokens: Token budget (defaults to config).
            min_relevance: Score floor; anything below is dropped.
            ambient_ratio: Share of ambient messages that may be admitted.
            now: Reference time in POSIX seconds.
            recent_bot_messages: The assistant's latest replies, used for
                semantic similarity (first 3 are considered).

        Returns:
            Selected messages sorted by timestamp, oldest first. The sum
            of their estimated tokens never exceeds ``max_tokens``.
        """
        if not messages:
            return []

        max_tokens = self.config.max_weighted_context_tokens if max_tokens is None else max_tokens
        min_relevance = self.config.min_relevance_threshold if min_relevance is None else min_relevance
        ambient_ratio = self.config.ambient_context_ratio if ambient_ratio is None else ambient_ratio

        scored = self.score_messages(messages, recent_bot_messages, now)
        scored.sort(key=lambda m: m.relevance_score, reverse=True)
        relevant = [m for m in scored if m.relevance_score >= min_relevance]

        high = [m for m in relevant if m.is_bot_directed or m.relevance_score > HIGH_RELEVANCE_SCORE]
        ambient = [m for m in relevant if not (m.is_bot_directed or m.relevance_score > HIGH_RELEVANCE_SCORE)]
        max_ambient = math.floor(len(ambient) * ambient_ratio)

        selected: List[ScoredMessage] = []
        token_count = 0

        for message in high:
            tokens = estimate_tokens(message.content)
            if token_count + tokens <= max_tokens:
                selected.append(message)
                token_count += tokens

        ambient_added = 0
        for message in ambient:
            if ambient_added >= max_ambient:
                break
            tokens = estimate_tokens(message.content)
            if token_count + tokens <= max_tokens:
                selected.append(message)
                token_count += tokens
                ambient_added += 1

        selected.sort(key=lambda m: m.timestamp)

        logger.debug(
            f"Built weighted context: {len(selected)}/{len(messages)} messages "
            f"({len(high)} high-relevance, {ambient_added} ambient, ~{token_count} tokens)"
        )
        return selected

    def to_chat_messages(
        self,
        selected: Iterable[ScoredMessage],
        bot_user_id: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """Render a selection as chat-completion messages.

        Messages authored by ``bot_user_id`` become assistant turns,
        everything else is a user turn.
        """
        chat = []
        for item in selected:
            role = "assistant" if bot_user_id and item.user_id == bot_user_id else "user"
            chat.append({"role": role, "content": item.content})
        return chat
