"""Conversation intelligence: relevance scoring for chat messages.

Four independent scores feed one composite relevance value:

- temporal decay: exponential recency weight with a floor
- bot-directed intent: is the message addressed to the assistant
- semantic similarity: keyword overlap with recent assistant messages
- composite relevance: decay gates the sum of the other boosts
"""

import math
import re
import time
from typing import Iterable, List, Optional, Pattern, Sequence, Tuple, Union

from loguru import logger

from chimpflow.config.schema import ConversationConfig
from chimpflow.conversation.models import (
    BotIntent,
    ConversationMessage,
    RelevanceComponents,
    RelevanceScore,
)
from chimpflow.utils.helpers import preview

MIN_DECAY = 0.1
BASE_RELEVANCE = 0.3
SEMANTIC_WEIGHT = 0.3
MAX_REFERENCE_MESSAGES = 3
MAX_USER_BOOST = 0.1

MENTION_CONFIDENCE = 1.0
COMMAND_CONFIDENCE = 0.8
QUESTION_WEIGHT = 0.5
DIRECTED_WEIGHT = 0.3
CONTINUATION_WEIGHT = 0.2
GENERAL_CHAT_FACTOR = 0.5
SHORT_MESSAGE_FACTOR = 0.3
SHORT_MESSAGE_LENGTH = 3

TOPIC_WORDS = frozenset({"weather", "time", "server", "stats", "image", "generate", "help"})
TOPIC_BOOST = 0.2

PLATFORM_MENTION = re.compile(r"<@!?\d+>")
COMMAND_PREFIX = re.compile(r"^[!/]")

CONTINUATION_PATTERNS: Tuple[Tuple[str, Pattern[str]], ...] = (
    ("continuation:conjunction", re.compile(r"^(?:and|also|but|however|though|still|yet)\s", re.I)),
    ("continuation:answer", re.compile(r"^(?:no|yes|yeah|nah|yep|sure|ok|okay)\s?$", re.I)),
    ("continuation:thanks", re.compile(r"^(?:thanks|thank you|thx)\s?", re.I)),
)

GENERAL_CHAT_PATTERNS: Tuple[Tuple[str, Pattern[str]], ...] = (
    ("general:laughter", re.compile(r"^(?:lol|haha|lmao|rofl)\s?$", re.I)),
    ("general:reaction", re.compile(r"^(?:nice|cool|wow|awesome)\s?$", re.I)),
    ("general:custom_emoji", re.compile(r"<a?:.+?:\d+>")),
    # pictographs, emoticons, transport and supplemental symbols only
    ("general:emoji", re.compile("[\U0001F300-\U0001F64F\U0001F680-\U0001F6FF\U0001F900-\U0001F9FF]")),
)

_NON_WORD = re.compile(r"[^\w\s]")


def _directed_patterns(bot_names: Sequence[str]) -> Tuple[Tuple[str, Pattern[str], float], ...]:
    """Patterns that suggest a message is addressed to the bot, with weights."""
    names = "|".join(re.escape(name.lower()) for name in bot_names if name) or "bot"
    return (
        ("bot_name", re.compile(rf"\b(?:{names})\b", re.I), DIRECTED_WEIGHT),
        ("at_mention", re.compile(r"@\w+"), DIRECTED_WEIGHT),
        ("greeting", re.compile(rf"^(?:hey|hi|hello|yo)\s+(?:{names})\b", re.I), DIRECTED_WEIGHT),
        ("can_you", re.compile(r"can you\s+", re.I), DIRECTED_WEIGHT),
        ("please", re.compile(r"please\s+", re.I), DIRECTED_WEIGHT),
        ("could_you", re.compile(r"could you\s+", re.I), DIRECTED_WEIGHT),
        ("would_you", re.compile(r"would you\s+", re.I), DIRECTED_WEIGHT),
        ("question_mark", re.compile(r"\?$"), QUESTION_WEIGHT),
        ("wh_question", re.compile(r"^(?:what|where|when|how|why|who)(?:\s|'s\s)", re.I), QUESTION_WEIGHT),
    )


def _word_set(text: str) -> set:
    words = _NON_WORD.sub(" ", text.lower()).split()
    return {word for word in words if len(word) > 2}


class ConversationIntelligence:
    """Scores messages for relevance to the assistant.

    All scoring methods are pure: they depend only on their arguments and
    the configuration captured at construction.
    """

    def __init__(self, config: Optional[ConversationConfig] = None):
        self.config = config or ConversationConfig()
        self._directed = _directed_patterns(self.config.bot_names)

    def calculate_temporal_decay(self, message_timestamp: float, now: Optional[float] = None) -> float:
        """Recency weight in [0.1, 1.0].

        Future timestamps count as brand new; anything older than three
        memory windows gets the floor.
        """
        now = time.time() if now is None else now
        age_minutes = (now - message_timestamp) / 60

        if age_minutes <= 0:
            return 1.0
        if age_minutes >= self.config.memory_minutes * 3:
            return MIN_DECAY

        return max(math.exp(-age_minutes * self.config.decay_rate), MIN_DECAY)

    def detect_bot_intent(
        self,
        content: str,
        is_reply: bool = False,
        reply_to_bot_message: bool = False,
    ) -> BotIntent:
        """Decide whether a message is addressed to the assistant."""
        if not content or not isinstance(content, str):
            return BotIntent(is_bot_directed=False, confidence=0.0, patterns=[])

        normalized = content.lower().strip()
        matched: List[str] = []
        confidence = 0.0

        if PLATFORM_MENTION.search(content):
            confidence = MENTION_CONFIDENCE
            matched.append("platform_mention")
        elif COMMAND_PREFIX.search(normalized):
            confidence = COMMAND_CONFIDENCE
            matched.append("command")
        else:
            for name, pattern, weight in self._directed:
                if pattern.search(normalized):
                    matched.append(name)
                    confidence += weight

        for name, pattern in CONTINUATION_PATTERNS:
            if pattern.search(normalized):
                matched.append(name)
                confidence += CONTINUATION_WEIGHT

        for name, pattern in GENERAL_CHAT_PATTERNS:
            if pattern.search(normalized):
                matched.append(name)
                confidence *= GENERAL_CHAT_FACTOR

        if is_reply and reply_to_bot_message:
            confidence += self.config.reply_chain_boost
            matched.append("reply_to_bot")

        if len(normalized) < SHORT_MESSAGE_LENGTH:
            confidence *= SHORT_MESSAGE_FACTOR

        confidence = min(max(confidence, 0.0), 1.0)
        is_bot_directed = confidence > self.config.bot_directed_threshold

        if is_bot_directed:
            logger.debug(
                f"Detected bot-directed message: {preview(content)!r} "
                f"(confidence={confidence:.2f}, patterns={matched})"
            )

        return BotIntent(is_bot_directed=is_bot_directed, confidence=confidence, patterns=matched)

    def calculate_semantic_similarity(self, first: str, second: str) -> float:
        """Jaccard overlap of significant words, plus a shared-topic boost."""
        if not first or not second:
            return 0.0

        words_a = _word_set(first)
        words_b = _word_set(second)
        if not words_a or not words_b:
            return 0.0

        similarity = len(words_a & words_b) / len(words_a | words_b)
        if TOPIC_WORDS & words_a & words_b:
            similarity += TOPIC_BOOST

        return min(similarity, 1.0)

    def calculate_relevance_score(
        self,
        message: ConversationMessage,
        recent_messages: Iterable[Union[str, ConversationMessage]] = (),
        user_message_count: int = 1,
        now: Optional[float] = None,
    ) -> RelevanceScore:
        """Composite relevance in [0, 1].

        ``total = temporal * (0.3 + bot_directed + semantic + reply + user)``
        so recency gates every other signal.
        """
        if message is None or not message.content:
            return RelevanceScore(total_score=0.0)

        temporal = self.calculate_temporal_decay(message.timestamp, now)

        intent = self.detect_bot_intent(
            message.content,
            is_reply=message.is_reply,
            reply_to_bot_message=message.reply_to_bot_message,
        )
        bot_directed = self.config.bot_directed_boost if intent.is_bot_directed else 0.0

        references = [
            ref if isinstance(ref, str) else ref.content
            for ref in list(recent_messages)[:MAX_REFERENCE_MESSAGES]
        ]
        semantic = 0.0
        if references:
            semantic = max(
                self.calculate_semantic_similarity(message.content, ref) for ref in references
            ) * SEMANTIC_WEIGHT

        reply = self.config.reply_chain_boost if message.reply_chain_depth > 0 else 0.0
        user = min(max(user_message_count, 0) / 10, MAX_USER_BOOST)

        components = RelevanceComponents(
            temporal=temporal,
            bot_directed=bot_directed,
            semantic=semantic,
            reply=reply,
            user=user,
        )
        total = temporal * (BASE_RELEVANCE + bot_directed + semantic + reply + user)
        total = min(max(total, 0.0), 1.0)

        logger.debug(
            f"Relevance {total:.3f} for {preview(message.content, 30)!r} "
            f"(temporal={temporal:.3f}, bot={bot_directed:.3f}, semantic={semantic:.3f}, "
            f"reply={reply:.3f}, user={user:.3f})"
        )

        return RelevanceScore(
            total_score=total,
            components=components,
            is_bot_directed=intent.is_bot_directed,
            patterns=intent.patterns,
        )
