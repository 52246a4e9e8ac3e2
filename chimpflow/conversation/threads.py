"""Group scored messages into conversation threads."""

from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from loguru import logger

from chimpflow.conversation.intelligence import ConversationIntelligence
from chimpflow.conversation.models import ScoredMessage

THREAD_WINDOW_SECONDS = 2 * 60
THREAD_SIMILARITY = 0.6


@dataclass
class ConversationThread:
    """Messages that belong to one exchange."""
    id: str
    messages: List[ScoredMessage] = field(default_factory=list)
    start_time: float = 0.0
    end_time: float = 0.0
    avg_relevance: float = 0.0

    def add(self, message: ScoredMessage) -> None:
        self.messages.append(message)
        self.start_time = min(self.start_time, message.timestamp)
        self.end_time = max(self.end_time, message.timestamp)
        count = len(self.messages)
        self.avg_relevance += (message.relevance_score - self.avg_relevance) / count


@dataclass
class ThreadAnalysis:
    threads: List[ConversationThread] = field(default_factory=list)
    orphans: List[ScoredMessage] = field(default_factory=list)


def analyze_conversation_threads(
    messages: Sequence[ScoredMessage],
    intelligence: Optional[ConversationIntelligence] = None,
) -> ThreadAnalysis:
    """
    Group messages around seeds, in input order.

    A candidate joins the current seed's thread when it is within two
    minutes of the seed, comes from the same user, or is semantically
    similar (> 0.6). A seed that attracts nothing is an orphan.

    Returns:
        Threads ordered by average relevance (highest first) and orphans
        in input order.
    """
    if not messages:
        return ThreadAnalysis()

    intelligence = intelligence or ConversationIntelligence()
    claimed = set()
    threads: List[ConversationThread] = []
    orphans: List[ScoredMessage] = []

    for i, seed in enumerate(messages):
        if i in claimed:
            continue
        claimed.add(i)

        thread = ConversationThread(
            id=f"thread_{i}",
            messages=[seed],
            start_time=seed.timestamp,
            end_time=seed.timestamp,
            avg_relevance=seed.relevance_score,
        )

        for j in range(i + 1, len(messages)):
            if j in claimed:
                continue
            candidate = messages[j]
            related = (
                abs(candidate.timestamp - seed.timestamp) <= THREAD_WINDOW_SECONDS
                or candidate.user_id == seed.user_id
                or intelligence.calculate_semantic_similarity(seed.content, candidate.content)
                > THREAD_SIMILARITY
            )
            if related:
                thread.add(candidate)
                claimed.add(j)

        if len(thread.messages) > 1:
            threads.append(thread)
        else:
            orphans.append(seed)

    threads.sort(key=lambda t: t.avg_relevance, reverse=True)

    logger.debug(
        f"Analyzed conversation threads: {len(messages)} messages, "
        f"{len(threads)} threads, {len(orphans)} orphans"
    )
    return ThreadAnalysis(threads=threads, orphans=orphans)
