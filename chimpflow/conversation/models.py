"""Data types for conversation scoring and context selection."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Union

from chimpflow.utils.helpers import to_epoch


@dataclass(frozen=True)
class ConversationMessage:
    """A candidate message for context building."""
    content: str
    timestamp: float  # POSIX seconds
    user_id: str = ""
    is_reply: bool = False
    reply_to_bot_message: bool = False
    reply_chain_depth: int = 0

    @classmethod
    def create(
        cls,
        content: str,
        timestamp: Union[float, int, datetime],
        user_id: str = "",
        **kwargs: Any,
    ) -> "ConversationMessage":
        """Build a message, accepting datetime timestamps."""
        return cls(content=content, timestamp=to_epoch(timestamp), user_id=user_id, **kwargs)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ConversationMessage":
        """Build from a snake_case or camelCase mapping."""
        return cls.create(
            content=data.get("content", ""),
            timestamp=data.get("timestamp", 0),
            user_id=str(data.get("user_id", data.get("userId", ""))),
            is_reply=bool(data.get("is_reply", data.get("isReply", False))),
            reply_to_bot_message=bool(
                data.get("reply_to_bot_message", data.get("replyToBotMessage", False))
            ),
            reply_chain_depth=int(data.get("reply_chain_depth", data.get("replyChainDepth", 0))),
        )


@dataclass(frozen=True)
class BotIntent:
    """Whether a message is addressed to the assistant."""
    is_bot_directed: bool
    confidence: float
    patterns: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class RelevanceComponents:
    temporal: float = 0.0
    bot_directed: float = 0.0
    semantic: float = 0.0
    reply: float = 0.0
    user: float = 0.0

    def to_dict(self) -> Dict[str, float]:
        return {
            "temporal": self.temporal,
            "bot_directed": self.bot_directed,
            "semantic": self.semantic,
            "reply": self.reply,
            "user": self.user,
        }


@dataclass(frozen=True)
class RelevanceScore:
    """Composite relevance of one message. Derived per evaluation, never stored."""
    total_score: float
    components: RelevanceComponents = field(default_factory=RelevanceComponents)
    is_bot_directed: bool = False
    patterns: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class ScoredMessage:
    """A candidate message annotated with its relevance."""
    message: ConversationMessage
    relevance_score: float
    relevance_components: RelevanceComponents
    is_bot_directed: bool
    original_index: int

    @property
    def content(self) -> str:
        return self.message.content

    @property
    def timestamp(self) -> float:
        return self.message.timestamp

    @property
    def user_id(self) -> str:
        return self.message.user_id
