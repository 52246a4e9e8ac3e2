"""Data types passed between knowledge pipeline stages."""

import time
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional, Protocol, runtime_checkable

WEB_SEARCH = "web_search"
KNOWLEDGE_CACHE = "knowledge_cache"
DOCUMENTATION_PREFIX = "documentation_"


@runtime_checkable
class MessageAuthor(Protocol):
    id: Any


@runtime_checkable
class IncomingMessage(Protocol):
    """The fields of a chat message the knowledge pipeline reads.

    Platform message objects satisfy this without adaptation as long as
    they expose ``content``, ``timestamp`` and ``author.id``.
    """
    content: str
    timestamp: Any
    author: Optional[MessageAuthor]


@dataclass
class Author:
    id: str = ""
    name: str = ""


@dataclass
class ChatMessage:
    """Platform-neutral incoming message."""
    content: str
    author: Optional[Author] = None
    timestamp: float = field(default_factory=time.time)
    id: str = ""
    reference: Optional[str] = None  # id of the message this replies to


@dataclass
class Intent:
    """What a knowledge request asks for."""
    original_message: str  # lower-cased content
    query: str
    needs_code: bool
    needs_information: bool
    user_id: str
    is_owner: bool
    timestamp: float = field(default_factory=time.time)


@dataclass
class IntentResult:
    success: bool
    intent: Optional[Intent] = None
    message: Any = None
    error: Optional[str] = None

    @property
    def needs_information(self) -> bool:
        return bool(self.intent and self.intent.needs_information)

    @property
    def needs_code(self) -> bool:
        return bool(self.intent and self.intent.needs_code)


@dataclass
class SourceRecord:
    """Outcome of one information source.

    A failed or timed-out source is kept with ``error`` set so the
    confirmation stage can still account for it.
    """
    type: str
    result: Optional[Dict[str, Any]] = None
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.error is None and bool(self.result and self.result.get("success"))

    @property
    def is_documentation(self) -> bool:
        return self.type.startswith(DOCUMENTATION_PREFIX)

    @property
    def is_web_search(self) -> bool:
        return self.type in (WEB_SEARCH, KNOWLEDGE_CACHE)

    @property
    def site(self) -> str:
        return self.type[len(DOCUMENTATION_PREFIX):] if self.is_documentation else ""


@dataclass
class GatheredInformation:
    query: str
    sources: List[SourceRecord] = field(default_factory=list)
    gathering_time: float = field(default_factory=time.time)
    has_errors: bool = False
    from_cache: bool = False

    @property
    def source_count(self) -> int:
        return len(self.sources)

    @property
    def web_search(self) -> Optional[SourceRecord]:
        """The web search (or cached search) source, if any."""
        return next((s for s in self.sources if s.is_web_search), None)

    @property
    def documentation(self) -> List[SourceRecord]:
        return [s for s in self.sources if s.is_documentation]


@dataclass
class GatheringResult:
    success: bool
    information_gathered: bool = False
    information: Optional[GatheredInformation] = None
    error: Optional[str] = None


@dataclass
class ConfirmedInformation:
    query: str
    overall_confidence: float
    consistent_sources: int
    summary: List[Dict[str, Any]] = field(default_factory=list)
    meets_threshold: bool = False
    timestamp: float = field(default_factory=time.time)


@dataclass
class ConfirmationResult:
    success: bool
    confidence: float = 0.0
    meets_threshold: bool = False
    confirmation: Optional[ConfirmedInformation] = None
    error: Optional[str] = None


@dataclass
class KnowledgeResult:
    """Final answer handed back to the chat layer."""
    success: bool
    response: str
    type: str = "knowledge"
    confidence: float = 0.0
    has_code: bool = False
    attachments: List[Any] = field(default_factory=list)
    is_fallback: bool = False
    fallback_reason: Optional[str] = None
    is_natural: bool = False
    truncated: bool = False
    original_length: Optional[int] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
