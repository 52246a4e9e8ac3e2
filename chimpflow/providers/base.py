"""Chat-completion contract used by the knowledge pipeline."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Protocol


@dataclass
class CompletionResult:
    """Response from a chat-completion call."""
    text: str
    model: str = ""
    finish_reason: str = "stop"
    usage: dict[str, int] = field(default_factory=dict)


class CompleteFn(Protocol):
    """Any coroutine with this signature can generate answers.

    Implementations raise on failure; they never return error text as
    content.
    """

    async def __call__(
        self,
        *,
        model: str,
        messages: list[dict[str, Any]],
        max_tokens: int,
        temperature: float,
    ) -> CompletionResult: ...


class LLMProvider(ABC):
    """
    Abstract base class for LLM providers.

    ``provider.complete`` satisfies ``CompleteFn`` and can be handed to
    ``KnowledgeFlow`` directly.
    """

    def __init__(self, api_key: str | None = None, api_base: str | None = None):
        self.api_key = api_key
        self.api_base = api_base

    @abstractmethod
    async def complete(
        self,
        *,
        model: str,
        messages: list[dict[str, Any]],
        max_tokens: int = 1500,
        temperature: float = 0.7,
    ) -> CompletionResult:
        """
        Send a chat completion request.

        Args:
            messages: List of message dicts with 'role' and 'content'.
            model: Model identifier (provider-specific).
            max_tokens: Maximum tokens in response.
            temperature: Sampling temperature.

        Raises:
            ChimpflowError: (API) when the provider call fails.
        """
