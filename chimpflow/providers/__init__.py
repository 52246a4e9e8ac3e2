"""LLM provider abstraction module."""

from chimpflow.providers.base import CompleteFn, CompletionResult, LLMProvider
from chimpflow.providers.litellm_provider import LiteLLMProvider

__all__ = ["CompleteFn", "CompletionResult", "LLMProvider", "LiteLLMProvider"]
