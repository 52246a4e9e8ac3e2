"""Chat completions through LiteLLM."""

from typing import Any

import litellm
from litellm import acompletion
from loguru import logger

from chimpflow.errors import ChimpflowError, ErrorKind
from chimpflow.providers.base import CompletionResult, LLMProvider

litellm.suppress_debug_info = True
litellm.drop_params = True


class LiteLLMProvider(LLMProvider):
    """
    Answers knowledge requests with any model LiteLLM can route to
    (OpenAI, Anthropic, OpenRouter, a local gateway).
    """

    def __init__(
        self,
        api_key: str | None = None,
        api_base: str | None = None,
        default_model: str = "gpt-4o-mini",
        extra_headers: dict[str, str] | None = None,
    ):
        super().__init__(api_key, api_base)
        self.default_model = default_model
        self.extra_headers = extra_headers or {}

    def _connection_kwargs(self) -> dict[str, Any]:
        optional = {
            "api_key": self.api_key,
            "api_base": self.api_base,
            "extra_headers": self.extra_headers,
        }
        return {k: v for k, v in optional.items() if v}

    def _fail(self, message: str, model: str, code: str | None = None, cause: Exception | None = None):
        return ChimpflowError(
            ErrorKind.API,
            message,
            code=code,
            component="litellm_provider",
            operation="complete",
            context={"model": model},
            cause=cause,
        )

    async def complete(
        self,
        *,
        model: str | None = None,
        messages: list[dict[str, Any]],
        max_tokens: int = 1500,
        temperature: float = 0.7,
    ) -> CompletionResult:
        model = model or self.default_model
        logger.debug(f"LiteLLM request: model={model}, {len(messages)} messages")

        try:
            response = await acompletion(
                model=model,
                messages=messages,
                max_tokens=max_tokens,
                temperature=temperature,
                **self._connection_kwargs(),
            )
        except Exception as e:
            raise self._fail(f"LiteLLM call failed: {e}", model, cause=e) from e

        choice = response.choices[0]
        text = choice.message.content
        if not text:
            raise self._fail("Model returned no content", model, code="EMPTY_COMPLETION")

        return CompletionResult(
            text=text,
            model=getattr(response, "model", None) or model,
            finish_reason=choice.finish_reason or "stop",
            usage=_usage(response),
        )


def _usage(response: Any) -> dict[str, int]:
    usage = getattr(response, "usage", None)
    if not usage:
        return {}
    return {
        name: getattr(usage, name)
        for name in ("prompt_tokens", "completion_tokens", "total_tokens")
        if getattr(usage, name, None) is not None
    }
