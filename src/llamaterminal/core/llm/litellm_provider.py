"""LiteLLM model backend.

Talks to a locally hosted model through litellm. The default targets a
local Ollama server:
- "ollama/llama3", "ollama/codellama", "ollama/mistral"

Any other litellm model identifier works as well.
See https://docs.litellm.ai/docs/providers for full list.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from typing import Any

import litellm

from llamaterminal.core.llm.provider import ModelError, PromptContext
from llamaterminal.logging import get_logger

log = get_logger("llm")

DEFAULT_MODEL = "ollama/llama3"
DEFAULT_API_BASE = "http://localhost:11434"


class LiteLLMModelBackend:
    """Model backend using litellm streaming completions.

    Usage:
        backend = LiteLLMModelBackend("ollama/codellama")

        async for text in backend.complete(context):
            print(text, end="")
    """

    def __init__(
        self,
        model: str = DEFAULT_MODEL,
        *,
        api_base: str | None = DEFAULT_API_BASE,
        api_key: str | None = None,
        **kwargs: Any,
    ) -> None:
        """Initialize the backend.

        Args:
            model: litellm model identifier
            api_base: Custom API base URL (None uses litellm's default)
            api_key: API key, for hosted providers
            **kwargs: Additional litellm options
        """
        self._model = model
        self._api_base = api_base
        self._api_key = api_key
        self._kwargs = kwargs

    @property
    def model(self) -> str:
        return self._model

    def _build_kwargs(self, context: PromptContext) -> dict[str, Any]:
        """Build kwargs for litellm call."""
        kwargs: dict[str, Any] = {
            "model": self._model,
            "messages": [
                {"role": m.role.value, "content": m.content} for m in context.messages
            ],
            "max_tokens": context.max_tokens,
            "stream": True,
            **self._kwargs,
        }
        if context.temperature is not None:
            kwargs["temperature"] = context.temperature
        if self._api_base:
            kwargs["api_base"] = self._api_base
        if self._api_key:
            kwargs["api_key"] = self._api_key
        return kwargs

    async def complete(self, context: PromptContext) -> AsyncIterator[str]:
        """Stream a completion as text chunks.

        Raises:
            ModelError: On any transport or provider failure, or when the
                model produced no text at all.
        """
        kwargs = self._build_kwargs(context)
        produced = False

        try:
            response = await litellm.acompletion(**kwargs)
            async for chunk in response:
                if not chunk.choices:
                    continue
                delta = chunk.choices[0].delta
                text = getattr(delta, "content", None) or ""
                if text:
                    produced = True
                    yield text
        except asyncio.CancelledError:
            log.debug("Completion cancelled for %s", self._model)
            raise
        except ModelError:
            raise
        except Exception as e:
            raise ModelError(f"{self._model}: {e}") from e

        if not produced:
            raise ModelError(f"{self._model} returned an empty completion")


def create_backend(model: str = DEFAULT_MODEL, **kwargs: Any) -> LiteLLMModelBackend:
    """Create a model backend with local-first defaults."""
    return LiteLLMModelBackend(model, **kwargs)
