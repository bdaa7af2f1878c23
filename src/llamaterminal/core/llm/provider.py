"""Model backend protocol and base types."""

from __future__ import annotations

from collections.abc import AsyncIterator
from dataclasses import dataclass
from enum import Enum
from typing import Protocol, runtime_checkable


class Role(Enum):
    """Message role in a conversation."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


@dataclass(frozen=True, slots=True)
class Message:
    """A message in a model conversation.

    Attributes:
        role: The role (system, user, assistant)
        content: The message content
    """

    role: Role
    content: str


@dataclass(frozen=True, slots=True)
class PromptContext:
    """Everything the model backend needs for one completion.

    Attributes:
        messages: Conversation to complete, system prompt first.
        max_tokens: Maximum tokens to generate.
        temperature: Sampling temperature.
    """

    messages: tuple[Message, ...]
    max_tokens: int = 2048
    temperature: float | None = None


class ModelError(Exception):
    """Raised when the model backend is unreachable or returns malformed output."""


@runtime_checkable
class ModelBackend(Protocol):
    """Protocol for model backends.

    Cancelling the task that consumes ``complete()`` cancels the request.
    """

    @property
    def model(self) -> str:
        """The model identifier being used."""
        ...

    def complete(self, context: PromptContext) -> AsyncIterator[str]:
        """Stream a completion as text chunks.

        Raises:
            ModelError: If the backend fails before or during streaming.
        """
        ...
