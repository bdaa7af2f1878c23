"""Model backend abstraction."""

from llamaterminal.core.llm.litellm_provider import LiteLLMModelBackend, create_backend
from llamaterminal.core.llm.provider import (
    Message,
    ModelBackend,
    ModelError,
    PromptContext,
    Role,
)

__all__ = [
    # Backend protocol and implementations
    "ModelBackend",
    "LiteLLMModelBackend",
    "create_backend",
    # Types
    "Message",
    "ModelError",
    "PromptContext",
    "Role",
]
