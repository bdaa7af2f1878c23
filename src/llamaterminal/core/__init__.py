"""Core runtime modules."""

from llamaterminal.core.llm import (
    LiteLLMModelBackend,
    Message,
    ModelBackend,
    ModelError,
    PromptContext,
    Role,
)
from llamaterminal.core.prompts import build_prompt_context, extract_commands, parse_response

__all__ = [
    # LLM
    "ModelBackend",
    "LiteLLMModelBackend",
    "Message",
    "ModelError",
    "PromptContext",
    "Role",
    # Prompts
    "build_prompt_context",
    "extract_commands",
    "parse_response",
]
