"""Configuration schema dataclasses for LlamaTerminal.

Defines the structure of configuration at all levels (system, user, project).
Every field has a default so partial configs merge together.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class LLMConfig:
    """Model backend configuration.

    Example config.yaml:
        llm:
          model: ollama/codellama
          api_base: http://localhost:11434
          max_tokens: 2048
    """

    model: str = "ollama/llama3"  # litellm model identifier
    api_base: str | None = "http://localhost:11434"  # Local Ollama endpoint
    max_tokens: int = 2048
    temperature: float = 0.7
    context_items: int = 5  # Recent history items included in prompts


@dataclass
class SessionConfig:
    """Terminal session defaults."""

    default_mode: str = "disabled"  # One of the AIMode values
    cols: int = 80
    rows: int = 25
    theme: str = "dark"  # dark, light, highContrast
    syntax_highlighting: bool = True
    shell: str | None = None  # POSIX shell, default /bin/sh
    shell_args: list[str] = field(default_factory=list)
    command_timeout: float | None = 300.0  # Seconds to wait for a command; None waits forever


@dataclass
class SafetyRuleConfig:
    """An extra SafetyGate rule.

    Pattern is a regular expression searched in the full command text.
    """

    pattern: str
    verdict: str = "needsConfirmation"  # safe, needsConfirmation, blocked
    reason: str = ""


@dataclass
class SafetyConfig:
    """SafetyGate and confirmation configuration."""

    confirmation_timeout: float = 30.0  # Seconds before a confirmation times out
    rules: list[SafetyRuleConfig] = field(default_factory=list)


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str | None = None  # DEBUG, INFO, WARNING, ERROR
    verbose: int | None = None  # 0-4, overrides level
    file: str | None = None  # Log file path
    audit_file: str | None = None  # Separate file for the command audit trail


@dataclass
class Config:
    """Root configuration object."""

    llm: LLMConfig = field(default_factory=LLMConfig)
    session: SessionConfig = field(default_factory=SessionConfig)
    safety: SafetyConfig = field(default_factory=SafetyConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    extra: dict[str, Any] = field(default_factory=dict)  # Unknown keys
