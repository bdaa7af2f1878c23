"""Prompt construction and response parsing for model text.

Builds the per-mode prompt context sent to the model backend, and splits
model responses into blocks so shell commands can be pulled out of them.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass
from typing import TYPE_CHECKING

from llamaterminal.core.llm.provider import Message, PromptContext, Role

if TYPE_CHECKING:
    from llamaterminal.session.history import CommandHistoryItem
    from llamaterminal.session.modes import AIMode

_BASE_PROMPT = (
    "You are a terminal assistant running next to a live shell. "
    "When you propose a shell command, put it alone in a ```bash fenced block. "
    "Prefer safe, non-destructive commands and mention backups before anything "
    "that deletes or overwrites data."
)

SYSTEM_PROMPTS: dict[str, str] = {
    "auto": _BASE_PROMPT
    + " Watch the user's recent commands and suggest improvements or fixes.",
    "dispatch": _BASE_PROMPT
    + " Break the user's task into steps and reply with exactly one command for"
    " the next step. It will be executed after a safety check.",
    "command": _BASE_PROMPT
    + " Help with terminal commands and explain what each part does.",
    "code": "You are a coding assistant. Reply with code snippets and short"
    " explanations. Your code is shown to the user and never executed.",
    "disabled": _BASE_PROMPT,
}

# Fenced code block pattern: ```<language> ... ```
# MULTILINE so ^ matches line starts; DOTALL so . matches newlines.
_FENCED_BLOCK_PATTERN = re.compile(
    r"^```(\S*)[ \t]*\n(.*?)^```[ \t]*$",
    re.MULTILINE | re.DOTALL,
)

_INLINE_COMMAND_PATTERN = re.compile(
    r"(?:Command|Run|Execute|You can use|Try|Suggestion):\s*`([^`]+)`"
)

SHELL_LANGUAGES = frozenset({"", "bash", "sh", "shell", "zsh", "console", "command"})


@dataclass(frozen=True)
class Segment:
    """A parsed segment of a model response.

    Attributes:
        kind: "prose" or "fenced".
        content: The text content of this segment.
        language: For fenced blocks, the language tag. Empty otherwise.
    """

    kind: str
    content: str
    language: str = ""

    @property
    def is_shell(self) -> bool:
        return self.kind == "fenced" and self.language.lower() in SHELL_LANGUAGES


def parse_response(text: str) -> list[Segment]:
    """Split a model response into prose and fenced segments, in order."""
    segments: list[Segment] = []

    last_end = 0
    for match in _FENCED_BLOCK_PATTERN.finditer(text):
        prose = text[last_end : match.start()].strip()
        if prose:
            segments.append(Segment(kind="prose", content=prose))
        content = match.group(2).strip()
        if content:
            segments.append(Segment(kind="fenced", content=content, language=match.group(1)))
        last_end = match.end()

    tail = text[last_end:].strip()
    if tail:
        segments.append(Segment(kind="prose", content=tail))
    return segments


def _strip_prompt(command: str) -> str:
    """Remove leading "$ " shell prompts from each line."""
    lines = [line[2:] if line.startswith("$ ") else line for line in command.splitlines()]
    return "\n".join(lines).strip()


def extract_commands(text: str) -> list[str]:
    """Extract shell commands from model text.

    Sources, in order: shell-tagged fenced blocks, then ``Command: `...```
    style inline forms in prose. A bare single-line response is taken as a
    command itself. Multi-line prose with neither yields nothing.
    """
    segments = parse_response(text)
    commands: list[str] = []

    for segment in segments:
        if segment.is_shell:
            commands.append(_strip_prompt(segment.content))

    for segment in segments:
        if segment.kind == "prose":
            commands.extend(
                _strip_prompt(m.group(1)) for m in _INLINE_COMMAND_PATTERN.finditer(segment.content)
            )

    if not commands:
        stripped = text.strip()
        if stripped and "\n" not in stripped and not any(s.kind == "fenced" for s in segments):
            commands.append(_strip_prompt(stripped.strip("`")))

    # Dedupe, keep order
    seen: set[str] = set()
    return [c for c in commands if c and not (c in seen or seen.add(c))]


def build_prompt_context(
    prompt: str,
    *,
    mode: AIMode,
    working_directory: str | None,
    recent: Iterable[CommandHistoryItem] = (),
    max_tokens: int = 2048,
    temperature: float | None = None,
    output_chars: int = 500,
) -> PromptContext:
    """Build the prompt context for a model query.

    Args:
        prompt: The user's question or the activity to react to.
        mode: Active AI mode; selects the system prompt.
        working_directory: Shell working directory, if known.
        recent: Recent history items, oldest first.
        max_tokens: Maximum tokens to generate.
        temperature: Sampling temperature.
        output_chars: Per-item cap on included command output.
    """
    lines: list[str] = []
    if working_directory:
        lines.append(f"Working directory: {working_directory}")

    history_lines = []
    for item in recent:
        entry = f"$ {item.command}  [{item.status.value}"
        if item.exit_code is not None:
            entry += f", exit {item.exit_code}"
        entry += "]"
        if item.output:
            output = item.output.strip()
            if len(output) > output_chars:
                output = output[:output_chars] + "... [truncated]"
            entry += f"\n{output}"
        history_lines.append(entry)
    if history_lines:
        lines.append("Recent commands:\n" + "\n".join(history_lines))

    lines.append(prompt)

    return PromptContext(
        messages=(
            Message(role=Role.SYSTEM, content=SYSTEM_PROMPTS[mode.value]),
            Message(role=Role.USER, content="\n\n".join(lines)),
        ),
        max_tokens=max_tokens,
        temperature=temperature,
    )
