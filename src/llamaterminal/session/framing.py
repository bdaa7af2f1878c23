"""Command framing and shell output parsing.

Each dispatched command is wrapped so the shell prints a status line
after it finishes::

    [[LLAMATERM:STATUS:<seq>:<exit code>:<working directory>]]

The reader uses the status line to delimit a command's output, capture its
exit code and track directory changes. OSC 7 sequences emitted by shells
that report their directory are recognized as well.
"""

from __future__ import annotations

import re
import shlex
from dataclasses import dataclass
from urllib.parse import unquote

STATUS_PREFIX = "[[LLAMATERM:STATUS:"

_STATUS_LINE = re.compile(r"^\[\[LLAMATERM:STATUS:(\d+):(-?\d+):(.*)\]\]\r?$")

_OSC7 = re.compile(r"\x1b\]7;file://[^/\x07\x1b]*(/[^\x07\x1b]*)(?:\x07|\x1b\\)")


@dataclass(frozen=True, slots=True)
class StatusMarker:
    """A command finished."""

    seq: int
    exit_code: int
    working_directory: str


@dataclass(frozen=True, slots=True)
class DirectoryChange:
    """The shell reported a new working directory."""

    path: str


OutputEvent = str | StatusMarker | DirectoryChange


def frame_command(command: str, seq: int) -> bytes:
    """Wrap a command for dispatch to a POSIX shell.

    The command travels as one single-quoted argument to ``command eval``,
    so unbalanced quotes, unclosed substitutions or heredocs fail inside
    eval (exit status 2) instead of swallowing the status trailer. Running
    eval through ``command`` keeps a syntax error from exiting the shell.
    The brace group runs in the current shell (so ``cd`` sticks) with stdin
    from /dev/null.
    """
    trailer = (
        f"__llamaterm_rc=$?; printf '\\n{STATUS_PREFIX}{seq}:%d:%s]]\\n' "
        '"$__llamaterm_rc" "$PWD"\n'
    )
    return f"{{ command eval {shlex.quote(command)}\n}} < /dev/null\n{trailer}".encode()


class OutputParser:
    """Incremental parser for decoded shell output.

    Complete lines are scanned for status lines and OSC 7 sequences. A
    trailing partial line is passed through right away unless it could
    still turn into a status line or contains an escape sequence.
    """

    def __init__(self) -> None:
        self._buffer = ""

    def feed(self, text: str) -> list[OutputEvent]:
        self._buffer += text
        events: list[OutputEvent] = []

        while "\n" in self._buffer:
            line, self._buffer = self._buffer.split("\n", 1)
            events.extend(self._parse_line(line, newline=True))

        tail = self._buffer
        if tail and not self._may_be_partial(tail):
            events.extend(self._parse_line(tail, newline=False))
            self._buffer = ""
        return events

    def flush(self) -> list[OutputEvent]:
        """Emit whatever is buffered (end of stream)."""
        tail, self._buffer = self._buffer, ""
        return self._parse_line(tail, newline=False) if tail else []

    @staticmethod
    def _may_be_partial(tail: str) -> bool:
        if "\x1b" in tail:
            return True
        head = tail[: len(STATUS_PREFIX)]
        return STATUS_PREFIX.startswith(head)

    @staticmethod
    def _parse_line(line: str, *, newline: bool) -> list[OutputEvent]:
        match = _STATUS_LINE.match(line)
        if match:
            return [
                StatusMarker(
                    seq=int(match.group(1)),
                    exit_code=int(match.group(2)),
                    working_directory=match.group(3),
                )
            ]

        events: list[OutputEvent] = []
        for osc in _OSC7.finditer(line):
            events.append(DirectoryChange(unquote(osc.group(1))))
        text = _OSC7.sub("", line) + ("\n" if newline else "")
        if text:
            events.insert(0, text)
        return events
