"""Shared test utilities: scripted shell and model backends."""

from __future__ import annotations

import asyncio
import re
import shlex
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass
from typing import Any
from unittest.mock import Mock

from llamaterminal.core.llm.provider import ModelError, PromptContext
from llamaterminal.terminal.protocol import ShellClosed, ShellHandle

_FRAMED = re.compile(
    r"^\{ command eval (?P<quoted>.*?)\n\} < /dev/null\n.*?STATUS:(?P<seq>\d+):",
    re.DOTALL,
)


def create_mock_llm_stream_chunk(text: str | None = "chunk") -> Mock:
    """Create a mock streaming chunk shaped like litellm's."""
    chunk = Mock()
    chunk.choices = [Mock()]
    chunk.choices[0].delta = Mock()
    chunk.choices[0].delta.content = text
    return chunk


async def async_iter(items: list[Any]) -> AsyncIterator[Any]:
    for item in items:
        yield item


async def wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    """Poll until predicate() is true."""

    async def poll() -> None:
        while not predicate():
            await asyncio.sleep(0.01)

    await asyncio.wait_for(poll(), timeout)


@dataclass
class ScriptedCommand:
    """How the fake shell answers one command.

    Attributes:
        output: Text printed before the status line.
        exit_code: Exit status reported.
        cwd: Working directory after the command.
        hang: Print the output but never finish.
        release: Finish only once this event is set.
    """

    output: str = ""
    exit_code: int = 0
    cwd: str | None = None
    hang: bool = False
    release: asyncio.Event | None = None


class FakeShellBackend:
    """In-memory ShellBackend that understands the status trailer.

    Unknown commands succeed silently.
    """

    def __init__(
        self,
        script: dict[str, ScriptedCommand] | None = None,
        *,
        spawn_error: Exception | None = None,
    ) -> None:
        self.script = script or {}
        self.spawn_error = spawn_error
        self.writes: list[bytes] = []
        self.commands: list[str] = []
        self.resizes: list[tuple[int, int]] = []
        self.spawn_args: tuple[str, int, int] | None = None
        self.terminate_calls = 0
        self.fail_writes = False
        self.exit_code: int | None = None
        self.cwd = "/"
        self._queue: asyncio.Queue[bytes | None] | None = None
        self._tasks: set[asyncio.Task[None]] = set()
        self._closed = False

    async def spawn(self, cwd: str, cols: int, rows: int) -> ShellHandle:
        if self.spawn_error is not None:
            raise self.spawn_error
        self.spawn_args = (cwd, cols, rows)
        self.cwd = cwd
        self._queue = asyncio.Queue()
        return ShellHandle(handle_id="fake", pid=4242, argv=["fake-sh"], cwd=cwd, process=None)

    async def write(self, handle: ShellHandle, data: bytes) -> None:
        if self._closed or self.fail_writes:
            raise ShellClosed("fake shell closed")
        self.writes.append(data)

        match = _FRAMED.match(data.decode())
        assert match, f"unframed write: {data!r}"
        command, seq = shlex.split(match.group("quoted"))[0], int(match.group("seq"))
        self.commands.append(command)

        step = self.script.get(command, ScriptedCommand())
        if step.release is not None:
            task = asyncio.get_running_loop().create_task(self._respond_later(step, seq))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
        else:
            self._respond(step, seq)

    async def _respond_later(self, step: ScriptedCommand, seq: int) -> None:
        assert step.release is not None
        await step.release.wait()
        self._respond(step, seq)

    def _respond(self, step: ScriptedCommand, seq: int) -> None:
        if step.output:
            self.emit(step.output.encode())
        if step.hang:
            return
        if step.cwd:
            self.cwd = step.cwd
        self.emit(f"\n[[LLAMATERM:STATUS:{seq}:{step.exit_code}:{self.cwd}]]\n".encode())

    def emit(self, data: bytes) -> None:
        """Produce unsolicited output."""
        assert self._queue is not None
        self._queue.put_nowait(data)

    def exit(self, code: int = 0) -> None:
        """Simulate the shell exiting on its own."""
        self.exit_code = code
        self._close()

    def _close(self) -> None:
        if not self._closed:
            self._closed = True
            if self._queue is not None:
                self._queue.put_nowait(None)

    async def resize(self, handle: ShellHandle, cols: int, rows: int) -> None:
        self.resizes.append((cols, rows))

    async def read(self, handle: ShellHandle) -> AsyncIterator[bytes]:
        assert self._queue is not None
        while True:
            chunk = await self._queue.get()
            if chunk is None:
                return
            yield chunk

    async def wait(self, handle: ShellHandle) -> int | None:
        return self.exit_code

    async def terminate(self, handle: ShellHandle) -> None:
        self.terminate_calls += 1
        for task in list(self._tasks):
            task.cancel()
        self._close()


class FakeModelBackend:
    """ModelBackend returning canned completions, streamed word by word."""

    def __init__(
        self,
        *responses: str,
        error: Exception | None = None,
        hang: bool = False,
    ) -> None:
        self.responses = list(responses)
        self.error = error
        self.hang = hang
        self.contexts: list[PromptContext] = []
        self.started = asyncio.Event()
        self.cancelled = False

    @property
    def model(self) -> str:
        return "fake/model"

    async def complete(self, context: PromptContext) -> AsyncIterator[str]:
        self.contexts.append(context)
        self.started.set()
        if self.error is not None:
            raise self.error
        if self.hang:
            try:
                await asyncio.sleep(3600)
            except asyncio.CancelledError:
                self.cancelled = True
                raise
        if not self.responses:
            raise ModelError("no canned response")
        for piece in re.split(r"(?<= )", self.responses.pop(0)):
            if piece:
                yield piece


__all__ = [
    "FakeModelBackend",
    "FakeShellBackend",
    "ScriptedCommand",
    "async_iter",
    "create_mock_llm_stream_chunk",
    "wait_until",
]
