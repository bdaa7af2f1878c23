"""Shell backend protocol for live shell sessions."""

from __future__ import annotations

from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from typing import Any, Protocol


class SpawnError(Exception):
    """Raised when a shell backend cannot start its process.

    Fatal to the session: no retry is attempted.
    """


class ShellClosed(Exception):
    """Raised when writing to a shell whose process has already exited."""


@dataclass
class ShellHandle:
    """Opaque handle to a spawned shell process.

    Attributes:
        handle_id: Unique identifier for the handle.
        pid: OS process id, if the backend has one.
        argv: The command line that was spawned.
        cwd: Working directory the shell was started in.
        process: Backend-specific process object.
    """

    handle_id: str
    pid: int | None
    argv: list[str]
    cwd: str
    process: Any = field(default=None, repr=False, compare=False)


class ShellBackend(Protocol):
    """Protocol for spawning and driving a shell process.

    Implementations:
    - SubprocessShellBackend: Local shell over asyncio subprocess pipes
    """

    async def spawn(self, cwd: str, cols: int, rows: int) -> ShellHandle:
        """Start a shell process.

        Raises:
            SpawnError: If the process could not be started.
        """
        ...

    async def write(self, handle: ShellHandle, data: bytes) -> None:
        """Write raw bytes to the shell's input.

        Raises:
            ShellClosed: If the process has exited.
        """
        ...

    async def resize(self, handle: ShellHandle, cols: int, rows: int) -> None:
        """Inform the shell of new terminal geometry."""
        ...

    def read(self, handle: ShellHandle) -> AsyncIterator[bytes]:
        """Stream output chunks until the process exits.

        The returned iterator is lazy and not restartable; call wait()
        afterwards for the exit status.
        """
        ...

    async def wait(self, handle: ShellHandle) -> int | None:
        """Wait for the process to exit and return its exit status."""
        ...

    async def terminate(self, handle: ShellHandle) -> None:
        """Stop the process. Idempotent."""
        ...
