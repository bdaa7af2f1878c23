"""Subprocess-based shell backend for local shell sessions."""

from __future__ import annotations

import asyncio
import os
import uuid
from collections.abc import AsyncIterator

from llamaterminal.logging import get_logger
from llamaterminal.terminal.protocol import ShellClosed, ShellHandle, SpawnError

log = get_logger("terminal")

DEFAULT_SHELL = "/bin/sh"


class SubprocessShellBackend:
    """Run a shell using asyncio subprocess pipes.

    The shell reads commands from stdin; stderr is merged into stdout.
    There is no PTY, so resize only updates the recorded geometry.
    """

    def __init__(
        self,
        shell: str | None = None,
        shell_args: list[str] | None = None,
        *,
        env: dict[str, str] | None = None,
        read_size: int = 4096,
        terminate_grace: float = 2.0,
    ) -> None:
        """Initialize the backend.

        Args:
            shell: POSIX shell executable. Defaults to /bin/sh; the command
                framing needs POSIX ``command eval``, so login shells such as
                zsh or fish are not picked up from $SHELL.
            shell_args: Extra arguments for the shell.
            env: Additional environment variables.
            read_size: Maximum bytes per output chunk.
            terminate_grace: Seconds to wait after SIGTERM before SIGKILL.
        """
        self._shell = shell or DEFAULT_SHELL
        self._shell_args = list(shell_args or [])
        self._env = env or {}
        self._read_size = read_size
        self._terminate_grace = terminate_grace
        self._geometry: dict[str, tuple[int, int]] = {}

    def geometry(self, handle: ShellHandle) -> tuple[int, int] | None:
        """Last geometry recorded for a handle."""
        return self._geometry.get(handle.handle_id)

    async def spawn(self, cwd: str, cols: int, rows: int) -> ShellHandle:
        argv = [self._shell, *self._shell_args]

        process_env = os.environ.copy()
        process_env.update(
            {
                "TERM": "dumb",
                "COLUMNS": str(cols),
                "LINES": str(rows),
                "PS1": "",
            }
        )
        process_env.update(self._env)

        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,  # Merge stderr into stdout
                cwd=cwd,
                env=process_env,
            )
        except FileNotFoundError as e:
            raise SpawnError(f"Shell or directory not found: {e}") from e
        except PermissionError as e:
            raise SpawnError(f"Permission denied starting shell: {e}") from e
        except OSError as e:
            raise SpawnError(f"OS error starting shell: {e}") from e

        handle = ShellHandle(
            handle_id=uuid.uuid4().hex,
            pid=process.pid,
            argv=argv,
            cwd=cwd,
            process=process,
        )
        self._geometry[handle.handle_id] = (cols, rows)
        log.debug("Spawned %s (pid %s) in %s", " ".join(argv), process.pid, cwd)
        return handle

    async def write(self, handle: ShellHandle, data: bytes) -> None:
        process: asyncio.subprocess.Process = handle.process
        if process.returncode is not None or process.stdin is None:
            raise ShellClosed(f"Shell {handle.pid} has exited")
        try:
            process.stdin.write(data)
            await process.stdin.drain()
        except (BrokenPipeError, ConnectionResetError) as e:
            raise ShellClosed(f"Shell {handle.pid} closed its input") from e

    async def resize(self, handle: ShellHandle, cols: int, rows: int) -> None:
        self._geometry[handle.handle_id] = (cols, rows)
        log.debug("Recorded geometry %dx%d for pid %s", cols, rows, handle.pid)

    async def read(self, handle: ShellHandle) -> AsyncIterator[bytes]:
        process: asyncio.subprocess.Process = handle.process
        if process.stdout is None:
            return
        while True:
            chunk = await process.stdout.read(self._read_size)
            if not chunk:
                break
            yield chunk

    async def wait(self, handle: ShellHandle) -> int | None:
        process: asyncio.subprocess.Process = handle.process
        return await process.wait()

    async def terminate(self, handle: ShellHandle) -> None:
        process: asyncio.subprocess.Process = handle.process
        self._geometry.pop(handle.handle_id, None)
        if process.returncode is not None:
            return

        try:
            if process.stdin is not None and not process.stdin.is_closing():
                process.stdin.close()
            process.terminate()
            try:
                await asyncio.wait_for(process.wait(), timeout=self._terminate_grace)
            except asyncio.TimeoutError:
                process.kill()
                await process.wait()
        except ProcessLookupError:
            pass  # Process already gone
        log.debug("Terminated shell pid %s (exit %s)", handle.pid, process.returncode)
