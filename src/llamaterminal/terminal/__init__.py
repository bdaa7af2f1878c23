"""Shell backends for live terminal sessions.

Defines the ShellBackend protocol the dispatch layer drives, and a local
implementation over asyncio subprocess pipes.
"""

from llamaterminal.terminal.protocol import ShellBackend, ShellClosed, ShellHandle, SpawnError
from llamaterminal.terminal.subprocess_backend import SubprocessShellBackend

__all__ = [
    "ShellBackend",
    "ShellClosed",
    "ShellHandle",
    "SpawnError",
    "SubprocessShellBackend",
]
