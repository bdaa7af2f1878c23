"""Interactive REPL for llamaterminal."""

from llamaterminal.interactive.commands import CommandHandler
from llamaterminal.interactive.repl import InteractiveRepl

__all__ = [
    "InteractiveRepl",
    "CommandHandler",
]
