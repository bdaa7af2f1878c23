"""Slash command handlers for the interactive terminal."""

from __future__ import annotations

from typing import TYPE_CHECKING

from rich.console import Console
from rich.table import Table

from llamaterminal.session import AIMode, DispatchResult, DispatchStatus, HistoryStatus, InvalidGeometry, Theme

if TYPE_CHECKING:
    from llamaterminal.session import DispatchOrchestrator

console = Console()

_STATUS_STYLES = {
    HistoryStatus.EXECUTED: "green",
    HistoryStatus.REJECTED: "yellow",
    HistoryStatus.BLOCKED: "red",
    HistoryStatus.INTERRUPTED: "magenta",
}


class CommandHandler:
    """Handles slash commands in interactive mode."""

    def __init__(self, orchestrator: DispatchOrchestrator) -> None:
        self.orchestrator = orchestrator
        self.quit_requested = False

    async def handle(self, line: str) -> None:
        """Handle a slash command."""
        cmd, _, rest = line.strip().partition(" ")
        cmd = cmd.lower()
        rest = rest.strip()

        handlers = {
            "/help": self._cmd_help,
            "/ask": self._cmd_ask,
            "/ai": self._cmd_ai,
            "/mode": self._cmd_mode,
            "/history": self._cmd_history,
            "/theme": self._cmd_theme,
            "/highlight": self._cmd_highlight,
            "/resize": self._cmd_resize,
            "/quit": self._cmd_quit,
        }

        handler = handlers.get(cmd)
        if handler:
            await handler(rest)
        else:
            console.print(f"[red]Unknown command: {cmd}[/red]")
            console.print("Type [bold]/help[/bold] for available commands.")

    async def _cmd_help(self, rest: str) -> None:
        """Show available commands."""
        table = Table(title="Available Commands")
        table.add_column("Command", style="bold")
        table.add_column("Description")

        commands = [
            ("/help", "Show this help message"),
            ("/ask <prompt>", "Ask the model; its reply is routed by the current mode"),
            ("/ai <text>", "Submit text as if the model produced it"),
            ("/mode [name]", "Show or switch the AI mode"),
            ("/history [text]", "Show command history, optionally filtered"),
            ("/theme <name>", "Switch theme (dark, light, highContrast)"),
            ("/highlight on|off", "Toggle syntax highlighting"),
            ("/resize <cols> <rows>", "Set terminal geometry"),
            ("/quit", "Exit the terminal"),
        ]

        for cmd, desc in commands:
            table.add_row(cmd, desc)

        console.print(table)

    async def _cmd_ask(self, rest: str) -> None:
        """Query the model."""
        if not rest:
            console.print("[red]Usage: /ask <prompt>[/red]")
            return
        result = await self.orchestrator.ask(rest)
        show_result(result)

    async def _cmd_ai(self, rest: str) -> None:
        """Inject model text."""
        if not rest:
            console.print("[red]Usage: /ai <text>[/red]")
            return
        result = await self.orchestrator.submit_model_text(rest)
        show_result(result)

    async def _cmd_mode(self, rest: str) -> None:
        """Show or set the AI mode."""
        if not rest:
            table = Table(title="AI Modes")
            table.add_column("Mode", style="bold")
            table.add_column("Name")
            table.add_column("Description")
            for mode in AIMode:
                marker = "* " if mode is self.orchestrator.mode else "  "
                table.add_row(marker + mode.value, mode.display_name, mode.description)
            console.print(table)
            return

        try:
            mode = AIMode(rest.lower())
        except ValueError:
            console.print(f"[red]Unknown mode: {rest}[/red]")
            console.print("Options: " + ", ".join(m.value for m in AIMode))
            return
        self.orchestrator.set_mode(mode)
        console.print(f"[green]Mode: {mode.display_name}[/green]")

    async def _cmd_history(self, rest: str) -> None:
        """Show command history."""
        history = self.orchestrator.history
        items = list(history.search(rest)) if rest else list(history)
        if not items:
            console.print("[dim]No history[/dim]")
            return

        table = Table(title="Command History")
        table.add_column("Time")
        table.add_column("Source")
        table.add_column("Command")
        table.add_column("Status")
        table.add_column("Exit")

        for item in items:
            style = _STATUS_STYLES[item.status]
            table.add_row(
                item.timestamp.astimezone().strftime("%H:%M:%S"),
                "ai" if item.is_ai_generated else "user",
                item.command,
                f"[{style}]{item.status.value}[/{style}]",
                "-" if item.exit_code is None else str(item.exit_code),
            )
        console.print(table)

    async def _cmd_theme(self, rest: str) -> None:
        """Switch theme."""
        by_name = {t.value.lower(): t for t in Theme}
        theme = by_name.get(rest.lower())
        if theme is None:
            console.print("[red]Usage: /theme dark|light|highContrast[/red]")
            return
        self.orchestrator.set_theme(theme)
        console.print(f"[green]Theme: {theme.value}[/green]")

    async def _cmd_highlight(self, rest: str) -> None:
        """Toggle syntax highlighting."""
        state = self.orchestrator.state
        if rest.lower() in ("on", "off"):
            enabled = rest.lower() == "on"
        elif not rest:
            enabled = not state.syntax_highlighting_enabled
        else:
            console.print("[red]Usage: /highlight [on|off][/red]")
            return
        self.orchestrator.toggle_syntax_highlighting(enabled)
        console.print(f"Syntax highlighting {'on' if enabled else 'off'}")

    async def _cmd_resize(self, rest: str) -> None:
        """Set terminal geometry."""
        parts = rest.split()
        if len(parts) != 2:
            console.print("[red]Usage: /resize <cols> <rows>[/red]")
            return
        try:
            await self.orchestrator.resize(int(parts[0]), int(parts[1]))
        except (ValueError, InvalidGeometry) as e:
            console.print(f"[red]{e}[/red]")
            return
        state = self.orchestrator.state
        console.print(f"Geometry: {state.cols}x{state.rows}")

    async def _cmd_quit(self, rest: str) -> None:
        """Exit the terminal."""
        self.quit_requested = True
        console.print("[dim]Exiting...[/dim]")


def show_result(result: DispatchResult) -> None:
    """Print the outcome of a submission."""
    if result.status is DispatchStatus.BLOCKED:
        console.print(f"[bold red]Blocked:[/bold red] {result.command} ({result.message})")
    elif result.status is DispatchStatus.REJECTED:
        console.print(f"[yellow]Not run:[/yellow] {result.command} ({result.message})")
    elif result.status is DispatchStatus.INTERRUPTED:
        console.print(f"[magenta]Interrupted:[/magenta] {result.command} ({result.message})")
    elif result.status is DispatchStatus.CANCELLED:
        console.print(f"[dim]Cancelled: {result.message}[/dim]")
    elif result.ai_unavailable:
        console.print(f"[red]{result.message}[/red]")
    elif result.status is DispatchStatus.IGNORED and result.message:
        console.print(f"[dim]{result.message}[/dim]")
    elif result.status is DispatchStatus.EXECUTED and result.exit_code:
        console.print(f"[dim]exit {result.exit_code}[/dim]")
