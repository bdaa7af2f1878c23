"""Interactive terminal REPL."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

from prompt_toolkit import PromptSession
from prompt_toolkit.auto_suggest import AutoSuggestFromHistory
from prompt_toolkit.history import FileHistory
from prompt_toolkit.patch_stdout import patch_stdout
from rich.console import Console
from rich.panel import Panel
from rich.syntax import Syntax

from llamaterminal import __version__
from llamaterminal.interactive.commands import CommandHandler, show_result
from llamaterminal.session import (
    ConfirmationOutcome,
    DispatchEvent,
    EventKind,
    Theme,
    create_orchestrator,
)

if TYPE_CHECKING:
    from llamaterminal.config import Config

console = Console()

_SYNTAX_THEMES = {
    Theme.DARK: "monokai",
    Theme.LIGHT: "friendly",
    Theme.HIGH_CONTRAST: "bw",
}


class InteractiveRepl:
    """Line-oriented terminal: lines go to the shell, slash commands to the handler."""

    def __init__(
        self,
        config: Config,
        cwd: str | None = None,
        history_file: Path | None = None,
    ) -> None:
        self.config = config
        self.orchestrator = create_orchestrator(
            config,
            cwd=cwd,
            confirmer=self.confirm,
            listener=self.on_event,
        )
        self.commands = CommandHandler(self.orchestrator)
        self._running = False
        self._streaming = False

        # Setup prompt sessions; confirmations stay out of the line history
        history = FileHistory(str(history_file)) if history_file else None
        self.session: PromptSession[str] = PromptSession(
            history=history,
            auto_suggest=AutoSuggestFromHistory(),
        )
        self._confirm_session: PromptSession[str] = PromptSession()

    async def run(self) -> int:
        """Run the interactive REPL until /quit, EOF or shell exit."""
        await self.orchestrator.start()
        self._running = True

        mode = self.orchestrator.mode
        console.print(f"[bold]LlamaTerminal[/bold] v{__version__} - {mode.display_name}")
        console.print("Type [bold]/help[/bold] for commands, [bold]/quit[/bold] to exit.\n")

        try:
            with patch_stdout():
                while self._running:
                    try:
                        line = await self.session.prompt_async(self._prompt())
                    except KeyboardInterrupt:
                        continue
                    except EOFError:
                        break

                    if not line.strip():
                        continue

                    if line.startswith("/"):
                        await self.commands.handle(line)
                        if self.commands.quit_requested:
                            break
                    else:
                        result = await self.orchestrator.submit_user_text(line)
                        show_result(result)
        finally:
            self._running = False
            await self.orchestrator.terminate()

        return self.orchestrator.state.exit_code or 0

    def _prompt(self) -> str:
        state = self.orchestrator.state
        cwd = state.current_working_directory
        home = str(Path.home())
        if cwd == home or cwd.startswith(home + "/"):
            cwd = "~" + cwd[len(home):]
        return f"[{self.orchestrator.mode.value}] {cwd}$ "

    async def confirm(self, command: str, reason: str) -> ConfirmationOutcome:
        """Ask the operator to approve a flagged command."""
        self._end_stream()
        console.print(f"[yellow]Confirmation needed:[/yellow] {reason}")
        try:
            answer = await self._confirm_session.prompt_async(f"Run `{command}`? [y/N] ")
        except (KeyboardInterrupt, EOFError):
            return ConfirmationOutcome.REJECTED
        if answer.strip().lower() in ("y", "yes"):
            return ConfirmationOutcome.APPROVED
        return ConfirmationOutcome.REJECTED

    def on_event(self, event: DispatchEvent) -> None:
        """Render orchestrator events."""
        state = self.orchestrator.state
        data = event.data

        if event.kind is EventKind.OUTPUT:
            console.print(
                data["text"],
                end="",
                markup=False,
                highlight=state.syntax_highlighting_enabled,
                soft_wrap=True,
            )
        elif event.kind is EventKind.SUGGESTION_CHUNK:
            self._streaming = True
            console.print(data["text"], end="", style="dim", markup=False, highlight=False)
        elif event.kind is EventKind.SUGGESTION:
            streamed = self._end_stream()
            commands = data.get("commands") or []
            if commands:
                console.print(
                    Panel("\n".join(commands), title="Suggested", border_style="cyan")
                )
            elif not streamed:
                console.print(data["text"], markup=False, highlight=False)
        elif event.kind is EventKind.CODE_SNIPPET:
            streamed = self._end_stream()
            if state.syntax_highlighting_enabled and data["snippets"]:
                theme = _SYNTAX_THEMES[state.theme]
                for snippet, language in zip(data["snippets"], data["languages"]):
                    console.print(Syntax(snippet, language, theme=theme))
            elif not streamed:
                console.print(data["text"], markup=False, highlight=False)
        elif event.kind is EventKind.MODE_CHANGED:
            console.print(f"[dim]mode: {data['mode']}[/dim]")
        elif event.kind is EventKind.SESSION_ERROR:
            console.print(f"[red]Session error: {data.get('error')}[/red]")
        elif event.kind is EventKind.SESSION_ENDED:
            self._end_stream()
            self._running = False
            if self.session.app.is_running:
                self.session.app.exit(exception=EOFError())
        elif event.kind in (EventKind.BLOCKED, EventKind.REJECTED, EventKind.AI_UNAVAILABLE):
            self._end_stream()

    def _end_stream(self) -> bool:
        """Close an open suggestion stream. Returns True if one was open."""
        if not self._streaming:
            return False
        console.print()
        self._streaming = False
        return True
