"""Dispatch orchestration for one terminal session.

The DispatchOrchestrator owns a SessionState, a ModeController, a
SafetyGate and a CommandHistory, plus one shell backend handle and one
model backend. It merges three concurrent streams:

- shell output, consumed by a background reader task
- user submissions (``submit_user_text``)
- model completions (``ask`` / ``submit_model_text``)

History is committed in the order routing decisions complete, not the
order commands finish. Shell writes are serialized by a FIFO lock.
"""

from __future__ import annotations

import asyncio
import codecs
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from llamaterminal.config import Config, get_config
from llamaterminal.core.llm import LiteLLMModelBackend, ModelBackend, ModelError
from llamaterminal.core.prompts import build_prompt_context, extract_commands, parse_response
from llamaterminal.logging import get_logger
from llamaterminal.session.confirmation import (
    ConfirmationOutcome,
    ConfirmationRequester,
    request_confirmation,
)
from llamaterminal.session.framing import (
    DirectoryChange,
    OutputEvent,
    OutputParser,
    StatusMarker,
    frame_command,
)
from llamaterminal.session.history import CommandHistory, CommandHistoryItem, HistoryStatus
from llamaterminal.session.modes import AIMode, ModeController, Origin, Route, RoutingDecision
from llamaterminal.session.safety import CommandBlocked, SafetyGate, SafetyVerdict
from llamaterminal.session.state import AlreadyRunning, SessionState, Theme
from llamaterminal.terminal import ShellBackend, ShellClosed, ShellHandle, SpawnError, SubprocessShellBackend

log = get_logger("orchestrator")

AI_UNAVAILABLE_MARKER = "[AI unavailable]"


class EventKind(Enum):
    """Kinds of events published to the UI layer."""

    SESSION_STARTED = "session_started"
    SESSION_ENDED = "session_ended"
    SESSION_ERROR = "session_error"
    OUTPUT = "output"
    SUGGESTION = "suggestion"
    SUGGESTION_CHUNK = "suggestion_chunk"
    CODE_SNIPPET = "code_snippet"
    CONFIRMATION_REQUESTED = "confirmation_requested"
    EXECUTED = "executed"
    INTERRUPTED = "interrupted"
    REJECTED = "rejected"
    BLOCKED = "blocked"
    AI_UNAVAILABLE = "ai_unavailable"
    CWD_CHANGED = "cwd_changed"
    MODE_CHANGED = "mode_changed"


@dataclass(frozen=True, slots=True)
class DispatchEvent:
    kind: EventKind
    data: dict[str, Any] = field(default_factory=dict)


EventListener = Callable[[DispatchEvent], None]


class EventSubscription:
    """Async iterator over events published after it was created.

    Registration happens on creation, so events emitted before the first
    ``async for`` step are queued rather than lost. Iteration stops when the
    session ends or after :meth:`aclose`.
    """

    def __init__(self, subscribers: list[asyncio.Queue[DispatchEvent | None]], *, ended: bool = False) -> None:
        self._subscribers = subscribers
        self._queue: asyncio.Queue[DispatchEvent | None] = asyncio.Queue()
        self._ended = ended
        if not ended:
            subscribers.append(self._queue)

    def __aiter__(self) -> EventSubscription:
        return self

    async def __anext__(self) -> DispatchEvent:
        if self._ended:
            raise StopAsyncIteration
        event = await self._queue.get()
        if event is None:
            self._unsubscribe()
            raise StopAsyncIteration
        return event

    async def aclose(self) -> None:
        self._unsubscribe()

    def _unsubscribe(self) -> None:
        self._ended = True
        if self._queue in self._subscribers:
            self._subscribers.remove(self._queue)


class DispatchStatus(Enum):
    """Outcome of one submission."""

    EXECUTED = "executed"
    REJECTED = "rejected"
    BLOCKED = "blocked"
    SUGGESTED = "suggested"
    IGNORED = "ignored"
    INTERRUPTED = "interrupted"
    CANCELLED = "cancelled"


@dataclass
class DispatchResult:
    """What happened to a submitted piece of text.

    Attributes:
        status: Outcome.
        route: Routing decision taken, if routing happened.
        command: Command that was (or would have been) dispatched.
        verdict: SafetyGate verdict on gated paths.
        history_id: Id of the history record. Records are committed in
            dispatch order, so the item may appear in history slightly later;
            ``DispatchOrchestrator.wait_recorded`` waits for it.
        output: Captured command output.
        exit_code: Exit status reported by the shell.
        message: Human-readable detail (suggestion text, rejection reason).
        suggestions: Commands extracted from model text shown as suggestions.
        ai_unavailable: True when the model backend failed.
        error: The error behind a blocked or failed result.
    """

    status: DispatchStatus
    route: Route | None = None
    command: str | None = None
    verdict: SafetyVerdict | None = None
    history_id: str | None = None
    output: str = ""
    exit_code: int | None = None
    message: str | None = None
    suggestions: list[str] = field(default_factory=list)
    ai_unavailable: bool = False
    error: Exception | None = None

    @property
    def executed(self) -> bool:
        return self.status is DispatchStatus.EXECUTED


class _HistorySequencer:
    """Commits history records in ticket order.

    A ticket is taken when a routing decision lands on an execution path.
    Records for later tickets wait until every earlier ticket has been
    committed or abandoned.
    """

    def __init__(self, history: CommandHistory) -> None:
        self._history = history
        self._issued = 0
        self._next = 0
        self._held: dict[int, dict[str, Any] | None] = {}
        self._waiters: dict[str, list[asyncio.Future[None]]] = {}

    def take(self) -> int:
        ticket = self._issued
        self._issued += 1
        return ticket

    def commit(self, ticket: int, **record: Any) -> str:
        item_id = uuid.uuid4().hex
        self._held[ticket] = {**record, "item_id": item_id}
        self._flush()
        return item_id

    def abandon(self, ticket: int) -> None:
        if ticket < self._next or ticket in self._held:
            return
        self._held[ticket] = None
        self._flush()

    async def wait_recorded(self, item_id: str) -> None:
        """Wait until the record with this id has been flushed to history.

        Returns at once for ids that are not held back.
        """
        if not any(r is not None and r["item_id"] == item_id for r in self._held.values()):
            return
        waiter: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        self._waiters.setdefault(item_id, []).append(waiter)
        await waiter

    @property
    def pending(self) -> int:
        return self._issued - self._next

    def _flush(self) -> None:
        while self._next in self._held:
            record = self._held.pop(self._next)
            if record is not None:
                self._history.record(**record)
                for waiter in self._waiters.pop(record["item_id"], []):
                    if not waiter.done():
                        waiter.set_result(None)
            self._next += 1


@dataclass
class _PendingCommand:
    seq: int
    command: str
    done: asyncio.Future[int | None]
    chunks: list[str] = field(default_factory=list)

    @property
    def output(self) -> str:
        return "".join(self.chunks).rstrip("\n")


@dataclass
class _ShellOutcome:
    output: str
    exit_code: int | None
    completed: bool
    message: str | None = None
    dispatched: bool = True


class DispatchOrchestrator:
    """Coordinates one terminal session.

    Usage:
        async with DispatchOrchestrator(SubprocessShellBackend(), model) as session:
            session.set_mode(AIMode.DISPATCH)
            result = await session.ask("show me the repo status")
    """

    def __init__(
        self,
        shell_backend: ShellBackend,
        model_backend: ModelBackend | None = None,
        *,
        confirmer: ConfirmationRequester | None = None,
        config: Config | None = None,
        cwd: str | None = None,
        safety_gate: SafetyGate | None = None,
        listener: EventListener | None = None,
    ) -> None:
        """Initialize the orchestrator. Nothing is spawned until ``start()``.

        Args:
            shell_backend: Backend that runs the shell.
            model_backend: Backend for model completions; ``ask`` reports the
                AI as unavailable without one.
            confirmer: UI callback for needsConfirmation verdicts. Without one,
                such commands are rejected.
            config: Configuration (defaults to the loaded global config).
            cwd: Launch directory (defaults to the process's directory).
            safety_gate: Gate to use instead of one built from config.
            listener: Callback invoked synchronously for every event.
        """
        self._config = config or get_config()
        session_config = self._config.session

        self._state = SessionState(
            cols=session_config.cols,
            rows=session_config.rows,
            theme=_parse_theme(session_config.theme),
            syntax_highlighting_enabled=session_config.syntax_highlighting,
        )
        if cwd:
            self._state.current_working_directory = cwd

        self._shell = shell_backend
        self._model = model_backend
        self._confirmer = confirmer
        self._modes = ModeController(_parse_mode(session_config.default_mode))
        self._gate = safety_gate or SafetyGate.from_config(self._config.safety)
        self._history = CommandHistory()
        self._sequencer = _HistorySequencer(self._history)

        self._listener = listener
        self._subscribers: list[asyncio.Queue[DispatchEvent | None]] = []

        self._shell_lock = asyncio.Lock()
        self._pending: _PendingCommand | None = None
        self._next_seq = 0
        self._handle: ShellHandle | None = None
        self._reader: asyncio.Task[None] | None = None

        # Model requests and confirmation waits, cancelled on terminate
        self._tasks: set[asyncio.Task[Any]] = set()
        self._closing = False

    # -- Owned components --------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def history(self) -> CommandHistory:
        return self._history

    async def wait_recorded(self, history_id: str) -> CommandHistoryItem | None:
        """Wait until a result's history record is committed, then return it.

        A fast command's record is held back while an earlier command is
        still running. Returns None for ids this session never issued.
        """
        await self._sequencer.wait_recorded(history_id)
        return self._history.get(history_id)

    @property
    def modes(self) -> ModeController:
        return self._modes

    @property
    def gate(self) -> SafetyGate:
        return self._gate

    @property
    def mode(self) -> AIMode:
        return self._modes.mode

    @property
    def model_backend(self) -> ModelBackend | None:
        return self._model

    # -- Lifecycle -----------------------------------------------------------

    async def start(self) -> None:
        """Spawn the shell and start reading its output.

        Raises:
            AlreadyRunning: If the session is running or was terminated.
            SpawnError: If the backend could not start the shell.
        """
        if self._state.is_running:
            raise AlreadyRunning("Session is already running")
        if self._state.terminated:
            raise AlreadyRunning("Session was terminated; create a new orchestrator")

        try:
            handle = await self._shell.spawn(
                self._state.current_working_directory,
                self._state.cols,
                self._state.rows,
            )
        except SpawnError as e:
            log.error("Failed to start shell: %s", e)
            self._emit(EventKind.SESSION_ERROR, error=str(e))
            raise

        self._state.start(handle)
        self._handle = handle
        self._reader = asyncio.create_task(self._read_output(handle))
        log.info("Session started in %s (mode %s)", self._state.current_working_directory, self.mode.value)
        self._emit(
            EventKind.SESSION_STARTED,
            cwd=self._state.current_working_directory,
            mode=self.mode.value,
        )

    async def terminate(self) -> None:
        """End the session. Calling it again is a no-op.

        Outstanding model requests and confirmation waits are cancelled; a
        command in flight is recorded as interrupted with the output received
        so far.
        """
        if self._closing:
            self._state.terminate()
            return
        self._closing = True

        for task in list(self._tasks):
            task.cancel()

        handle = self._handle
        self._interrupt_pending()
        if handle is not None:
            try:
                await self._shell.terminate(handle)
            except Exception as e:
                log.warning("Error terminating shell backend: %s", e)
        self._state.terminate()

        reader = self._reader
        if reader is not None and reader is not asyncio.current_task() and not reader.done():
            reader.cancel()
            try:
                await reader
            except asyncio.CancelledError:
                pass

        log.info("Session ended")
        self._emit(EventKind.SESSION_ENDED, exit_code=self._state.exit_code)
        for queue in self._subscribers:
            queue.put_nowait(None)

    async def __aenter__(self) -> DispatchOrchestrator:
        await self.start()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.terminate()

    # -- Settings ------------------------------------------------------------

    def set_mode(self, mode: AIMode) -> None:
        """Switch AI mode. Only routing decisions made afterwards are affected."""
        previous = self._modes.mode
        self._modes.set_mode(mode)
        if previous is not mode:
            self._emit(EventKind.MODE_CHANGED, mode=mode.value, previous=previous.value)

    async def resize(self, cols: int, rows: int) -> None:
        """Update geometry and forward it to the backend.

        Raises:
            InvalidGeometry: If either value is not positive.
        """
        self._state.update_size(cols, rows)
        handle = self._state.handle
        if handle is not None:
            await self._shell.resize(handle, cols, rows)

    def set_theme(self, theme: Theme) -> None:
        self._state.set_theme(theme)

    def toggle_syntax_highlighting(self, enabled: bool) -> None:
        self._state.toggle_syntax_highlighting(enabled)

    # -- Events --------------------------------------------------------------

    def events(self) -> EventSubscription:
        """Subscribe to events published from now until the session ends."""
        return EventSubscription(self._subscribers, ended=self._closing)

    def _emit(self, kind: EventKind, **data: Any) -> None:
        event = DispatchEvent(kind, data)
        if self._listener is not None:
            try:
                self._listener(event)
            except Exception as e:
                log.warning("Event listener failed on %s: %s", kind.value, e)
        for queue in self._subscribers:
            queue.put_nowait(event)

    # -- Submissions ---------------------------------------------------------

    async def submit_user_text(self, text: str) -> DispatchResult:
        """Handle a command typed by the user."""
        return await self._dispatch(text, self._modes.route_user_text())

    async def submit_model_text(self, text: str) -> DispatchResult:
        """Handle text produced by the model backend."""
        return await self._dispatch(text, self._modes.route_model_text())

    async def ask(self, prompt: str) -> DispatchResult:
        """Query the model and route its completion as model text.

        Chunks are published as SUGGESTION_CHUNK events while streaming. A
        model failure falls back to a suggestion carrying the AI-unavailable
        marker.
        """
        if self.mode is AIMode.DISABLED:
            log.debug("AI disabled, not querying the model")
            return DispatchResult(DispatchStatus.IGNORED, message="AI assistance is disabled")

        llm = self._config.llm
        context = build_prompt_context(
            prompt,
            mode=self.mode,
            working_directory=self._state.current_working_directory,
            recent=self._history.last(llm.context_items),
            max_tokens=llm.max_tokens,
            temperature=llm.temperature,
        )

        try:
            text = await self._tracked(self._complete(context))
        except ModelError as e:
            log.warning("Model backend failed: %s", e)
            message = f"{AI_UNAVAILABLE_MARKER} {e}"
            self._emit(EventKind.AI_UNAVAILABLE, marker=AI_UNAVAILABLE_MARKER, error=str(e))
            return DispatchResult(
                DispatchStatus.SUGGESTED,
                route=Route.SUGGEST_ONLY,
                message=message,
                ai_unavailable=True,
                error=e,
            )
        except asyncio.CancelledError:
            if self._closing:
                return DispatchResult(DispatchStatus.CANCELLED, message="Session terminated")
            raise

        return await self.submit_model_text(text)

    async def _complete(self, context: Any) -> str:
        if self._model is None:
            raise ModelError("No model backend configured")
        parts: list[str] = []
        async for chunk in self._model.complete(context):
            parts.append(chunk)
            self._emit(EventKind.SUGGESTION_CHUNK, text=chunk)
        return "".join(parts)

    async def _tracked(self, coro: Any) -> Any:
        """Run a coroutine as a task that terminate() can cancel."""
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        try:
            return await task
        finally:
            self._tasks.discard(task)

    # -- Routing -------------------------------------------------------------

    async def _dispatch(self, text: str, decision: RoutingDecision) -> DispatchResult:
        route = decision.route
        log.debug("Routed %s text as %s in %s mode", decision.origin.value, route.value, decision.mode.value)

        if route is Route.IGNORE:
            return DispatchResult(DispatchStatus.IGNORED, route=route)
        if route is Route.SUGGEST_ONLY:
            return self._suggest(text, decision)

        if decision.origin is Origin.MODEL:
            commands = extract_commands(text)
            if not commands:
                # Nothing executable in the reply; show it instead
                return self._suggest(text, decision)
            command = commands[0]
        else:
            command = text.strip()
            if not command:
                return DispatchResult(DispatchStatus.IGNORED, route=route)

        if self._closing or not self._state.is_running:
            return DispatchResult(
                DispatchStatus.CANCELLED,
                route=route,
                command=command,
                message="Session is not running",
            )

        ticket = self._sequencer.take()
        try:
            return await self._gate_and_execute(ticket, command, decision)
        except asyncio.CancelledError:
            if self._closing:
                return DispatchResult(
                    DispatchStatus.CANCELLED,
                    route=route,
                    command=command,
                    message="Session terminated",
                )
            raise
        finally:
            self._sequencer.abandon(ticket)

    def _suggest(self, text: str, decision: RoutingDecision) -> DispatchResult:
        if decision.is_code:
            fenced = [s for s in parse_response(text) if s.kind == "fenced"]
            self._emit(
                EventKind.CODE_SNIPPET,
                text=text,
                snippets=[s.content for s in fenced],
                languages=[s.language or "text" for s in fenced],
            )
            return DispatchResult(
                DispatchStatus.SUGGESTED,
                route=decision.route,
                message=text,
            )

        commands = extract_commands(text)
        self._emit(EventKind.SUGGESTION, text=text, commands=commands)
        return DispatchResult(
            DispatchStatus.SUGGESTED,
            route=decision.route,
            message=text,
            suggestions=commands,
        )

    async def _gate_and_execute(
        self, ticket: int, command: str, decision: RoutingDecision
    ) -> DispatchResult:
        route = decision.route
        ai = decision.is_ai_generated
        cwd = self._state.current_working_directory
        verdict: SafetyVerdict | None = None

        if route is Route.EXECUTE_GATED:
            verdict = self._gate.evaluate(command, cwd)

            if verdict.is_blocked:
                reason = verdict.reason or "Blocked by safety gate"
                history_id = self._sequencer.commit(
                    ticket,
                    command=command,
                    output="",
                    is_ai_generated=ai,
                    status=HistoryStatus.BLOCKED,
                    working_directory=cwd,
                    reason=reason,
                )
                self._emit(EventKind.BLOCKED, command=command, reason=reason, ai_generated=ai)
                return DispatchResult(
                    DispatchStatus.BLOCKED,
                    route=route,
                    command=command,
                    verdict=verdict,
                    history_id=history_id,
                    message=reason,
                    error=CommandBlocked(command, reason),
                )

            if verdict.needs_confirmation:
                reason = verdict.reason or "Needs confirmation"
                self._emit(EventKind.CONFIRMATION_REQUESTED, command=command, reason=reason)
                outcome = await self._tracked(
                    request_confirmation(
                        self._confirmer,
                        command,
                        reason,
                        timeout=self._config.safety.confirmation_timeout,
                    )
                )
                if not outcome.approved:
                    if outcome is ConfirmationOutcome.TIMED_OUT:
                        reason = f"Confirmation timed out: {reason}"
                    else:
                        reason = f"Rejected: {reason}"
                    history_id = self._sequencer.commit(
                        ticket,
                        command=command,
                        output="",
                        is_ai_generated=ai,
                        status=HistoryStatus.REJECTED,
                        working_directory=cwd,
                        reason=reason,
                    )
                    self._emit(
                        EventKind.REJECTED,
                        command=command,
                        reason=reason,
                        outcome=outcome.value,
                        ai_generated=ai,
                    )
                    return DispatchResult(
                        DispatchStatus.REJECTED,
                        route=route,
                        command=command,
                        verdict=verdict,
                        history_id=history_id,
                        message=reason,
                    )

        outcome = await self._run_in_shell(command)
        if not outcome.dispatched:
            return DispatchResult(
                DispatchStatus.CANCELLED,
                route=route,
                command=command,
                verdict=verdict,
                message=outcome.message,
            )

        status = HistoryStatus.EXECUTED if outcome.completed else HistoryStatus.INTERRUPTED
        history_id = self._sequencer.commit(
            ticket,
            command=command,
            output=outcome.output,
            is_ai_generated=ai,
            status=status,
            exit_code=outcome.exit_code,
            working_directory=cwd,
            reason=outcome.message,
        )

        if outcome.completed:
            self._emit(
                EventKind.EXECUTED,
                command=command,
                exit_code=outcome.exit_code,
                ai_generated=ai,
            )
            result_status = DispatchStatus.EXECUTED
        else:
            self._emit(EventKind.INTERRUPTED, command=command, reason=outcome.message, ai_generated=ai)
            result_status = DispatchStatus.INTERRUPTED

        return DispatchResult(
            result_status,
            route=route,
            command=command,
            verdict=verdict,
            history_id=history_id,
            output=outcome.output,
            exit_code=outcome.exit_code,
            message=outcome.message,
        )

    # -- Shell I/O -----------------------------------------------------------

    async def _run_in_shell(self, command: str) -> _ShellOutcome:
        async with self._shell_lock:
            handle = self._state.handle
            if handle is None or self._closing:
                return _ShellOutcome("", None, completed=False, message="Session ended", dispatched=False)

            seq = self._next_seq
            self._next_seq += 1
            pending = _PendingCommand(seq, command, asyncio.get_running_loop().create_future())
            self._pending = pending

            async def write_and_wait() -> int | None:
                await self._shell.write(handle, frame_command(command, seq))
                return await asyncio.shield(pending.done)

            try:
                log.debug("Dispatching [%d]: %s", seq, command)
                # The timeout spans the write too; a full pipe blocks it.
                timeout = self._config.session.command_timeout
                try:
                    exit_code = await asyncio.wait_for(write_and_wait(), timeout)
                except ShellClosed as e:
                    log.warning("Shell closed while dispatching %r: %s", command, e)
                    return _ShellOutcome(pending.output, None, completed=False, message=str(e))
                except asyncio.TimeoutError:
                    log.warning("Command timed out after %ss: %s", timeout, command)
                    return _ShellOutcome(
                        pending.output,
                        None,
                        completed=False,
                        message=f"No completion within {timeout}s",
                    )

                if exit_code is None:
                    return _ShellOutcome(pending.output, None, completed=False, message="Session ended")
                return _ShellOutcome(pending.output, exit_code, completed=True)
            finally:
                if self._pending is pending:
                    self._pending = None

    def _interrupt_pending(self) -> None:
        pending = self._pending
        if pending is not None and not pending.done.done():
            pending.done.set_result(None)

    async def _read_output(self, handle: ShellHandle) -> None:
        parser = OutputParser()
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")

        try:
            async for chunk in self._shell.read(handle):
                self._consume(parser.feed(decoder.decode(chunk)))
            self._consume(parser.feed(decoder.decode(b"", final=True)))
            self._consume(parser.flush())
        except asyncio.CancelledError:
            raise
        except Exception as e:
            log.error("Shell output stream failed: %s", e)
            self._emit(EventKind.SESSION_ERROR, error=str(e))

        if self._closing:
            return

        exit_code = await self._shell.wait(handle)
        log.info("Shell exited with status %s", exit_code)
        self._state.mark_exited(exit_code)
        await self.terminate()

    def _consume(self, events: list[OutputEvent]) -> None:
        for event in events:
            if isinstance(event, StatusMarker):
                self._update_cwd(event.working_directory)
                pending = self._pending
                if pending is not None and pending.seq == event.seq and not pending.done.done():
                    pending.done.set_result(event.exit_code)
                else:
                    log.debug("Stale status marker [%d]", event.seq)
            elif isinstance(event, DirectoryChange):
                self._update_cwd(event.path)
            else:
                if self._pending is not None:
                    self._pending.chunks.append(event)
                self._emit(EventKind.OUTPUT, text=event)

    def _update_cwd(self, path: str) -> None:
        previous = self._state.current_working_directory
        if self._state.update_working_directory(path):
            log.debug("Working directory %s -> %s", previous, path)
            self._emit(EventKind.CWD_CHANGED, cwd=path, previous=previous)


def _parse_mode(value: str) -> AIMode:
    try:
        return AIMode(value)
    except ValueError:
        log.warning("Unknown AI mode %r in config, using disabled", value)
        return AIMode.DISABLED


def _parse_theme(value: str) -> Theme:
    try:
        return Theme(value)
    except ValueError:
        log.warning("Unknown theme %r in config, using dark", value)
        return Theme.DARK


def create_orchestrator(
    config: Config | None = None,
    *,
    cwd: str | None = None,
    confirmer: ConfirmationRequester | None = None,
    listener: EventListener | None = None,
) -> DispatchOrchestrator:
    """Build an orchestrator with the local subprocess shell and litellm backends."""
    config = config or get_config()
    shell = SubprocessShellBackend(config.session.shell, config.session.shell_args)
    model = LiteLLMModelBackend(config.llm.model, api_base=config.llm.api_base)
    return DispatchOrchestrator(
        shell,
        model,
        confirmer=confirmer,
        config=config,
        cwd=cwd,
        listener=listener,
    )
