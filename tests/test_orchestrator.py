"""Tests for the DispatchOrchestrator."""

from __future__ import annotations

import asyncio

import pytest
import pytest_asyncio

from llamaterminal.config import Config
from llamaterminal.core.llm import ModelError, Role
from llamaterminal.session import (
    AI_UNAVAILABLE_MARKER,
    AIMode,
    AlreadyRunning,
    CommandBlocked,
    ConfirmationOutcome,
    DispatchOrchestrator,
    DispatchStatus,
    EventKind,
    HistoryStatus,
    InvalidGeometry,
    Route,
    Theme,
)
from llamaterminal.terminal import SpawnError
from tests.utils import FakeModelBackend, FakeShellBackend, ScriptedCommand, wait_until


@pytest.fixture
def shell():
    return FakeShellBackend(
        {
            "git status": ScriptedCommand(output="On branch main\n"),
            "false": ScriptedCommand(exit_code=1),
            "cd /tmp": ScriptedCommand(cwd="/tmp"),
        }
    )


@pytest.fixture
def config():
    return Config()


@pytest.fixture
def events():
    return []


def kinds(events):
    return [e.kind for e in events]


@pytest_asyncio.fixture
async def orchestrator(shell, config, events):
    orch = DispatchOrchestrator(shell, None, config=config, cwd="/home/user", listener=events.append)
    await orch.start()
    yield orch
    await orch.terminate()


class Gate:
    """Confirmer that waits until the test answers."""

    def __init__(self):
        self.requests: list[tuple[str, str]] = []
        self.asked = asyncio.Event()
        self._answer: asyncio.Future | None = None

    async def __call__(self, command, reason):
        self.requests.append((command, reason))
        self._answer = asyncio.get_running_loop().create_future()
        self.asked.set()
        return await self._answer

    def answer(self, outcome):
        assert self._answer is not None
        self._answer.set_result(outcome)


# =============================================================================
# Lifecycle
# =============================================================================


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_start_spawns_with_state(self, shell, config):
        config.session.cols, config.session.rows = 120, 40
        orch = DispatchOrchestrator(shell, config=config, cwd="/srv")
        await orch.start()
        try:
            assert orch.state.is_running
            assert shell.spawn_args == ("/srv", 120, 40)
        finally:
            await orch.terminate()

    @pytest.mark.asyncio
    async def test_start_twice_raises(self, orchestrator, shell):
        with pytest.raises(AlreadyRunning):
            await orchestrator.start()
        assert orchestrator.state.is_running

    @pytest.mark.asyncio
    async def test_terminate_twice(self, orchestrator, shell, events):
        await orchestrator.terminate()
        assert orchestrator.state.is_running is False
        await orchestrator.terminate()
        assert orchestrator.state.is_running is False
        assert shell.terminate_calls == 1
        assert kinds(events).count(EventKind.SESSION_ENDED) == 1

    @pytest.mark.asyncio
    async def test_no_restart_after_terminate(self, orchestrator):
        await orchestrator.terminate()
        with pytest.raises(AlreadyRunning):
            await orchestrator.start()

    @pytest.mark.asyncio
    async def test_spawn_error(self, config, events):
        shell = FakeShellBackend(spawn_error=SpawnError("no such shell"))
        orch = DispatchOrchestrator(shell, config=config, listener=events.append)
        with pytest.raises(SpawnError):
            await orch.start()
        assert orch.state.is_running is False
        assert EventKind.SESSION_ERROR in kinds(events)

    @pytest.mark.asyncio
    async def test_submit_before_start(self, shell, config):
        orch = DispatchOrchestrator(shell, config=config)
        result = await orch.submit_user_text("ls")
        assert result.status is DispatchStatus.CANCELLED
        assert shell.writes == []
        assert len(orch.history) == 0

    @pytest.mark.asyncio
    async def test_context_manager(self, shell, config):
        async with DispatchOrchestrator(shell, config=config) as orch:
            assert orch.state.is_running
            result = await orch.submit_user_text("git status")
            assert result.executed
        assert orch.state.is_running is False
        assert shell.terminate_calls == 1

    @pytest.mark.asyncio
    async def test_shell_exit(self, orchestrator, shell, events):
        shell.exit(3)
        await wait_until(lambda: not orchestrator.state.is_running)
        assert orchestrator.state.exit_code == 3
        await wait_until(lambda: EventKind.SESSION_ENDED in kinds(events))

        result = await orchestrator.submit_user_text("ls")
        assert result.status is DispatchStatus.CANCELLED

    @pytest.mark.asyncio
    async def test_config_defaults_applied(self, shell, config):
        config.session.default_mode = "command"
        config.session.theme = "light"
        config.session.syntax_highlighting = False
        orch = DispatchOrchestrator(shell, config=config)
        assert orch.mode is AIMode.COMMAND
        assert orch.state.theme is Theme.LIGHT
        assert orch.state.syntax_highlighting_enabled is False

    def test_unknown_config_values_fall_back(self, shell, config):
        config.session.default_mode = "turbo"
        config.session.theme = "neon"
        orch = DispatchOrchestrator(shell, config=config)
        assert orch.mode is AIMode.DISABLED
        assert orch.state.theme is Theme.DARK


# =============================================================================
# Dispatch scenarios
# =============================================================================


class TestDispatch:
    @pytest.mark.asyncio
    async def test_dispatch_mode_model_command_runs(self, orchestrator, shell):
        orchestrator.set_mode(AIMode.DISPATCH)
        result = await orchestrator.submit_model_text("git status")

        assert result.status is DispatchStatus.EXECUTED
        assert result.route is Route.EXECUTE_GATED
        assert result.verdict.is_safe
        assert result.output == "On branch main"
        assert result.exit_code == 0
        assert shell.commands == ["git status"]

        items = list(orchestrator.history)
        assert len(items) == 1
        assert items[0].command == "git status"
        assert items[0].is_ai_generated is True
        assert items[0].output == "On branch main"
        assert items[0].id == result.history_id

    @pytest.mark.asyncio
    async def test_command_mode_blocks_destructive_user_command(self, orchestrator, shell, events):
        orchestrator.set_mode(AIMode.COMMAND)
        result = await orchestrator.submit_user_text("rm -rf /")

        assert result.status is DispatchStatus.BLOCKED
        assert isinstance(result.error, CommandBlocked)
        assert result.message
        assert shell.writes == []

        items = list(orchestrator.history)
        assert len(items) == 1
        assert items[0].is_ai_generated is False
        assert items[0].status is HistoryStatus.BLOCKED
        assert not items[0].executed
        assert EventKind.BLOCKED in kinds(events)

    @pytest.mark.asyncio
    async def test_auto_mode_model_text_is_suggestion(self, orchestrator, shell, events):
        orchestrator.set_mode(AIMode.AUTO)
        result = await orchestrator.submit_model_text("Try: `rm -rf build`")

        assert result.status is DispatchStatus.SUGGESTED
        assert result.suggestions == ["rm -rf build"]
        assert shell.writes == []
        assert len(orchestrator.history) == 0
        assert EventKind.SUGGESTION in kinds(events)

    @pytest.mark.asyncio
    async def test_disabled_mode_ignores_model_text(self, orchestrator, shell):
        result = await orchestrator.submit_model_text("git status")
        assert result.status is DispatchStatus.IGNORED
        assert shell.writes == []
        assert len(orchestrator.history) == 0

    @pytest.mark.asyncio
    async def test_code_mode_snippets_never_execute(self, orchestrator, shell, events):
        orchestrator.set_mode(AIMode.CODE)
        text = "Here you go:\n```bash\nrm -rf /tmp/cache\n```"
        result = await orchestrator.submit_model_text(text)

        assert result.status is DispatchStatus.SUGGESTED
        assert shell.writes == []
        snippet = next(e for e in events if e.kind is EventKind.CODE_SNIPPET)
        assert snippet.data["snippets"] == ["rm -rf /tmp/cache"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("mode", list(AIMode))
    async def test_user_command_history_provenance(self, orchestrator, mode):
        orchestrator.set_mode(mode)
        result = await orchestrator.submit_user_text("git status")
        assert result.executed
        assert [i.is_ai_generated for i in orchestrator.history] == [False]

    @pytest.mark.asyncio
    async def test_model_reply_with_fenced_block(self, orchestrator, shell):
        orchestrator.set_mode(AIMode.DISPATCH)
        text = "First check the repo:\n```bash\ngit status\n```\nthen\n```bash\ngit log\n```"
        result = await orchestrator.submit_model_text(text)
        assert result.command == "git status"
        assert shell.commands == ["git status"]

    @pytest.mark.asyncio
    async def test_model_reply_without_command_is_shown(self, orchestrator, shell):
        orchestrator.set_mode(AIMode.DISPATCH)
        result = await orchestrator.submit_model_text("I need more detail.\nWhich repository?")
        assert result.status is DispatchStatus.SUGGESTED
        assert shell.writes == []

    @pytest.mark.asyncio
    async def test_blank_user_line_ignored(self, orchestrator, shell):
        result = await orchestrator.submit_user_text("   ")
        assert result.status is DispatchStatus.IGNORED
        assert shell.writes == []

    @pytest.mark.asyncio
    async def test_exit_code_captured(self, orchestrator):
        result = await orchestrator.submit_user_text("false")
        assert result.executed
        assert result.exit_code == 1
        item = orchestrator.history.get(result.history_id)
        assert item.exit_code == 1
        assert not item.success

    @pytest.mark.asyncio
    async def test_output_events(self, orchestrator, events):
        await orchestrator.submit_user_text("git status")
        output = "".join(e.data["text"] for e in events if e.kind is EventKind.OUTPUT)
        assert "On branch main" in output
        assert "LLAMATERM" not in output

    @pytest.mark.asyncio
    async def test_write_failure_recorded_as_interrupted(self, orchestrator, shell):
        shell.fail_writes = True
        result = await orchestrator.submit_user_text("git status")
        assert result.status is DispatchStatus.INTERRUPTED
        assert result.message
        assert [i.status for i in orchestrator.history] == [HistoryStatus.INTERRUPTED]


# =============================================================================
# Confirmation
# =============================================================================


class TestConfirmation:
    @pytest_asyncio.fixture
    async def gated(self, shell, config, events):
        gate = Gate()
        orch = DispatchOrchestrator(
            shell, config=config, confirmer=gate, listener=events.append
        )
        orch.set_mode(AIMode.DISPATCH)
        await orch.start()
        yield orch, gate
        await orch.terminate()

    @pytest.mark.asyncio
    async def test_approved(self, gated, shell):
        orch, gate = gated
        task = asyncio.create_task(orch.submit_model_text("sudo apt update"))
        await gate.asked.wait()
        assert shell.writes == []
        gate.answer(ConfirmationOutcome.APPROVED)
        result = await task

        assert result.executed
        assert result.verdict.needs_confirmation
        assert shell.commands == ["sudo apt update"]
        assert gate.requests[0][0] == "sudo apt update"

    @pytest.mark.asyncio
    async def test_rejected(self, gated, shell, events):
        orch, gate = gated
        task = asyncio.create_task(orch.submit_model_text("git push --force"))
        await gate.asked.wait()
        gate.answer(ConfirmationOutcome.REJECTED)
        result = await task

        assert result.status is DispatchStatus.REJECTED
        assert shell.writes == []
        items = list(orch.history)
        assert [i.status for i in items] == [HistoryStatus.REJECTED]
        assert items[0].is_ai_generated is True
        assert EventKind.REJECTED in kinds(events)

    @pytest.mark.asyncio
    async def test_no_confirmer_rejects(self, orchestrator, shell):
        orchestrator.set_mode(AIMode.DISPATCH)
        result = await orchestrator.submit_model_text("sudo reboot-service")
        assert result.status is DispatchStatus.REJECTED
        assert shell.writes == []

    @pytest.mark.asyncio
    async def test_timeout_is_rejection(self, shell, config):
        config.safety.confirmation_timeout = 0.05

        async def never(command, reason):
            await asyncio.sleep(10)

        async with DispatchOrchestrator(shell, config=config, confirmer=never) as orch:
            orch.set_mode(AIMode.COMMAND)
            result = await orch.submit_user_text("rm notes.txt")

        assert result.status is DispatchStatus.REJECTED
        assert "timed out" in result.message
        assert shell.writes == []
        assert [i.status for i in orch.history] == [HistoryStatus.REJECTED]

    @pytest.mark.asyncio
    async def test_mode_switch_does_not_reclassify(self, gated, shell):
        orch, gate = gated
        task = asyncio.create_task(orch.submit_model_text("sudo apt update"))
        await gate.asked.wait()
        orch.set_mode(AIMode.DISABLED)
        gate.answer(ConfirmationOutcome.APPROVED)
        result = await task
        assert result.executed
        assert shell.commands == ["sudo apt update"]

    @pytest.mark.asyncio
    async def test_terminate_cancels_confirmation(self, gated, shell):
        orch, gate = gated
        task = asyncio.create_task(orch.submit_model_text("sudo apt update"))
        await gate.asked.wait()
        await orch.terminate()
        result = await task

        assert result.status is DispatchStatus.CANCELLED
        assert shell.writes == []
        assert len(orch.history) == 0


# =============================================================================
# Ordering
# =============================================================================


class TestOrdering:
    @pytest.mark.asyncio
    async def test_history_in_dispatch_order(self, shell, config):
        gate = Gate()
        async with DispatchOrchestrator(shell, config=config, confirmer=gate) as orch:
            orch.set_mode(AIMode.DISPATCH)
            slow = asyncio.create_task(orch.submit_model_text("sudo apt update"))
            await gate.asked.wait()

            fast = await orch.submit_user_text("git status")
            assert fast.executed
            # Held until the earlier decision commits
            assert len(orch.history) == 0

            gate.answer(ConfirmationOutcome.APPROVED)
            await slow

            assert [i.command for i in orch.history] == ["sudo apt update", "git status"]
            assert [i.is_ai_generated for i in orch.history] == [True, False]
            assert orch.history.get(fast.history_id).command == "git status"

    @pytest.mark.asyncio
    async def test_wait_recorded_returns_held_item(self, shell, config):
        gate = Gate()
        async with DispatchOrchestrator(shell, config=config, confirmer=gate) as orch:
            orch.set_mode(AIMode.DISPATCH)
            slow = asyncio.create_task(orch.submit_model_text("sudo apt update"))
            await gate.asked.wait()
            fast = await orch.submit_user_text("git status")
            assert orch.history.get(fast.history_id) is None

            waiter = asyncio.create_task(orch.wait_recorded(fast.history_id))
            await asyncio.sleep(0.01)
            assert not waiter.done()

            gate.answer(ConfirmationOutcome.APPROVED)
            item = await asyncio.wait_for(waiter, 1.0)
            await slow

            assert item.command == "git status"
            assert await orch.wait_recorded((await slow).history_id) is not None
            assert await orch.wait_recorded("no-such-id") is None

    @pytest.mark.asyncio
    async def test_abandoned_ticket_releases_later_records(self, shell, config):
        gate = Gate()
        orch = DispatchOrchestrator(shell, config=config, confirmer=gate)
        orch.set_mode(AIMode.DISPATCH)
        await orch.start()

        slow = asyncio.create_task(orch.submit_model_text("sudo apt update"))
        await gate.asked.wait()
        fast = asyncio.create_task(orch.submit_user_text("git status"))
        await wait_until(lambda: shell.commands == ["git status"])
        await fast

        await orch.terminate()
        assert (await slow).status is DispatchStatus.CANCELLED
        assert [i.command for i in orch.history] == ["git status"]

    @pytest.mark.asyncio
    async def test_writes_serialized(self, config):
        release = asyncio.Event()
        shell = FakeShellBackend({"make": ScriptedCommand(output="building\n", release=release)})
        async with DispatchOrchestrator(shell, config=config) as orch:
            first = asyncio.create_task(orch.submit_user_text("make"))
            second = asyncio.create_task(orch.submit_user_text("ls"))
            await wait_until(lambda: shell.commands == ["make"])
            await asyncio.sleep(0.05)
            assert shell.commands == ["make"]

            release.set()
            results = await asyncio.gather(first, second)

        assert [r.status for r in results] == [DispatchStatus.EXECUTED] * 2
        assert results[0].output == "building"
        assert shell.commands == ["make", "ls"]


# =============================================================================
# Interruption and timeouts
# =============================================================================


class TestInterruption:
    @pytest.mark.asyncio
    async def test_terminate_keeps_buffered_output(self, config, events):
        shell = FakeShellBackend({"tail -f log": ScriptedCommand(output="line 1\n", hang=True)})
        orch = DispatchOrchestrator(shell, config=config, listener=events.append)
        await orch.start()

        task = asyncio.create_task(orch.submit_user_text("tail -f log"))
        await wait_until(lambda: EventKind.OUTPUT in kinds(events))
        await orch.terminate()
        result = await task

        assert result.status is DispatchStatus.INTERRUPTED
        assert result.output == "line 1"
        item = orch.history.get(result.history_id)
        assert item.status is HistoryStatus.INTERRUPTED
        assert item.output == "line 1"

    @pytest.mark.asyncio
    async def test_command_timeout(self, config):
        config.session.command_timeout = 0.05
        shell = FakeShellBackend({"sleep 100": ScriptedCommand(output="zz\n", hang=True)})
        async with DispatchOrchestrator(shell, config=config) as orch:
            result = await orch.submit_user_text("sleep 100")
            assert result.status is DispatchStatus.INTERRUPTED
            assert "0.05" in result.message
            assert result.output == "zz"

            after = await orch.submit_user_text("echo ok")
            assert after.executed

        assert [i.status for i in orch.history] == [
            HistoryStatus.INTERRUPTED,
            HistoryStatus.EXECUTED,
        ]

    @pytest.mark.asyncio
    async def test_timeout_covers_blocked_write(self, config):
        class StuckShell(FakeShellBackend):
            async def write(self, handle, data):
                self.writes.append(data)
                await asyncio.Event().wait()

        config.session.command_timeout = 0.05
        async with DispatchOrchestrator(StuckShell(), config=config) as orch:
            result = await asyncio.wait_for(orch.submit_user_text("cat big.log"), 1.0)

        assert result.status is DispatchStatus.INTERRUPTED
        assert "0.05" in result.message


# =============================================================================
# Model queries
# =============================================================================


class TestAsk:
    @pytest.mark.asyncio
    async def test_ask_dispatches_model_command(self, shell, config, events):
        model = FakeModelBackend("Let me check.\n```bash\ngit status\n```")
        async with DispatchOrchestrator(
            shell, model, config=config, cwd="/repo", listener=events.append
        ) as orch:
            orch.set_mode(AIMode.DISPATCH)
            result = await orch.ask("what changed?")

        assert result.executed
        assert shell.commands == ["git status"]
        assert list(orch.history)[0].is_ai_generated is True
        assert EventKind.SUGGESTION_CHUNK in kinds(events)

        context = model.contexts[0]
        assert context.messages[0].role is Role.SYSTEM
        assert "Working directory: /repo" in context.messages[1].content
        assert context.messages[1].content.endswith("what changed?")

    @pytest.mark.asyncio
    async def test_ask_includes_recent_history(self, shell, config):
        model = FakeModelBackend("ok then")
        async with DispatchOrchestrator(shell, model, config=config) as orch:
            orch.set_mode(AIMode.AUTO)
            await orch.submit_user_text("false")
            await orch.ask("why did that fail?")
        assert "$ false" in model.contexts[0].messages[1].content

    @pytest.mark.asyncio
    async def test_ask_in_auto_mode_suggests(self, shell, config):
        model = FakeModelBackend("git status")
        async with DispatchOrchestrator(shell, model, config=config) as orch:
            orch.set_mode(AIMode.AUTO)
            result = await orch.ask("what now?")
        assert result.status is DispatchStatus.SUGGESTED
        assert result.suggestions == ["git status"]
        assert shell.writes == []

    @pytest.mark.asyncio
    async def test_ask_disabled(self, shell, config):
        model = FakeModelBackend("git status")
        async with DispatchOrchestrator(shell, model, config=config) as orch:
            result = await orch.ask("anything")
        assert result.status is DispatchStatus.IGNORED
        assert model.contexts == []

    @pytest.mark.asyncio
    async def test_model_error_falls_back(self, shell, config, events):
        model = FakeModelBackend(error=ModelError("connection refused"))
        async with DispatchOrchestrator(shell, model, config=config, listener=events.append) as orch:
            orch.set_mode(AIMode.DISPATCH)
            result = await orch.ask("deploy")

        assert result.status is DispatchStatus.SUGGESTED
        assert result.route is Route.SUGGEST_ONLY
        assert result.ai_unavailable is True
        assert AI_UNAVAILABLE_MARKER in result.message
        assert isinstance(result.error, ModelError)
        assert shell.writes == []
        assert len(orch.history) == 0
        unavailable = next(e for e in events if e.kind is EventKind.AI_UNAVAILABLE)
        assert unavailable.data["marker"] == AI_UNAVAILABLE_MARKER

    @pytest.mark.asyncio
    async def test_no_model_backend(self, shell, config):
        async with DispatchOrchestrator(shell, None, config=config) as orch:
            orch.set_mode(AIMode.COMMAND)
            result = await orch.ask("help")
        assert result.ai_unavailable is True

    @pytest.mark.asyncio
    async def test_terminate_cancels_model_request(self, shell, config):
        model = FakeModelBackend(hang=True)
        orch = DispatchOrchestrator(shell, model, config=config)
        orch.set_mode(AIMode.DISPATCH)
        await orch.start()

        task = asyncio.create_task(orch.ask("long question"))
        await model.started.wait()
        await orch.terminate()
        result = await task

        assert result.status is DispatchStatus.CANCELLED
        assert model.cancelled is True
        assert shell.writes == []


# =============================================================================
# State and events
# =============================================================================


class TestStateUpdates:
    @pytest.mark.asyncio
    async def test_cwd_from_status_line(self, orchestrator, events):
        await orchestrator.submit_user_text("cd /tmp")
        assert orchestrator.state.current_working_directory == "/tmp"
        changed = next(e for e in events if e.kind is EventKind.CWD_CHANGED)
        assert changed.data == {"cwd": "/tmp", "previous": "/home/user"}

    @pytest.mark.asyncio
    async def test_cwd_from_osc7(self, orchestrator, shell):
        shell.emit(b"\x1b]7;file://box/var/log\x07\n")
        await wait_until(lambda: orchestrator.state.current_working_directory == "/var/log")

    @pytest.mark.asyncio
    async def test_recorded_cwd_is_dispatch_time_cwd(self, orchestrator):
        result = await orchestrator.submit_user_text("cd /tmp")
        assert orchestrator.history.get(result.history_id).working_directory == "/home/user"

    @pytest.mark.asyncio
    async def test_resize(self, orchestrator, shell):
        await orchestrator.resize(100, 30)
        assert (orchestrator.state.cols, orchestrator.state.rows) == (100, 30)
        assert shell.resizes == [(100, 30)]

    @pytest.mark.asyncio
    async def test_invalid_resize_has_no_side_effect(self, orchestrator, shell):
        with pytest.raises(InvalidGeometry):
            await orchestrator.resize(0, 30)
        assert (orchestrator.state.cols, orchestrator.state.rows) == (80, 25)
        assert shell.resizes == []

    @pytest.mark.asyncio
    async def test_theme_and_highlighting(self, orchestrator):
        orchestrator.set_theme(Theme.LIGHT)
        orchestrator.toggle_syntax_highlighting(False)
        assert orchestrator.state.theme is Theme.LIGHT
        assert orchestrator.state.syntax_highlighting_enabled is False

    @pytest.mark.asyncio
    async def test_mode_changed_event(self, orchestrator, events):
        orchestrator.set_mode(AIMode.CODE)
        orchestrator.set_mode(AIMode.CODE)
        changes = [e for e in events if e.kind is EventKind.MODE_CHANGED]
        assert len(changes) == 1
        assert changes[0].data == {"mode": "code", "previous": "disabled"}


class TestEvents:
    @pytest.mark.asyncio
    async def test_events_iterator_ends_with_session(self, shell, config):
        orch = DispatchOrchestrator(shell, config=config)
        await orch.start()
        seen = []

        async def consume():
            async for event in orch.events():
                seen.append(event.kind)

        consumer = asyncio.create_task(consume())
        await asyncio.sleep(0)
        await orch.submit_user_text("git status")
        await orch.terminate()
        await asyncio.wait_for(consumer, 1.0)

        assert EventKind.OUTPUT in seen
        assert EventKind.EXECUTED in seen
        assert seen[-1] is EventKind.SESSION_ENDED

    @pytest.mark.asyncio
    async def test_failing_listener_does_not_break_dispatch(self, shell, config):
        def broken(event):
            raise RuntimeError("ui gone")

        async with DispatchOrchestrator(shell, config=config, listener=broken) as orch:
            result = await orch.submit_user_text("git status")
        assert result.executed

    @pytest.mark.asyncio
    async def test_events_queued_before_first_iteration(self, shell, config):
        async with DispatchOrchestrator(shell, config=config) as orch:
            subscription = orch.events()
            await orch.submit_user_text("git status")

        seen = [event.kind async for event in subscription]
        assert EventKind.EXECUTED in seen
        assert seen[-1] is EventKind.SESSION_ENDED

    @pytest.mark.asyncio
    async def test_events_after_close(self, shell, config):
        orch = DispatchOrchestrator(shell, config=config)
        await orch.start()
        subscription = orch.events()
        await subscription.aclose()
        await orch.submit_user_text("git status")
        assert [event async for event in subscription] == []

        await orch.terminate()
        assert [event async for event in orch.events()] == []
