"""AI modes and the routing table.

The active mode decides, for each incoming text, whether it is executed
directly, executed after the SafetyGate, shown as a suggestion, or
ignored. A mode switch only affects routing decisions made after it.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from llamaterminal.logging import get_logger

log = get_logger("modes")


class AIMode(Enum):
    """AI assistance mode of a session."""

    DISABLED = "disabled"
    AUTO = "auto"
    DISPATCH = "dispatch"
    COMMAND = "command"
    CODE = "code"

    @property
    def display_name(self) -> str:
        return _DISPLAY_NAMES[self]

    @property
    def description(self) -> str:
        return _DESCRIPTIONS[self]


_DISPLAY_NAMES = {
    AIMode.DISABLED: "Disabled",
    AIMode.AUTO: "Auto Assistant",
    AIMode.DISPATCH: "Task Dispatcher",
    AIMode.COMMAND: "Command Assistant",
    AIMode.CODE: "Code Assistant",
}

_DESCRIPTIONS = {
    AIMode.DISABLED: "No AI assistance",
    AIMode.AUTO: "Suggests commands based on terminal activity",
    AIMode.DISPATCH: "Runs model-proposed commands after a safety check",
    AIMode.COMMAND: "Vets every typed command and explains commands",
    AIMode.CODE: "Shows code snippets; never executes model output",
}


class Origin(Enum):
    """Where a piece of text came from."""

    USER = "user"
    MODEL = "model"


class Route(Enum):
    """Routing outcome for a piece of text."""

    EXECUTE_DIRECT = "executeDirect"
    EXECUTE_GATED = "executeGated"
    SUGGEST_ONLY = "suggestOnly"
    IGNORE = "ignore"

    @property
    def executes(self) -> bool:
        return self in (Route.EXECUTE_DIRECT, Route.EXECUTE_GATED)


ROUTING_TABLE: dict[tuple[AIMode, Origin], Route] = {
    (AIMode.DISABLED, Origin.USER): Route.EXECUTE_DIRECT,
    (AIMode.DISABLED, Origin.MODEL): Route.IGNORE,
    (AIMode.AUTO, Origin.USER): Route.EXECUTE_DIRECT,
    (AIMode.AUTO, Origin.MODEL): Route.SUGGEST_ONLY,
    (AIMode.DISPATCH, Origin.USER): Route.EXECUTE_DIRECT,
    (AIMode.DISPATCH, Origin.MODEL): Route.EXECUTE_GATED,
    (AIMode.COMMAND, Origin.USER): Route.EXECUTE_GATED,
    (AIMode.COMMAND, Origin.MODEL): Route.SUGGEST_ONLY,
    (AIMode.CODE, Origin.USER): Route.EXECUTE_DIRECT,
    (AIMode.CODE, Origin.MODEL): Route.SUGGEST_ONLY,
}


@dataclass(frozen=True, slots=True)
class RoutingDecision:
    """A routing decision, with the mode it was made under."""

    route: Route
    mode: AIMode
    origin: Origin

    @property
    def is_ai_generated(self) -> bool:
        return self.origin is Origin.MODEL

    @property
    def is_code(self) -> bool:
        """Model text in code mode: a snippet, never a command."""
        return self.mode is AIMode.CODE and self.origin is Origin.MODEL


class ModeController:
    """Holds the active AIMode and routes text through ROUTING_TABLE."""

    def __init__(self, mode: AIMode = AIMode.DISABLED) -> None:
        self._mode = mode

    @property
    def mode(self) -> AIMode:
        return self._mode

    def set_mode(self, mode: AIMode) -> None:
        """Switch modes. Decisions already returned are unaffected."""
        if mode is not self._mode:
            log.info("AI mode %s -> %s", self._mode.value, mode.value)
        self._mode = mode

    def route(self, origin: Origin) -> RoutingDecision:
        return RoutingDecision(
            route=ROUTING_TABLE[(self._mode, origin)],
            mode=self._mode,
            origin=origin,
        )

    def route_user_text(self) -> RoutingDecision:
        return self.route(Origin.USER)

    def route_model_text(self) -> RoutingDecision:
        return self.route(Origin.MODEL)
