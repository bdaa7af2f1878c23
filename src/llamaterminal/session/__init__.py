"""Session and dispatch layer: state, history, safety gate, modes, orchestrator."""

from llamaterminal.session.confirmation import (
    ConfirmationOutcome,
    ConfirmationRequester,
    request_confirmation,
)
from llamaterminal.session.history import (
    CommandHistory,
    CommandHistoryItem,
    HistoryStatus,
    HistoryView,
)
from llamaterminal.session.modes import (
    ROUTING_TABLE,
    AIMode,
    ModeController,
    Origin,
    Route,
    RoutingDecision,
)
from llamaterminal.session.orchestrator import (
    AI_UNAVAILABLE_MARKER,
    DispatchEvent,
    DispatchOrchestrator,
    DispatchResult,
    DispatchStatus,
    EventKind,
    EventSubscription,
    create_orchestrator,
)
from llamaterminal.session.safety import (
    CommandBlocked,
    SafetyGate,
    SafetyRule,
    SafetyVerdict,
    Verdict,
)
from llamaterminal.session.state import AlreadyRunning, InvalidGeometry, SessionState, Theme

__all__ = [
    # State
    "AlreadyRunning",
    "InvalidGeometry",
    "SessionState",
    "Theme",
    # History
    "CommandHistory",
    "CommandHistoryItem",
    "HistoryStatus",
    "HistoryView",
    # Safety
    "CommandBlocked",
    "SafetyGate",
    "SafetyRule",
    "SafetyVerdict",
    "Verdict",
    # Modes
    "AIMode",
    "ModeController",
    "Origin",
    "ROUTING_TABLE",
    "Route",
    "RoutingDecision",
    # Confirmation
    "ConfirmationOutcome",
    "ConfirmationRequester",
    "request_confirmation",
    # Orchestrator
    "AI_UNAVAILABLE_MARKER",
    "DispatchEvent",
    "DispatchOrchestrator",
    "DispatchResult",
    "DispatchStatus",
    "EventKind",
    "EventSubscription",
    "create_orchestrator",
]
