"""LlamaTerminal: a shell session with a local model that suggests or dispatches commands."""

__version__ = "0.1.0"

# Public API
from llamaterminal.config import Config, get_config, load_config
from llamaterminal.core import LiteLLMModelBackend, Message, ModelBackend, ModelError, PromptContext, Role
from llamaterminal.session import (
    AIMode,
    AlreadyRunning,
    CommandBlocked,
    CommandHistory,
    CommandHistoryItem,
    ConfirmationOutcome,
    DispatchEvent,
    DispatchOrchestrator,
    DispatchResult,
    DispatchStatus,
    EventKind,
    HistoryStatus,
    InvalidGeometry,
    ModeController,
    Route,
    SafetyGate,
    SafetyVerdict,
    SessionState,
    Theme,
    Verdict,
    create_orchestrator,
)
from llamaterminal.terminal import ShellBackend, ShellHandle, SpawnError, SubprocessShellBackend

__all__ = [
    # Main entry points
    "DispatchOrchestrator",
    "create_orchestrator",
    "DispatchEvent",
    "DispatchResult",
    "DispatchStatus",
    "EventKind",
    # Session components
    "AIMode",
    "CommandHistory",
    "CommandHistoryItem",
    "ConfirmationOutcome",
    "HistoryStatus",
    "ModeController",
    "Route",
    "SafetyGate",
    "SafetyVerdict",
    "SessionState",
    "Theme",
    "Verdict",
    # Errors
    "AlreadyRunning",
    "CommandBlocked",
    "InvalidGeometry",
    "ModelError",
    "SpawnError",
    # Config
    "Config",
    "load_config",
    "get_config",
    # Backends
    "LiteLLMModelBackend",
    "Message",
    "ModelBackend",
    "PromptContext",
    "Role",
    "ShellBackend",
    "ShellHandle",
    "SubprocessShellBackend",
]
