"""Terminal session state.

One SessionState per terminal session, owned and written only by its
DispatchOrchestrator. A terminated state never runs again; a new shell
needs a new SessionState.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from llamaterminal.logging import get_logger

log = get_logger("session")

DEFAULT_COLS = 80
DEFAULT_ROWS = 25


class Theme(Enum):
    """Terminal color theme."""

    DARK = "dark"
    LIGHT = "light"
    HIGH_CONTRAST = "highContrast"


class InvalidGeometry(ValueError):
    """Raised when terminal geometry is not strictly positive."""


class AlreadyRunning(RuntimeError):
    """Raised when starting a session that is running or already terminated."""


def _check_geometry(cols: int, rows: int) -> None:
    if cols <= 0 or rows <= 0:
        raise InvalidGeometry(f"Terminal geometry must be positive, got {cols}x{rows}")


@dataclass
class SessionState:
    """State of one terminal session.

    Attributes:
        cols: Terminal width in columns.
        rows: Terminal height in rows.
        current_working_directory: Best-effort shell working directory.
        theme: Color theme.
        syntax_highlighting_enabled: Whether output highlighting is on.
        exit_code: Backend exit status once the process has exited.
    """

    cols: int = DEFAULT_COLS
    rows: int = DEFAULT_ROWS
    current_working_directory: str = field(default_factory=os.getcwd)
    theme: Theme = Theme.DARK
    syntax_highlighting_enabled: bool = True
    exit_code: int | None = None
    _handle: Any = field(default=None, init=False, repr=False)
    _running: bool = field(default=False, init=False, repr=False)
    _terminated: bool = field(default=False, init=False, repr=False)

    def __post_init__(self) -> None:
        _check_geometry(self.cols, self.rows)

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def terminated(self) -> bool:
        return self._terminated

    @property
    def handle(self) -> Any:
        """The bound backend handle, or None."""
        return self._handle

    def start(self, backend_handle: Any) -> None:
        """Bind a backend handle and enter the running state.

        Raises:
            AlreadyRunning: If running, or if this state was terminated.
        """
        if self._running:
            raise AlreadyRunning("Session is already running")
        if self._terminated:
            raise AlreadyRunning("Session was terminated; create a new SessionState")
        self._handle = backend_handle
        self._running = True
        log.debug("Session started in %s", self.current_working_directory)

    def terminate(self) -> None:
        """Leave the running state. Calling it again is a no-op."""
        if self._terminated:
            return
        self._running = False
        self._terminated = True
        self._handle = None
        log.debug("Session terminated")

    def mark_exited(self, exit_code: int | None) -> None:
        """Record that the backend process exited on its own."""
        if self._terminated:
            return
        self.exit_code = exit_code
        self.terminate()

    def update_size(self, cols: int, rows: int) -> None:
        """Set terminal geometry.

        Raises:
            InvalidGeometry: If either value is not positive. State is unchanged.
        """
        _check_geometry(cols, rows)
        self.cols = cols
        self.rows = rows

    def set_theme(self, theme: Theme) -> None:
        self.theme = theme

    def toggle_syntax_highlighting(self, enabled: bool) -> None:
        self.syntax_highlighting_enabled = enabled

    def update_working_directory(self, path: str) -> bool:
        """Record a detected directory change.

        Returns:
            True if the working directory changed.
        """
        if not path or path == self.current_working_directory:
            return False
        self.current_working_directory = path
        return True
