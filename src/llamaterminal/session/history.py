"""Provenance-tagged command history.

History is append-only: items are frozen once recorded, and a correction
is a new item. Insertion order is dispatch order.
"""

from __future__ import annotations

import uuid
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

from llamaterminal.logging import get_logger

audit = get_logger("audit")

# Commands logged at WARNING when executed, mirroring the audit trail's risk list
_HIGH_RISK_MARKERS = ("rm -", "rmdir", "mv ", "dd ", "sudo", "mkfs", "> /", "chmod", "chown")


class HistoryStatus(Enum):
    """What happened to a recorded command."""

    EXECUTED = "executed"  # Reached the backend and completed
    REJECTED = "rejected"  # Confirmation denied or timed out
    BLOCKED = "blocked"  # Refused by the SafetyGate
    INTERRUPTED = "interrupted"  # Reached the backend, session ended first


@dataclass(frozen=True, slots=True)
class CommandHistoryItem:
    """One recorded command.

    Attributes:
        id: Unique identifier.
        command: The command text.
        output: Captured output (may be empty).
        timestamp: When the item was recorded (UTC).
        is_ai_generated: True iff the command came from the model backend.
        status: Execution outcome.
        exit_code: Exit status reported by the shell, if any.
        working_directory: Shell working directory at dispatch time.
        reason: Gate or rejection reason for non-executed items.
    """

    command: str
    is_ai_generated: bool
    output: str = ""
    status: HistoryStatus = HistoryStatus.EXECUTED
    exit_code: int | None = None
    working_directory: str | None = None
    reason: str | None = None
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def executed(self) -> bool:
        return self.status is HistoryStatus.EXECUTED

    @property
    def success(self) -> bool:
        return self.executed and self.exit_code == 0


HistoryPredicate = Callable[[CommandHistoryItem], bool]


class HistoryView:
    """Lazy, restartable, insertion-ordered view over a CommandHistory.

    Each iteration walks the history as it is at that moment, so items
    recorded after the view was created show up on the next pass.
    """

    def __init__(self, items: list[CommandHistoryItem], predicate: HistoryPredicate) -> None:
        self._items = items
        self._predicate = predicate

    def __iter__(self) -> Iterator[CommandHistoryItem]:
        for item in list(self._items):
            if self._predicate(item):
                yield item

    def first(self) -> CommandHistoryItem | None:
        return next(iter(self), None)

    def count(self) -> int:
        return sum(1 for _ in self)

    def __repr__(self) -> str:
        return f"<HistoryView {self.count()} items>"


class CommandHistory:
    """Append-only log of dispatched commands."""

    def __init__(self) -> None:
        self._items: list[CommandHistoryItem] = []
        self._by_id: dict[str, CommandHistoryItem] = {}

    def record(
        self,
        command: str,
        output: str,
        is_ai_generated: bool,
        *,
        status: HistoryStatus = HistoryStatus.EXECUTED,
        exit_code: int | None = None,
        working_directory: str | None = None,
        reason: str | None = None,
        item_id: str | None = None,
    ) -> str:
        """Append a new item.

        Args:
            item_id: Id reserved by the caller before recording; a fresh
                one is generated when omitted.

        Returns:
            The new item's id.
        """
        extra = {"id": item_id} if item_id else {}
        item = CommandHistoryItem(
            command=command,
            output=output,
            is_ai_generated=is_ai_generated,
            status=status,
            exit_code=exit_code,
            working_directory=working_directory,
            reason=reason,
            **extra,
        )
        self._items.append(item)
        self._by_id[item.id] = item
        _audit(item)
        return item.id

    def filter(
        self,
        predicate: HistoryPredicate | None = None,
        *,
        contains: str | None = None,
        ai_generated: bool | None = None,
        status: HistoryStatus | None = None,
    ) -> HistoryView:
        """Return a lazy view of matching items in insertion order.

        Args:
            predicate: Arbitrary item predicate.
            contains: Case-insensitive substring of the command text.
            ai_generated: Only items with this provenance.
            status: Only items with this status.
        """
        needle = contains.lower() if contains else None

        def matches(item: CommandHistoryItem) -> bool:
            if needle is not None and needle not in item.command.lower():
                return False
            if ai_generated is not None and item.is_ai_generated != ai_generated:
                return False
            if status is not None and item.status is not status:
                return False
            return predicate(item) if predicate else True

        return HistoryView(self._items, matches)

    def search(self, text: str) -> HistoryView:
        """Substring search over command text."""
        return self.filter(contains=text)

    def get(self, item_id: str) -> CommandHistoryItem | None:
        """Item by id, or None.

        A session commits records in dispatch order, so an id from a
        finished command can be missing here while an earlier command is
        still running. ``DispatchOrchestrator.wait_recorded`` waits for it.
        """
        return self._by_id.get(item_id)

    def last(self, n: int | None = None) -> list[CommandHistoryItem]:
        """The most recent items, oldest first (all of them if n is None)."""
        if n is None:
            return list(self._items)
        return self._items[-n:] if n > 0 else []

    def clear(self) -> None:
        """Empty the log."""
        self._items.clear()
        self._by_id.clear()

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[CommandHistoryItem]:
        return iter(list(self._items))


def _audit(item: CommandHistoryItem) -> None:
    """Write the audit trail line for a recorded item."""
    source = "ai" if item.is_ai_generated else "user"
    if item.status is HistoryStatus.EXECUTED:
        high_risk = any(marker in item.command for marker in _HIGH_RISK_MARKERS)
        failed = item.exit_code not in (0, None)
        log_fn = audit.warning if high_risk or failed else audit.info
        log_fn(
            "%s_command_executed command=%r exit=%s cwd=%s",
            source,
            item.command,
            item.exit_code,
            item.working_directory,
        )
    elif item.status is HistoryStatus.BLOCKED:
        audit.warning("command_blocked source=%s command=%r reason=%s", source, item.command, item.reason)
    elif item.status is HistoryStatus.REJECTED:
        audit.info("command_rejected source=%s command=%r reason=%s", source, item.command, item.reason)
    else:
        audit.info("command_interrupted source=%s command=%r", source, item.command)
