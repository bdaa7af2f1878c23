"""Human-in-the-loop confirmation for commands the SafetyGate flags."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from enum import Enum

from llamaterminal.logging import get_logger

log = get_logger("confirmation")


class ConfirmationOutcome(Enum):
    """Answer to a confirmation request."""

    APPROVED = "approved"
    REJECTED = "rejected"
    TIMED_OUT = "timedOut"

    @property
    def approved(self) -> bool:
        return self is ConfirmationOutcome.APPROVED


# Callable[[candidate command, reason], Awaitable[outcome]]
ConfirmationRequester = Callable[[str, str], Awaitable[ConfirmationOutcome]]


async def request_confirmation(
    requester: ConfirmationRequester | None,
    command: str,
    reason: str,
    *,
    timeout: float | None,
) -> ConfirmationOutcome:
    """Ask the UI layer to confirm a command.

    No requester means nobody can approve, so the answer is REJECTED.
    Exceeding the timeout yields TIMED_OUT. Cancellation propagates.
    """
    if requester is None:
        log.info("No confirmation requester, rejecting: %s", command)
        return ConfirmationOutcome.REJECTED

    try:
        if timeout is not None:
            outcome = await asyncio.wait_for(requester(command, reason), timeout=timeout)
        else:
            outcome = await requester(command, reason)
    except asyncio.TimeoutError:
        log.info("Confirmation timed out after %ss: %s", timeout, command)
        return ConfirmationOutcome.TIMED_OUT

    if not isinstance(outcome, ConfirmationOutcome):
        # Treat truthy answers from simple callbacks as approval
        outcome = ConfirmationOutcome.APPROVED if outcome else ConfirmationOutcome.REJECTED
    return outcome
