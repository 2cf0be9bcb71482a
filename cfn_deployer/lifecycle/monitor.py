"""Stack convergence monitor — poll until a terminal status.

After a mutation is accepted, :func:`wait_for_stack` owns the rest of the
run: sleep, query ``DescribeStacks``, classify, repeat.  There is no
iteration cap; the loop ends on a terminal status, an optional caller
deadline, or cancellation.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, FrozenSet, Optional

from cfn_deployer.aws.cloudformation import describe_stack
from cfn_deployer.errors import StackNotFoundError, WaitInterrupted
from cfn_deployer.state.models import (
    Action,
    OutcomeKind,
    StackOutcome,
    StackSnapshot,
)

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

#: Default seconds between status polls.
DEFAULT_POLL_INTERVAL: float = 5.0


@dataclass(frozen=True)
class TerminalStates:
    """Success and failure status sets for one action."""

    success: FrozenSet[str]
    failure: FrozenSet[str]


#: Terminal status tables.  Delete success is observed as absence.
TERMINAL_STATES: Dict[Action, TerminalStates] = {
    Action.CREATE: TerminalStates(
        success=frozenset({"CREATE_COMPLETE"}),
        failure=frozenset({"CREATE_FAILED", "ROLLBACK_COMPLETE"}),
    ),
    Action.UPDATE: TerminalStates(
        success=frozenset({"UPDATE_COMPLETE"}),
        failure=frozenset({"UPDATE_FAILED", "UPDATE_ROLLBACK_COMPLETE"}),
    ),
    Action.DELETE: TerminalStates(
        success=frozenset(),
        failure=frozenset({"DELETE_FAILED"}),
    ),
}

StatusCallback = Callable[[StackSnapshot, int, float], None]


# ---------------------------------------------------------------------------
# Cancellation
# ---------------------------------------------------------------------------


class CancelToken:
    """Cooperative cancellation flag for the polling loop.

    May be cancelled from another thread or a signal handler; a pending
    :meth:`sleep` wakes immediately.
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def check(self) -> None:
        """Raise :class:`WaitInterrupted` if cancelled."""
        if self._event.is_set():
            raise WaitInterrupted("Wait for stack was interrupted")

    def sleep(self, seconds: float) -> None:
        """Sleep up to *seconds*, raising :class:`WaitInterrupted` on cancel."""
        if self._event.wait(seconds):
            raise WaitInterrupted("Wait for stack was interrupted")


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------


def classify_status(action: Action, status: str) -> Optional[OutcomeKind]:
    """Return SUCCEEDED / FAILED for a terminal *status*, else None."""
    states = TERMINAL_STATES[action]
    if status in states.success:
        return OutcomeKind.SUCCEEDED
    if status in states.failure:
        return OutcomeKind.FAILED
    return None


# ---------------------------------------------------------------------------
# Wait loop
# ---------------------------------------------------------------------------


def wait_for_stack(
    cfn_client: Any,
    stack_name: str,
    action: Action,
    *,
    poll_interval: float = DEFAULT_POLL_INTERVAL,
    timeout: Optional[float] = None,
    cancel: Optional[CancelToken] = None,
    on_status: Optional[StatusCallback] = None,
    _sleep_fn: Any = None,
    _clock: Any = None,
) -> StackOutcome:
    """Block until *stack_name* reaches a terminal status for *action*.

    * Sleep *poll_interval*, then query the status.
    * Success set → SUCCEEDED, with the outputs from that same response
      for create and update.
    * Failure set → FAILED with the observed status.
    * Delete only: a "does not exist" query → SUCCEEDED (``absent=True``).
    * Anything else → keep polling.

    *timeout*, when given, ends the wait with ABORTED; it never yields
    FAILED.  ``RemoteServiceError`` from a query propagates.

    Raises:
        WaitInterrupted: *cancel* was triggered, or ``KeyboardInterrupt``
            arrived during a sleep or query.

    The *_sleep_fn* and *_clock* parameters are for test injection.
    """
    token = cancel or CancelToken()
    sleep = _sleep_fn or token.sleep
    clock = _clock or time.time
    start = clock()
    polls = 0
    last_status: Optional[str] = None

    try:
        while True:
            token.check()
            sleep(poll_interval)
            token.check()

            elapsed = clock() - start
            if timeout is not None and elapsed >= timeout:
                logger.warning(
                    "Gave up waiting for %s after %.0fs (last status %s)",
                    stack_name, elapsed, last_status,
                )
                return StackOutcome.aborted(
                    stack_name,
                    f"Timed out after {elapsed:.0f}s waiting for stack "
                    f"{action.noun} (last status: {last_status or 'unknown'})",
                    action=action,
                    final_status=last_status,
                    polls=polls,
                    elapsed_seconds=elapsed,
                )

            polls += 1
            try:
                snapshot = describe_stack(cfn_client, stack_name)
            except StackNotFoundError:
                if action is not Action.DELETE:
                    raise
                logger.info("Stack %s no longer exists.", stack_name)
                return StackOutcome(
                    kind=OutcomeKind.SUCCEEDED,
                    stack_name=stack_name,
                    action=action,
                    final_status=last_status,
                    message="Stack deleted successfully!",
                    polls=polls,
                    elapsed_seconds=clock() - start,
                    absent=True,
                )

            last_status = snapshot.status
            elapsed = clock() - start
            logger.debug(
                "Stack %s status %s (%.0fs elapsed)", stack_name, last_status, elapsed,
            )
            if on_status is not None:
                on_status(snapshot, polls, elapsed)

            kind = classify_status(action, snapshot.status)
            if kind is None:
                continue

            if kind is OutcomeKind.SUCCEEDED:
                return StackOutcome(
                    kind=kind,
                    stack_name=stack_name,
                    action=action,
                    final_status=snapshot.status,
                    message=f"Stack {action.past_tense} successfully!",
                    outputs=list(snapshot.outputs),
                    polls=polls,
                    elapsed_seconds=elapsed,
                )

            message = f"Stack {action.noun} failed! Status: {snapshot.status}"
            if snapshot.status_reason:
                message += f" ({snapshot.status_reason})"
            return StackOutcome(
                kind=kind,
                stack_name=stack_name,
                action=action,
                final_status=snapshot.status,
                message=message,
                polls=polls,
                elapsed_seconds=elapsed,
            )
    except KeyboardInterrupt as exc:
        raise WaitInterrupted("Wait for stack was interrupted") from exc
