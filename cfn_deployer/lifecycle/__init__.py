"""Stack convergence polling."""

from cfn_deployer.lifecycle.monitor import (
    DEFAULT_POLL_INTERVAL,
    TERMINAL_STATES,
    CancelToken,
    TerminalStates,
    classify_status,
    wait_for_stack,
)

__all__ = [
    "CancelToken",
    "DEFAULT_POLL_INTERVAL",
    "TERMINAL_STATES",
    "TerminalStates",
    "classify_status",
    "wait_for_stack",
]
