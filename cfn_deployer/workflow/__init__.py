"""Stack action orchestration."""

from cfn_deployer.workflow.stack_action import (
    EXIT_ABORTED,
    EXIT_INTERRUPTED,
    EXIT_STACK_FAILED,
    EXIT_SUCCESS,
    EXIT_USAGE,
    build_request,
    dispatch,
    exit_code_for,
    run_stack_action,
)

__all__ = [
    "EXIT_ABORTED",
    "EXIT_INTERRUPTED",
    "EXIT_STACK_FAILED",
    "EXIT_SUCCESS",
    "EXIT_USAGE",
    "build_request",
    "dispatch",
    "exit_code_for",
    "run_stack_action",
]
