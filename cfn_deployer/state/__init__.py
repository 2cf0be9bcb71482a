"""Transient request, observation and outcome models."""

from cfn_deployer.state.models import (
    DEFAULT_CAPABILITIES,
    Action,
    FailureEvent,
    OutcomeKind,
    StackOutcome,
    StackOutput,
    StackRequest,
    StackSnapshot,
    Submission,
)

__all__ = [
    "Action",
    "DEFAULT_CAPABILITIES",
    "FailureEvent",
    "OutcomeKind",
    "StackOutcome",
    "StackOutput",
    "StackRequest",
    "StackSnapshot",
    "Submission",
]
