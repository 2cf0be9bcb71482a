"""Request, snapshot and outcome models for one stack invocation.

None of these are persisted.  A single :class:`StackRequest` is built at
startup and threaded through submission and polling; polling produces
:class:`StackSnapshot` observations; the run ends with one
:class:`StackOutcome`.
"""

from __future__ import annotations

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, model_validator

#: Capability acknowledgments sent with create and update requests.
DEFAULT_CAPABILITIES: List[str] = [
    "CAPABILITY_NAMED_IAM",
    "CAPABILITY_AUTO_EXPAND",
]


# ---------------------------------------------------------------------------
# Action
# ---------------------------------------------------------------------------


class Action(str, Enum):
    """Lifecycle action requested for the stack."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"

    @classmethod
    def parse(cls, token: str) -> "Action":
        """Parse a CLI token (case-insensitive).

        Raises :class:`ValueError` with ``Unknown action: <token>``, the
        token lowercased as it was matched.
        """
        normalized = token.strip().lower()
        try:
            return cls(normalized)
        except ValueError:
            raise ValueError(f"Unknown action: {normalized}") from None

    @property
    def requires_template(self) -> bool:
        return self is not Action.DELETE

    @property
    def noun(self) -> str:
        """``creation`` / ``update`` / ``deletion`` for console messages."""
        return {
            Action.CREATE: "creation",
            Action.UPDATE: "update",
            Action.DELETE: "deletion",
        }[self]

    @property
    def past_tense(self) -> str:
        return self.value + "d"


# ---------------------------------------------------------------------------
# StackRequest
# ---------------------------------------------------------------------------


class StackRequest(BaseModel):
    """Everything one invocation needs to talk about its stack.

    Attributes:
        stack_name: Correlation key for every remote call.
        action: The single flow this run executes.
        template_body: Raw template text; required for create and update.
        capabilities: Capability acknowledgments for create and update.
    """

    model_config = {"frozen": True}

    stack_name: str = Field(min_length=1)
    action: Action
    template_body: Optional[str] = None
    capabilities: List[str] = Field(
        default_factory=lambda: list(DEFAULT_CAPABILITIES)
    )

    @model_validator(mode="after")
    def _template_for_mutations(self) -> "StackRequest":
        if self.action.requires_template and not (self.template_body or "").strip():
            raise ValueError(
                f"A non-empty template body is required for {self.action.value}"
            )
        return self


# ---------------------------------------------------------------------------
# Remote observations
# ---------------------------------------------------------------------------


class StackOutput(BaseModel):
    """One ``OutputKey``/``OutputValue`` pair attached to the stack."""

    key: str
    value: str


class StackSnapshot(BaseModel):
    """A single ``DescribeStacks`` observation."""

    stack_name: str
    status: str
    status_reason: str = ""
    stack_id: str = ""
    outputs: List[StackOutput] = Field(default_factory=list)


class Submission(BaseModel):
    """Acknowledgment of a mutation request.

    ``no_op`` is set when an update was rejected only because the stack
    already matches the template.
    """

    stack_name: str
    action: Action
    stack_id: str = ""
    no_op: bool = False


class FailureEvent(BaseModel):
    """A failed resource event, used to explain a FAILED outcome."""

    logical_id: str
    resource_type: str = ""
    status: str
    reason: str = ""


# ---------------------------------------------------------------------------
# StackOutcome
# ---------------------------------------------------------------------------


class OutcomeKind(str, Enum):
    """Classified result of one invocation."""

    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"
    NO_OP = "NO_OP"
    ABORTED = "ABORTED"


class StackOutcome(BaseModel):
    """Final, user-visible result of one invocation.

    Attributes:
        kind: SUCCEEDED, FAILED, NO_OP or ABORTED.
        stack_name: The stack the run acted on.
        action: The requested action, when one was parsed.
        final_status: Last observed stack status, if any query happened.
        message: One human-readable line describing the outcome.
        outputs: Stack outputs surfaced on create/update success.
        polls: Number of status queries made.
        elapsed_seconds: Time spent waiting for convergence.
        absent: True when a delete finished by observing the stack gone.
        failure_events: Failed resource events gathered after a FAILED run.
    """

    kind: OutcomeKind
    stack_name: str
    action: Optional[Action] = None
    final_status: Optional[str] = None
    message: str = ""
    outputs: List[StackOutput] = Field(default_factory=list)
    polls: int = 0
    elapsed_seconds: float = 0.0
    absent: bool = False
    failure_events: List[FailureEvent] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        """True for SUCCEEDED and NO_OP."""
        return self.kind in (OutcomeKind.SUCCEEDED, OutcomeKind.NO_OP)

    @classmethod
    def aborted(
        cls,
        stack_name: str,
        message: str,
        *,
        action: Optional[Action] = None,
        final_status: Optional[str] = None,
        polls: int = 0,
        elapsed_seconds: float = 0.0,
    ) -> "StackOutcome":
        return cls(
            kind=OutcomeKind.ABORTED,
            stack_name=stack_name,
            action=action,
            message=message,
            final_status=final_status,
            polls=polls,
            elapsed_seconds=elapsed_seconds,
        )
