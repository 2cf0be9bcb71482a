"""Orchestrator for one stack action: submit → poll → classify → report.

Execution model::

    1. Parse the action token (unknown token → usage exit, no remote call).
    2. Resolve settings; read the template for create/update.
       A missing or empty template aborts before any client exists.
    3. Acquire the CloudFormation client (scoped; closed on every path).
    4. Submit exactly one mutation request.
       Update with nothing to change → NO_OP, no polling.
    5. Poll until a terminal status; classify into a StackOutcome.
    6. Report the outcome (console lines, or one JSON document with
       ``--json``) and map it to an exit code.

Classified errors become ``ABORTED`` outcomes.  Unexpected exceptions are
logged with traceback and also become ``ABORTED``.  Cancellation is the one
path that produces no outcome: it exits with :data:`EXIT_INTERRUPTED`.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, ContextManager, Optional

from cli_core_yo import output

from cfn_deployer import ui
from cfn_deployer.aws.cloudformation import list_failure_events, submit
from cfn_deployer.config.loader import load_settings
from cfn_deployer.config.models import DeployerSettings
from cfn_deployer.config.template import read_template
from cfn_deployer.errors import ConfigError, DeployerError, WaitInterrupted
from cfn_deployer.lifecycle.monitor import (
    CancelToken,
    StatusCallback,
    wait_for_stack,
)
from cfn_deployer.state.models import (
    Action,
    OutcomeKind,
    StackOutcome,
    StackRequest,
    StackSnapshot,
    Submission,
)

logger = logging.getLogger(__name__)

# Exit codes
EXIT_SUCCESS = 0
EXIT_STACK_FAILED = 1
EXIT_ABORTED = 2
EXIT_USAGE = 3
EXIT_INTERRUPTED = 130

USAGE_LINES = (
    "Usage: cfn-deploy run <stackName> [create|delete|update]",
    "Example: cfn-deploy run my-iam-stack create",
)

#: Zero-argument callable returning a context manager that yields a client.
ClientScope = Callable[[], ContextManager[Any]]
SubmittedCallback = Callable[[Submission], None]


# ---------------------------------------------------------------------------
# Request construction
# ---------------------------------------------------------------------------


def build_request(
    stack_name: str, action: Action, settings: DeployerSettings,
) -> StackRequest:
    """Build the :class:`StackRequest`, reading the template if needed.

    Raises:
        TemplateError: The template is missing, unreadable, or empty.
    """
    template_body = None
    if action.requires_template:
        template_body = read_template(settings.template_path)
    return StackRequest(
        stack_name=stack_name,
        action=action,
        template_body=template_body,
        capabilities=settings.capabilities,
    )


# ---------------------------------------------------------------------------
# Dispatcher
# ---------------------------------------------------------------------------


def _run_flow(
    cfn: Any,
    request: StackRequest,
    settings: DeployerSettings,
    *,
    cancel: Optional[CancelToken],
    on_submitted: Optional[SubmittedCallback],
    on_status: Optional[StatusCallback],
    _sleep_fn: Any,
) -> StackOutcome:
    submission = submit(cfn, request)

    if submission.no_op:
        return StackOutcome(
            kind=OutcomeKind.NO_OP,
            stack_name=request.stack_name,
            action=request.action,
            message="No updates needed - stack is already up to date",
        )

    if on_submitted is not None:
        on_submitted(submission)

    outcome = wait_for_stack(
        cfn,
        request.stack_name,
        request.action,
        poll_interval=settings.poll_interval,
        timeout=settings.timeout,
        cancel=cancel,
        on_status=on_status,
        _sleep_fn=_sleep_fn,
    )
    if outcome.kind is OutcomeKind.FAILED:
        outcome.failure_events = list_failure_events(cfn, request.stack_name)
    return outcome


def dispatch(
    stack_name: str,
    action: Action,
    settings: DeployerSettings,
    client_scope: ClientScope,
    *,
    cancel: Optional[CancelToken] = None,
    on_submitted: Optional[SubmittedCallback] = None,
    on_status: Optional[StatusCallback] = None,
    _sleep_fn: Any = None,
) -> StackOutcome:
    """Run exactly one create/update/delete flow and return its outcome.

    Args:
        stack_name: Stack to act on.
        action: The flow to run.
        settings: Effective settings (template path, poll interval, ...).
        client_scope: Yields the CloudFormation client for the whole flow
            and releases it afterwards.
        cancel: Cancellation token honoured by the polling loop.
        on_submitted: Called once after the mutation is accepted.
        on_status: Called after every status observation.

    Raises:
        WaitInterrupted: The wait was cancelled.  No outcome is produced.
    """
    try:
        request = build_request(stack_name, action, settings)
    except (DeployerError, ValueError) as exc:
        logger.error("Aborting %s of %s: %s", action.value, stack_name, exc)
        return StackOutcome.aborted(stack_name, str(exc), action=action)

    try:
        with client_scope() as cfn:
            return _run_flow(
                cfn,
                request,
                settings,
                cancel=cancel,
                on_submitted=on_submitted,
                on_status=on_status,
                _sleep_fn=_sleep_fn,
            )
    except WaitInterrupted:
        raise
    except DeployerError as exc:
        logger.error("Aborting %s of %s: %s", action.value, stack_name, exc)
        return StackOutcome.aborted(stack_name, str(exc), action=action)
    except Exception as exc:
        logger.exception("Unexpected error during %s of %s", action.value, stack_name)
        return StackOutcome.aborted(
            stack_name, f"Unexpected error: {exc}", action=action,
        )


# ---------------------------------------------------------------------------
# Reporting
# ---------------------------------------------------------------------------


def exit_code_for(outcome: StackOutcome) -> int:
    """Map an outcome to the process exit code."""
    if outcome.ok:
        return EXIT_SUCCESS
    if outcome.kind is OutcomeKind.FAILED:
        return EXIT_STACK_FAILED
    return EXIT_ABORTED


def print_usage() -> None:
    for line in USAGE_LINES:
        ui.plain(line)


def report_submitted(submission: Submission) -> None:
    noun = submission.action.noun
    ui.step(
        f"Stack {noun} initiated: {submission.stack_id or submission.stack_name}"
    )
    ui.note(f"Waiting for stack {noun} to complete...")


def report_status(snapshot: StackSnapshot, polls: int, elapsed: float) -> None:
    ui.status_line(snapshot.status, elapsed)


def report_outcome(outcome: StackOutcome) -> None:
    """Print the final line (plus outputs or failure reasons)."""
    if outcome.kind is OutcomeKind.SUCCEEDED:
        ui.ok(outcome.message)
        if outcome.outputs:
            ui.step("Stack Outputs:")
            for stack_output in outcome.outputs:
                ui.pair(stack_output.key, stack_output.value)
    elif outcome.kind is OutcomeKind.NO_OP:
        ui.ok(outcome.message)
    elif outcome.kind is OutcomeKind.FAILED:
        ui.fail(outcome.message)
        for event in outcome.failure_events:
            ui.pair(f"{event.logical_id} ({event.resource_type})", event.reason)
    else:
        ui.error(outcome.message)


# ---------------------------------------------------------------------------
# Entry point used by the CLI
# ---------------------------------------------------------------------------


def report_outcome_json(outcome: StackOutcome) -> None:
    """Emit the whole outcome as one JSON document on stdout."""
    output.emit_json(outcome.model_dump(mode="json"))


def run_stack_action(
    stack_name: Optional[str],
    action_token: Optional[str],
    *,
    config_path: Optional[str] = None,
    template_path: Optional[str] = None,
    profile: Optional[str] = None,
    region: Optional[str] = None,
    poll_interval: Optional[float] = None,
    timeout: Optional[float] = None,
    json_output: bool = False,
    cancel: Optional[CancelToken] = None,
    client_scope: Optional[ClientScope] = None,
    _sleep_fn: Any = None,
) -> int:
    """End-to-end run for one stack: parse, dispatch, report.

    With *json_output* no progress lines are printed; the outcome (or a
    usage/config/interrupt error) is written to stdout as a single JSON
    document.

    Returns one of the ``EXIT_*`` constants.
    """
    if not stack_name or not action_token:
        if json_output:
            output.emit_error_json("usage", USAGE_LINES[0])
        else:
            print_usage()
        return EXIT_USAGE

    try:
        action = Action.parse(action_token)
    except ValueError as exc:
        if json_output:
            output.emit_error_json("usage", str(exc))
        else:
            ui.plain(str(exc))
        return EXIT_USAGE

    try:
        settings = load_settings(
            config_path,
            template_path=template_path,
            profile=profile,
            region=region,
            poll_interval=poll_interval,
            timeout=timeout,
        )
    except ConfigError as exc:
        if json_output:
            output.emit_error_json("config", str(exc))
        else:
            ui.error(str(exc))
        return EXIT_ABORTED

    if client_scope is None:
        from cfn_deployer.aws.context import AWSContext

        aws_ctx = AWSContext.build(region=settings.region, profile=settings.profile)
        client_scope = aws_ctx.cloudformation

    if not json_output:
        ui.header(action.value, stack_name)
    try:
        outcome = dispatch(
            stack_name,
            action,
            settings,
            client_scope,
            cancel=cancel,
            on_submitted=None if json_output else report_submitted,
            on_status=None if json_output else report_status,
            _sleep_fn=_sleep_fn,
        )
    except (WaitInterrupted, KeyboardInterrupt):
        logger.info("Run for %s interrupted by user.", stack_name)
        message = (
            f"Interrupted while waiting for stack {action.noun}; "
            "the operation continues in CloudFormation."
        )
        if json_output:
            output.emit_error_json("interrupted", message)
        else:
            ui.warn(message)
        return EXIT_INTERRUPTED

    if json_output:
        report_outcome_json(outcome)
    else:
        report_outcome(outcome)
    return exit_code_for(outcome)
