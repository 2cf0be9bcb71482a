"""CloudFormation mutation requests and status queries.

Each function here is exactly one network round trip; none of them wait
for the stack to converge (see :mod:`cfn_deployer.lifecycle.monitor`).

CloudFormation has no structured codes for two conditions the lifecycle
depends on, so they are recognised by message text::

    "No updates are to be performed"   → update is a no-op
    "does not exist"                   → stack is absent

:func:`classify_client_error` is the only place that matching happens.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, List

from botocore.exceptions import BotoCoreError, ClientError

from cfn_deployer.errors import RemoteServiceError, StackNotFoundError
from cfn_deployer.state.models import (
    Action,
    FailureEvent,
    StackOutput,
    StackRequest,
    StackSnapshot,
    Submission,
)

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

NO_UPDATES_MESSAGE = "No updates are to be performed"
NOT_FOUND_MESSAGE = "does not exist"

#: Resource statuses reported as failure reasons after a FAILED outcome.
FAILED_RESOURCE_STATUSES = frozenset({
    "CREATE_FAILED",
    "UPDATE_FAILED",
    "DELETE_FAILED",
})

# Stack-level statuses that open a new operation in the event history.
OPERATION_START_STATUSES = frozenset({
    "CREATE_IN_PROGRESS",
    "UPDATE_IN_PROGRESS",
    "DELETE_IN_PROGRESS",
})


# ---------------------------------------------------------------------------
# Error classification
# ---------------------------------------------------------------------------


class ErrorKind(str, Enum):
    """Classification of a CloudFormation ``ClientError``."""

    NO_UPDATES = "NO_UPDATES"
    STACK_NOT_FOUND = "STACK_NOT_FOUND"
    OTHER = "OTHER"


def error_code(exc: ClientError) -> str:
    return str(exc.response.get("Error", {}).get("Code", ""))


def error_message(exc: ClientError) -> str:
    """Return the service-provided message, falling back to ``str(exc)``."""
    return str(exc.response.get("Error", {}).get("Message") or exc)


def classify_client_error(exc: ClientError) -> ErrorKind:
    """Map a ``ClientError`` onto the conditions the lifecycle cares about."""
    message = error_message(exc)
    if NO_UPDATES_MESSAGE in message:
        return ErrorKind.NO_UPDATES
    if NOT_FOUND_MESSAGE in message:
        return ErrorKind.STACK_NOT_FOUND
    return ErrorKind.OTHER


def to_remote_error(exc: ClientError) -> RemoteServiceError:
    """Wrap *exc* in the matching :class:`RemoteServiceError` subclass."""
    message = error_message(exc)
    code = error_code(exc)
    if classify_client_error(exc) is ErrorKind.STACK_NOT_FOUND:
        return StackNotFoundError(message, code=code)
    return RemoteServiceError(message, code=code)


# ---------------------------------------------------------------------------
# Mutation requests
# ---------------------------------------------------------------------------


def create_stack(cfn_client: Any, request: StackRequest) -> Submission:
    """Send ``CreateStack`` and return the new stack id."""
    logger.info("Creating CFN stack %s ...", request.stack_name)
    try:
        resp = cfn_client.create_stack(
            StackName=request.stack_name,
            TemplateBody=request.template_body,
            Capabilities=list(request.capabilities),
        )
    except ClientError as exc:
        raise to_remote_error(exc) from exc
    return Submission(
        stack_name=request.stack_name,
        action=Action.CREATE,
        stack_id=resp.get("StackId", ""),
    )


def update_stack(cfn_client: Any, request: StackRequest) -> Submission:
    """Send ``UpdateStack``.

    Returns a no-op :class:`Submission` when the service reports there is
    nothing to update.
    """
    logger.info("Updating CFN stack %s ...", request.stack_name)
    try:
        resp = cfn_client.update_stack(
            StackName=request.stack_name,
            TemplateBody=request.template_body,
            Capabilities=list(request.capabilities),
        )
    except ClientError as exc:
        if classify_client_error(exc) is ErrorKind.NO_UPDATES:
            logger.info("Stack %s is already up to date.", request.stack_name)
            return Submission(
                stack_name=request.stack_name, action=Action.UPDATE, no_op=True,
            )
        raise to_remote_error(exc) from exc
    return Submission(
        stack_name=request.stack_name,
        action=Action.UPDATE,
        stack_id=resp.get("StackId", ""),
    )


def delete_stack(cfn_client: Any, request: StackRequest) -> Submission:
    """Send ``DeleteStack``.  Absence is confirmed later by polling."""
    logger.info("Deleting CFN stack %s ...", request.stack_name)
    try:
        cfn_client.delete_stack(StackName=request.stack_name)
    except ClientError as exc:
        raise to_remote_error(exc) from exc
    return Submission(stack_name=request.stack_name, action=Action.DELETE)


_SUBMITTERS = {
    Action.CREATE: create_stack,
    Action.UPDATE: update_stack,
    Action.DELETE: delete_stack,
}


def submit(cfn_client: Any, request: StackRequest) -> Submission:
    """Send the one mutation request matching ``request.action``."""
    return _SUBMITTERS[request.action](cfn_client, request)


# ---------------------------------------------------------------------------
# Status queries
# ---------------------------------------------------------------------------


def describe_stack(cfn_client: Any, stack_name: str) -> StackSnapshot:
    """Return the current :class:`StackSnapshot` for *stack_name*.

    Raises:
        StackNotFoundError: The stack does not exist.
        RemoteServiceError: Any other service error.
    """
    try:
        resp = cfn_client.describe_stacks(StackName=stack_name)
    except ClientError as exc:
        raise to_remote_error(exc) from exc

    stacks = resp.get("Stacks", [])
    if not stacks:
        raise StackNotFoundError(f"Stack with id {stack_name} {NOT_FOUND_MESSAGE}")
    stack = stacks[0]
    return StackSnapshot(
        stack_name=stack.get("StackName", stack_name),
        stack_id=stack.get("StackId", ""),
        status=str(stack.get("StackStatus", "")),
        status_reason=stack.get("StackStatusReason", ""),
        outputs=[
            StackOutput(key=o["OutputKey"], value=str(o.get("OutputValue", "")))
            for o in stack.get("Outputs", [])
        ],
    )


def list_failure_events(cfn_client: Any, stack_name: str) -> List[FailureEvent]:
    """Return failed resource events of the latest operation, newest first.

    The event history is walked newest first and collection stops at the
    stack-level ``*_IN_PROGRESS`` event that opened the current operation,
    so failures left over from earlier operations are not reported.  Only
    the first page of events is read; a very large operation may be cut
    short.

    Best-effort diagnostics: any lookup error (service or transport) is
    logged and yields an empty list.
    """
    events: List[FailureEvent] = []
    try:
        resp = cfn_client.describe_stack_events(StackName=stack_name)
    except (BotoCoreError, ClientError) as exc:
        logger.debug("Error listing stack events for %s: %s", stack_name, exc)
        return events

    for event in resp.get("StackEvents", []):
        if _opens_operation(event, stack_name):
            break
        if event.get("ResourceStatus") not in FAILED_RESOURCE_STATUSES:
            continue
        events.append(
            FailureEvent(
                logical_id=event.get("LogicalResourceId", ""),
                resource_type=event.get("ResourceType", ""),
                status=event["ResourceStatus"],
                reason=event.get("ResourceStatusReason", "No reason provided"),
            )
        )
    return events


def _opens_operation(event: dict, stack_name: str) -> bool:
    return (
        event.get("ResourceType") == "AWS::CloudFormation::Stack"
        and event.get("LogicalResourceId") == stack_name
        and event.get("ResourceStatus") in OPERATION_START_STATUSES
    )
