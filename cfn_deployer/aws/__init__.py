"""AWS service interactions (session context, CloudFormation)."""

from cfn_deployer.aws.cloudformation import (
    NO_UPDATES_MESSAGE,
    NOT_FOUND_MESSAGE,
    ErrorKind,
    classify_client_error,
    create_stack,
    delete_stack,
    describe_stack,
    list_failure_events,
    submit,
    update_stack,
)
from cfn_deployer.aws.context import (
    AWSContext,
    resolve_profile,
    resolve_region,
)

__all__ = [
    "AWSContext",
    "ErrorKind",
    "NOT_FOUND_MESSAGE",
    "NO_UPDATES_MESSAGE",
    "classify_client_error",
    "create_stack",
    "delete_stack",
    "describe_stack",
    "list_failure_events",
    "resolve_profile",
    "resolve_region",
    "submit",
    "update_stack",
]
