"""Exception types raised across the deployer.

Every error that the dispatcher knows how to classify derives from
:class:`DeployerError`.  Anything else reaching the dispatcher boundary is
treated as unexpected, logged with a traceback and reported as aborted.
"""

from __future__ import annotations


class DeployerError(Exception):
    """Base class for classified deployer errors."""


class ConfigError(DeployerError):
    """Configuration file or value is invalid."""


class TemplateError(DeployerError):
    """Template is missing, unreadable, or empty.

    Raised before any remote call is made.
    """


class RemoteServiceError(DeployerError):
    """CloudFormation rejected a request or status query.

    Attributes:
        code: Error code from the service response (e.g. ``ValidationError``).
        message: Human-readable message from the service response.
    """

    def __init__(self, message: str, code: str = "") -> None:
        super().__init__(message)
        self.code = code
        self.message = message


class StackNotFoundError(RemoteServiceError):
    """The stack does not exist (or no longer exists)."""


class WaitInterrupted(DeployerError):
    """The wait for a terminal status was cancelled externally."""
