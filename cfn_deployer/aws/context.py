"""AWS context: session and region resolution, scoped client ownership.

Wraps boto3 session creation into a single :class:`AWSContext`.  The
CloudFormation client used by one invocation is handed out through
:meth:`AWSContext.cloudformation`, a context manager that closes the client
exactly once on every exit path.

Region resolution precedence:
1. Explicit ``--region`` CLI flag / config value
2. ``AWS_DEFAULT_REGION`` / ``AWS_REGION`` env vars
3. Hardcoded fallback (``us-east-1``)

Profile resolution precedence:
1. Explicit ``--profile`` CLI flag / config value
2. ``AWS_PROFILE`` env var
3. None — boto3's default credential chain
"""

from __future__ import annotations

import logging
import os
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Iterator, Optional

import boto3

logger = logging.getLogger(__name__)

_DEFAULT_REGION = "us-east-1"


# ---------------------------------------------------------------------------
# Resolution helpers
# ---------------------------------------------------------------------------


def resolve_region(region: Optional[str] = None) -> str:
    """Return the AWS region string.

    Precedence: *region* → ``AWS_DEFAULT_REGION`` → ``AWS_REGION`` → fallback.
    """
    if region:
        return region
    return (
        os.environ.get("AWS_DEFAULT_REGION")
        or os.environ.get("AWS_REGION")
        or _DEFAULT_REGION
    )


def resolve_profile(profile: Optional[str] = None) -> Optional[str]:
    """Return the AWS profile name, or None to use the default chain."""
    return profile or os.environ.get("AWS_PROFILE") or None


# ---------------------------------------------------------------------------
# AWSContext
# ---------------------------------------------------------------------------


@dataclass
class AWSContext:
    """Resolved profile + region and a lazily created boto3 session.

    Attributes:
        profile: AWS profile name, or None for the default chain.
        region: AWS region (e.g. ``us-west-2``).
    """

    profile: Optional[str]
    region: str
    _session: Any = field(default=None, repr=False, compare=False)

    # -- factory ----------------------------------------------------------

    @classmethod
    def build(
        cls,
        region: Optional[str] = None,
        profile: Optional[str] = None,
    ) -> "AWSContext":
        """Resolve profile and region.  No network calls are made."""
        resolved_profile = resolve_profile(profile)
        resolved_region = resolve_region(region)
        if resolved_profile == "default":
            logger.debug("AWS_PROFILE is set to 'default'.")
        return cls(profile=resolved_profile, region=resolved_region)

    # -- session accessor -------------------------------------------------

    @property
    def session(self) -> boto3.Session:
        """Return the cached :class:`boto3.Session`."""
        if self._session is None:
            kwargs = {"region_name": self.region}
            if self.profile:
                kwargs["profile_name"] = self.profile
            self._session = boto3.Session(**kwargs)
        return self._session

    def client(self, service: str, **kwargs: Any) -> Any:
        """Create a boto3 client for *service*."""
        return self.session.client(service, **kwargs)

    @contextmanager
    def cloudformation(self) -> Iterator[Any]:
        """Yield a CloudFormation client and close it on exit."""
        cfn = self.client("cloudformation")
        logger.debug(
            "Opened cloudformation client (profile=%s, region=%s)",
            self.profile or "<default>",
            self.region,
        )
        try:
            yield cfn
        finally:
            cfn.close()
            logger.debug("Closed cloudformation client")
