"""Pydantic model for deployer settings.

Structure of the optional YAML config file::

    deployer:
      template_path: cloudformation/iam-template.yml
      poll_interval: 5
      timeout: null
      profile: my-profile
      region: us-west-2
      capabilities:
        - CAPABILITY_NAMED_IAM
        - CAPABILITY_AUTO_EXPAND
"""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from cfn_deployer.state.models import DEFAULT_CAPABILITIES

#: Template read for create/update when nothing overrides it.
DEFAULT_TEMPLATE_PATH = "cloudformation/iam-template.yml"


class DeployerSettings(BaseModel):
    """Effective settings for one invocation."""

    template_path: str = Field(default=DEFAULT_TEMPLATE_PATH, min_length=1)
    poll_interval: float = Field(default=5.0, gt=0)
    timeout: Optional[float] = Field(default=None, gt=0)
    profile: Optional[str] = None
    region: Optional[str] = None
    capabilities: List[str] = Field(
        default_factory=lambda: list(DEFAULT_CAPABILITIES)
    )

    @field_validator("profile", "region", mode="before")
    @classmethod
    def _blank_to_none(cls, value: object) -> object:
        """Treat empty strings as unset."""
        if isinstance(value, str) and not value.strip():
            return None
        return value


class ConfigFile(BaseModel):
    """Root model wrapping the ``deployer:`` key."""

    deployer: DeployerSettings = Field(default_factory=DeployerSettings)
