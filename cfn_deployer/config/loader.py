"""Settings resolution: defaults, YAML file, environment, CLI overrides.

Precedence (highest first)::

    CLI option  >  environment variable  >  config YAML  >  built-in default

The config file lives at ``$XDG_CONFIG_HOME/cfn-deployer/config.yaml``
(``~/.config/cfn-deployer/config.yaml``) unless ``--config`` names another.
A missing default file is not an error; a missing explicit file is.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import ValidationError

from cfn_deployer.config.models import ConfigFile, DeployerSettings
from cfn_deployer.errors import ConfigError

logger = logging.getLogger(__name__)

_APP_DIR = "cfn-deployer"
_CONFIG_NAME = "config.yaml"

#: Environment variable → settings field.
ENV_OVERRIDES: Dict[str, str] = {
    "CFN_DEPLOYER_TEMPLATE": "template_path",
    "CFN_DEPLOYER_POLL_INTERVAL": "poll_interval",
    "CFN_DEPLOYER_TIMEOUT": "timeout",
}


# ---------------------------------------------------------------------------
# Paths
# ---------------------------------------------------------------------------


def default_config_path() -> Path:
    """Return the XDG config file path (not created)."""
    base = os.environ.get("XDG_CONFIG_HOME", "")
    if not base:
        base = str(Path.home() / ".config")
    return Path(base) / _APP_DIR / _CONFIG_NAME


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------


def _read_yaml(path: Path) -> Dict[str, Any]:
    try:
        with open(path, encoding="utf-8") as fh:
            raw = yaml.safe_load(fh) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {path}: {exc}") from exc
    except OSError as exc:
        raise ConfigError(f"Cannot read config file {path}: {exc}") from exc
    if not isinstance(raw, dict):
        raise ConfigError(f"Config file {path} must contain a mapping")
    return raw


def _env_values() -> Dict[str, str]:
    values: Dict[str, str] = {}
    for env_name, field_name in ENV_OVERRIDES.items():
        value = os.environ.get(env_name, "")
        if value:
            values[field_name] = value
    return values


def load_settings(
    config_path: Optional[str | Path] = None,
    **overrides: Any,
) -> DeployerSettings:
    """Resolve the effective :class:`DeployerSettings`.

    Args:
        config_path: Explicit YAML file; must exist when given.
        **overrides: CLI values; ``None`` means "not given".

    Raises:
        ConfigError: The file is unreadable or a value fails validation.
    """
    if config_path is not None:
        path = Path(config_path)
        if not path.is_file():
            raise ConfigError(f"Config file not found: {path}")
    else:
        path = default_config_path()

    file_values: Dict[str, Any] = {}
    if path.is_file():
        logger.debug("Loading config from %s", path)
        raw = _read_yaml(path)
        file_values = dict(raw.get("deployer", {}) or {})

    merged: Dict[str, Any] = {**file_values, **_env_values()}
    merged.update({k: v for k, v in overrides.items() if v is not None})

    try:
        settings = ConfigFile.model_validate({"deployer": merged}).deployer
    except ValidationError as exc:
        raise ConfigError(f"Invalid deployer settings: {exc}") from exc

    logger.debug("Effective settings: %s", settings.model_dump())
    return settings
