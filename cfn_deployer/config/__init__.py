"""Settings loading and template reading."""

from cfn_deployer.config.loader import (
    ENV_OVERRIDES,
    default_config_path,
    load_settings,
)
from cfn_deployer.config.models import (
    DEFAULT_TEMPLATE_PATH,
    ConfigFile,
    DeployerSettings,
)
from cfn_deployer.config.template import read_template

__all__ = [
    "ConfigFile",
    "DEFAULT_TEMPLATE_PATH",
    "DeployerSettings",
    "ENV_OVERRIDES",
    "default_config_path",
    "load_settings",
    "read_template",
]
