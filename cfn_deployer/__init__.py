"""CloudFormation stack deployer.

Drives a single CloudFormation stack through create, update or delete and
waits for the service to report a terminal status.
"""

try:
    from importlib.metadata import version

    __version__ = version("cfn-stack-deployer")
except Exception:
    __version__ = "0.0.0.dev0"

__all__ = ["__version__"]
