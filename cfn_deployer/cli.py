"""CLI entry point for cfn-deploy, built on cli-core-yo.

Provides ``run``, ``create``, ``update`` and ``delete`` commands for
driving a single CloudFormation stack to a terminal status.

Usage::

    cfn-deploy --help
    cfn-deploy run my-iam-stack create
    cfn-deploy update my-iam-stack --template cloudformation/iam-template.yml
    cfn-deploy delete my-iam-stack --profile my-profile --region us-west-2
"""

from __future__ import annotations

import logging
import os
import signal
import sys
from typing import Optional

import typer
from cli_core_yo.app import create_app
from cli_core_yo.runtime import _reset, get_context, initialize
from cli_core_yo.spec import CliSpec, PolicySpec, XdgSpec

from cfn_deployer.lifecycle.monitor import CancelToken

# ── App specification ────────────────────────────────────────────────────────

spec = CliSpec(
    prog_name="cfn-deploy",
    app_display_name="CloudFormation Stack Deployer",
    dist_name="cfn-stack-deployer",
    root_help=(
        "Create, update or delete a CloudFormation stack and wait for it "
        "to reach a terminal status."
    ),
    xdg=XdgSpec(app_dir_name="cfn-deployer"),
    policy=PolicySpec(),
)

app = create_app(spec)


# ── Root callback (global options) ───────────────────────────────────────────


@app.callback()
def _root_callback(
    json_flag: bool = typer.Option(
        False, "--json", "-j", help="Print the final outcome as one JSON document."
    ),
) -> None:
    """CloudFormation stack deployer."""
    _reset()
    debug = os.environ.get("CLI_CORE_YO_DEBUG") == "1"
    xdg_paths = app._cli_core_yo_xdg_paths  # type: ignore[attr-defined]
    initialize(spec, xdg_paths, json_mode=json_flag, debug=debug)


# ── Shared options ───────────────────────────────────────────────────────────

_TEMPLATE = typer.Option(
    None,
    "--template",
    help="Template file. Default: cloudformation/iam-template.yml",
)
_CONFIG = typer.Option(
    None,
    "--config",
    help="Path to deployer config YAML.",
)
_PROFILE = typer.Option(
    None,
    "--profile",
    help="AWS CLI profile. Defaults to AWS_PROFILE env var.",
)
_REGION = typer.Option(
    None,
    "--region",
    help="AWS region. Defaults to AWS_DEFAULT_REGION / AWS_REGION.",
)
_POLL_INTERVAL = typer.Option(
    None,
    "--poll-interval",
    help="Seconds between status polls (default 5).",
)
_TIMEOUT = typer.Option(
    None,
    "--timeout",
    help="Give up waiting after this many seconds (default: wait forever).",
)
_DEBUG = typer.Option(
    False,
    "--debug",
    help="Enable debug logging.",
)


def _execute(
    stack_name: Optional[str],
    action: Optional[str],
    *,
    template: Optional[str],
    config: Optional[str],
    profile: Optional[str],
    region: Optional[str],
    poll_interval: Optional[float],
    timeout: Optional[float],
    debug: bool,
) -> None:
    from cfn_deployer.workflow.stack_action import run_stack_action

    if debug:
        logging.basicConfig(level=logging.DEBUG)

    # SIGTERM cancels the wait; SIGINT arrives as KeyboardInterrupt.
    cancel = CancelToken()
    signal.signal(signal.SIGTERM, lambda signum, frame: cancel.cancel())

    rc = run_stack_action(
        stack_name,
        action,
        config_path=config,
        template_path=template,
        profile=profile,
        region=region,
        poll_interval=poll_interval,
        timeout=timeout,
        json_output=get_context().json_mode,
        cancel=cancel,
    )
    raise typer.Exit(rc)


# ── run command ──────────────────────────────────────────────────────────────


@app.command()
def run(
    stack_name: Optional[str] = typer.Argument(None, help="Stack name."),
    action: Optional[str] = typer.Argument(
        None, help="One of: create, delete, update."
    ),
    template: Optional[str] = _TEMPLATE,
    config: Optional[str] = _CONFIG,
    profile: Optional[str] = _PROFILE,
    region: Optional[str] = _REGION,
    poll_interval: Optional[float] = _POLL_INTERVAL,
    timeout: Optional[float] = _TIMEOUT,
    debug: bool = _DEBUG,
) -> None:
    """Run ACTION (create, delete or update) against STACK_NAME.

    Exit codes: 0 = success or no-op, 1 = stack failed, 2 = aborted,
    3 = usage error, 130 = interrupted.
    """
    _execute(
        stack_name,
        action,
        template=template,
        config=config,
        profile=profile,
        region=region,
        poll_interval=poll_interval,
        timeout=timeout,
        debug=debug,
    )


# ── create / update / delete commands ────────────────────────────────────────


@app.command()
def create(
    stack_name: str = typer.Argument(..., help="Stack name."),
    template: Optional[str] = _TEMPLATE,
    config: Optional[str] = _CONFIG,
    profile: Optional[str] = _PROFILE,
    region: Optional[str] = _REGION,
    poll_interval: Optional[float] = _POLL_INTERVAL,
    timeout: Optional[float] = _TIMEOUT,
    debug: bool = _DEBUG,
) -> None:
    """Create STACK_NAME from the template and wait for CREATE_COMPLETE."""
    _execute(
        stack_name,
        "create",
        template=template,
        config=config,
        profile=profile,
        region=region,
        poll_interval=poll_interval,
        timeout=timeout,
        debug=debug,
    )


@app.command()
def update(
    stack_name: str = typer.Argument(..., help="Stack name."),
    template: Optional[str] = _TEMPLATE,
    config: Optional[str] = _CONFIG,
    profile: Optional[str] = _PROFILE,
    region: Optional[str] = _REGION,
    poll_interval: Optional[float] = _POLL_INTERVAL,
    timeout: Optional[float] = _TIMEOUT,
    debug: bool = _DEBUG,
) -> None:
    """Update STACK_NAME from the template and wait for UPDATE_COMPLETE."""
    _execute(
        stack_name,
        "update",
        template=template,
        config=config,
        profile=profile,
        region=region,
        poll_interval=poll_interval,
        timeout=timeout,
        debug=debug,
    )


@app.command()
def delete(
    stack_name: str = typer.Argument(..., help="Stack name."),
    config: Optional[str] = _CONFIG,
    profile: Optional[str] = _PROFILE,
    region: Optional[str] = _REGION,
    poll_interval: Optional[float] = _POLL_INTERVAL,
    timeout: Optional[float] = _TIMEOUT,
    debug: bool = _DEBUG,
) -> None:
    """Delete STACK_NAME and wait until it no longer exists."""
    _execute(
        stack_name,
        "delete",
        template=None,
        config=config,
        profile=profile,
        region=region,
        poll_interval=poll_interval,
        timeout=timeout,
        debug=debug,
    )


# ── Entry point ──────────────────────────────────────────────────────────────


def main() -> int:
    """Run the CLI and return an exit code."""
    try:
        app()
        return 0
    except SystemExit as exc:
        return exc.code if isinstance(exc.code, int) else 0


if __name__ == "__main__":
    sys.exit(main())
