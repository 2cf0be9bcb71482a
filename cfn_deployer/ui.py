"""Console presentation for stack runs.

Everything a human reads during ``cfn-deploy`` goes through here, rendered
with :mod:`rich`.  Text coming from CloudFormation (status reasons, output
values) may contain square brackets, so every dynamic string is escaped
before it reaches the markup parser.  In ``--json`` mode the workflow
skips this module and emits a single JSON document instead.
"""

from __future__ import annotations

from rich.console import Console
from rich.markup import escape

console = Console(force_terminal=None)

_MARKS = {
    "ok": "[bold green]✓[/]",
    "fail": "[bold red]✗[/]",
    "warn": "[bold yellow]⚠[/]",
    "step": "[bold cyan]›[/]",
    "note": "[dim]·[/]",
}


def _mark(kind: str, text: str, style: str = "") -> None:
    body = escape(text)
    if style:
        body = f"[{style}]{body}[/]"
    console.print(f"  {_MARKS[kind]} {body}", highlight=False)


def header(action: str, stack_name: str) -> None:
    """``── CREATE my-stack ──`` banner opening a run."""
    console.print()
    console.print(f"[bold blue]── {escape(action.upper())} {escape(stack_name)} ──[/]")


def ok(msg: str) -> None:
    _mark("ok", msg)


def fail(msg: str) -> None:
    _mark("fail", msg, "red")


def warn(msg: str) -> None:
    _mark("warn", msg, "yellow")


def step(msg: str) -> None:
    _mark("step", msg)


def note(msg: str) -> None:
    _mark("note", msg, "dim")


def pair(key: str, value: str) -> None:
    """Indented ``key: value`` line (stack outputs, failed resources)."""
    console.print(f"    [bold]{escape(key)}[/]: {escape(value)}", highlight=False)


def error(msg: str) -> None:
    console.print(f"[bold red]ERROR:[/] {escape(msg)}", highlight=False)


def plain(msg: str) -> None:
    console.print(escape(msg), highlight=False)


def format_elapsed(seconds: float) -> str:
    """``42s`` below a minute, ``3m 07s`` above."""
    minutes, secs = divmod(int(seconds), 60)
    if minutes:
        return f"{minutes}m {secs:02d}s"
    return f"{secs}s"


def status_line(status: str, seconds: float) -> None:
    """One line per poll: current stack status plus time spent waiting."""
    _mark("step", f"Current status: {status} ({format_elapsed(seconds)})")
