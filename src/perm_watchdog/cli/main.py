"""CLI entry point for perm-watchdog.

Invoked as::

    perm-watchdog [OPTIONS] COMMAND [ARGS]...

or during development::

    python -m perm_watchdog.cli.main

Commands
--------
- apply     Apply the watchdog policies to a directory tree
- validate  Validate a watchdog configuration file
- mode      Compile a mode expression against a current mode
- version   Show version information
"""
from __future__ import annotations

import logging
import sys
from datetime import datetime
from pathlib import Path

import click
from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from perm_watchdog.errors import WatchdogError

console = Console()
err_console = Console(stderr=True)


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _parse_octal(ctx: click.Context, param: click.Parameter, value: str) -> int:
    try:
        return int(value, 8)
    except ValueError:
        raise click.BadParameter(f"{value!r} is not an octal mode") from None


# ---------------------------------------------------------------------------
# Root command group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(package_name="perm-watchdog")
def cli() -> None:
    """perm-watchdog — time-windowed permission policies for directory trees."""


# ---------------------------------------------------------------------------
# version
# ---------------------------------------------------------------------------


@cli.command(name="version")
def version_command() -> None:
    """Show detailed version information."""
    from perm_watchdog import __version__

    console.print(
        Panel(
            f"[bold]perm-watchdog[/bold]  v[cyan]{__version__}[/cyan]\n"
            "Inheritable, deadline-driven chmod/chgrp for directory trees.",
            title="Version",
            border_style="blue",
        )
    )


# ---------------------------------------------------------------------------
# apply
# ---------------------------------------------------------------------------


@cli.command(name="apply")
@click.argument("root", type=click.Path(exists=True, file_okay=False))
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(dir_okay=False),
    default=None,
    help="Watchdog YAML file. Defaults to ROOT/_watchdog.yml.",
)
@click.option(
    "--dry-run",
    "-n",
    is_flag=True,
    default=False,
    help="Show what would change without touching any file.",
)
@click.option(
    "--now",
    "now",
    type=click.DateTime(),
    default=None,
    help="Evaluate deadlines as if it were this local time.",
)
@click.option(
    "--audit-log",
    "audit_log",
    type=click.Path(dir_okay=False),
    default=None,
    help="Append every change to this JSONL file.",
)
@click.option("--verbose", "-v", is_flag=True, default=False, help="Enable debug logging.")
def apply_command(
    root: str,
    config_path: str | None,
    dry_run: bool,
    now: datetime | None,
    audit_log: str | None,
    verbose: bool,
) -> None:
    """Apply the watchdog policies to the tree under ROOT."""
    from perm_watchdog.audit.logger import AuditLogger
    from perm_watchdog.config.loader import DEFAULT_CONFIG_NAME, ConfigLoader
    from perm_watchdog.modes import format_mode
    from perm_watchdog.policies.clock import ReferenceClock
    from perm_watchdog.tree.node import PolicyTree

    _configure_logging(verbose)
    root_path = Path(root)
    effective_config = Path(config_path) if config_path else root_path / DEFAULT_CONFIG_NAME

    try:
        config = ConfigLoader().load(effective_config)
        tree = PolicyTree(config, root_path)
        report = tree.apply(ReferenceClock.freeze(now), dry_run=dry_run)
    except (WatchdogError, OSError) as exc:
        err_console.print(f"[red]Error:[/red] {exc}")
        sys.exit(1)

    if audit_log:
        AuditLogger(Path(audit_log)).log_report(tree.full_path, report)

    if report.changes:
        table = Table(
            title="Planned Changes" if dry_run else "Applied Changes",
            box=box.SIMPLE,
        )
        table.add_column("Path", style="cyan")
        table.add_column("Mode", justify="right")
        table.add_column("Group")
        for change in report.changes:
            mode_cell = (
                f"{format_mode(change.old_mode)} → [bold]{format_mode(change.new_mode)}[/bold]"
                if change.mode_changed
                else format_mode(change.old_mode)
            )
            group_cell = f"[magenta]{change.group}[/magenta]" if change.group_changed else ""
            table.add_row(str(change.path), mode_cell, group_cell)
        console.print(table)

    summary = report.summary()
    console.print(
        Panel(
            f"Visited: [cyan]{summary['visited']}[/cyan]  "
            f"Mode changes: [cyan]{summary['mode_changes']}[/cyan]  "
            f"Group changes: [cyan]{summary['group_changes']}[/cyan]",
            title="Dry Run" if dry_run else "Watchdog",
            border_style="yellow" if dry_run else "green",
        )
    )


# ---------------------------------------------------------------------------
# validate
# ---------------------------------------------------------------------------


@cli.command(name="validate")
@click.argument("config_file", type=click.Path(exists=True, dir_okay=False))
def validate_command(config_file: str) -> None:
    """Validate a watchdog configuration file."""
    from perm_watchdog.config.fragment import validate_tree
    from perm_watchdog.config.loader import ConfigLoader

    try:
        config = ConfigLoader(validate=False).load(Path(config_file))
        node_count = validate_tree(config)
    except WatchdogError as exc:
        err_console.print(
            Panel(f"[red]INVALID[/red]\n{exc}", title="Config Validation", border_style="red")
        )
        sys.exit(1)

    console.print(
        Panel(
            f"[green]VALID[/green]  {node_count} declared nodes",
            title="Config Validation",
            border_style="green",
        )
    )


# ---------------------------------------------------------------------------
# mode
# ---------------------------------------------------------------------------


@cli.command(name="mode")
@click.argument("expression")
@click.option(
    "--current",
    "current",
    default="0644",
    show_default=True,
    callback=_parse_octal,
    help="Current mode of the target, in octal.",
)
@click.option(
    "--directory",
    "-d",
    is_flag=True,
    default=False,
    help="Treat the target as a directory.",
)
def mode_command(expression: str, current: int, directory: bool) -> None:
    """Compile EXPRESSION and print the resulting octal mode."""
    from perm_watchdog.modes import compile_mode, format_mode

    try:
        result = compile_mode(expression, current, directory)
    except WatchdogError as exc:
        err_console.print(f"[red]Error:[/red] {exc}")
        sys.exit(1)

    click.echo(format_mode(result))


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    cli()
