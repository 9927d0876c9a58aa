"""Sync commands: push, pull, diff, sync."""

from __future__ import annotations

import sys
from typing import Optional

import click
from rich.markup import escape

from ..diff import FORMATTERS, DiffReport
from ..sync.models import ApplyResult, PullResult, SyncDirection
from ._common import console, handle_errors, prepare_reconciler, sync_options


def _print_push(result: ApplyResult) -> None:
    if result.created:
        console.print(f"  [green]Created {len(result.created)}:[/] {', '.join(result.created)}")
    if result.updated:
        console.print(f"  [yellow]Updated {len(result.updated)}:[/] {', '.join(result.updated)}")
    if result.unchanged:
        console.print(f"  [dim]Unchanged {len(result.unchanged)}[/]")
    if result.failed:
        console.print(f"  [bold red]Failed {len(result.failed)}:[/]")
        for key, error in result.failed.items():
            console.print(f"    [red]{key}[/] {escape(error)}")
    if not result.changed and not result.failed:
        console.print("  [dim]No changes detected.[/]")


def _print_pull(result: PullResult, env_name: str) -> None:
    if result.added:
        console.print(f"  [green]Added {len(result.added)}:[/] {', '.join(result.added)}")
    if result.updated:
        console.print(f"  [yellow]Updated {len(result.updated)}:[/] {', '.join(result.updated)}")
    if result.unchanged:
        console.print(f"  [dim]Unchanged {len(result.unchanged)}[/]")
    if result.skipped:
        console.print(f"  [yellow]Skipped {len(result.skipped)}:[/] {escape(', '.join(result.skipped))}")
    if result.written:
        console.print(f"  [bold green]Sync from 1Password to {escape(env_name)} completed.[/]")
    else:
        console.print(f"  [dim]{escape(env_name)} is up to date.[/]")


def _print_diff(report: DiffReport, output_format: str) -> None:
    rendered = FORMATTERS[output_format](report)
    if output_format == "json":
        click.echo(rendered)
    else:
        console.print(rendered)


def register_sync_commands(main: click.Group) -> None:
    """Register push, pull, diff and sync."""

    @main.command("push")
    @sync_options
    @handle_errors
    def push(env_file, vault, mode, save_mode, prefix, token, config_path):
        """Push secrets from a .env file to 1Password."""
        reconciler = prepare_reconciler(
            env_file, vault, mode, prefix, token, config_path, save_mode
        )
        console.print(f"\n  Pushing [cyan]{escape(reconciler.env_path.name)}[/] to 1Password...")
        result = reconciler.push()
        _print_push(result)
        console.print()
        if result.partial:
            sys.exit(1)

    @main.command("pull")
    @sync_options
    @handle_errors
    def pull(env_file, vault, mode, save_mode, prefix, token, config_path):
        """Pull secrets from 1Password into a .env file."""
        reconciler = prepare_reconciler(
            env_file, vault, mode, prefix, token, config_path, save_mode
        )
        console.print(f"\n  Pulling 1Password secrets into [cyan]{escape(reconciler.env_path.name)}[/]...")
        result = reconciler.pull()
        _print_pull(result, reconciler.env_path.name)
        console.print()

    @main.command("diff")
    @sync_options
    @click.option(
        "--format", "output_format",
        type=click.Choice(sorted(FORMATTERS)),
        default="text",
        help="Output format.",
    )
    @handle_errors
    def diff(env_file, vault, mode, save_mode, prefix, token, config_path, output_format):
        """Show differences between a .env file and 1Password."""
        reconciler = prepare_reconciler(
            env_file, vault, mode, prefix, token, config_path, save_mode
        )
        _print_diff(reconciler.diff(), output_format)

    @main.command("sync")
    @sync_options
    @click.option(
        "--direction",
        type=click.Choice([SyncDirection.PUSH.value, SyncDirection.PULL.value]),
        default=None,
        help="push: .env to 1Password, pull: 1Password to .env.",
    )
    @handle_errors
    def sync(env_file, vault, mode, save_mode, prefix, token, config_path, direction: Optional[str]):
        """Sync secrets between a .env file and 1Password."""
        reconciler = prepare_reconciler(
            env_file, vault, mode, prefix, token, config_path, save_mode
        )
        if direction is None:
            direction = click.prompt(
                "Select sync direction (push: .env to 1Password, pull: 1Password to .env)",
                type=click.Choice([SyncDirection.PUSH.value, SyncDirection.PULL.value]),
            )

        result = reconciler.run(direction)
        if isinstance(result, ApplyResult):
            _print_push(result)
            if result.partial:
                sys.exit(1)
        else:
            _print_pull(result, reconciler.env_path.name)
        console.print()
