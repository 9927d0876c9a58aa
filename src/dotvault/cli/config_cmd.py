"""Setup commands: init, vaults."""

from __future__ import annotations

from pathlib import Path

import click
from rich.markup import escape
from rich.table import Table

from .. import CONFIG_FILE_NAME
from ..config import default_config_path, has_valid_config, resolve_token, write_template
from ..sync.models import StorageMode
from ._common import build_store, console, handle_errors, load_optional_config


def register_config_commands(main: click.Group) -> None:
    """Register init and vaults."""

    @main.command("init")
    @click.option("--config", "config_path", default=None, type=click.Path(dir_okay=False),
                  help="Where to write the config (default: ./1pass.yaml).")
    @click.option("--force", is_flag=True, help="Overwrite a valid existing config.")
    @handle_errors
    def init(config_path, force):
        """Generate a template 1pass.yaml file."""
        path = Path(config_path) if config_path else default_config_path()

        if path.exists():
            console.print(f"  Found existing [cyan]{escape(str(path))}[/]")
            if has_valid_config(path) and not force:
                if not click.confirm(
                    f"{path.name} already exists and appears to be valid. Override it?",
                    default=False,
                ):
                    console.print(f"  Keeping existing {escape(path.name)} file.\n")
                    return
        else:
            console.print(f"  [yellow]No existing {escape(path.name)} file found. Creating a new one.[/]")

        console.print(
            "\n  You can provide the 1Password service account token now or leave it "
            "empty and fill it in later."
        )
        token = click.prompt(
            "Enter your 1Password service account token (or leave empty)",
            default="", show_default=False, hide_input=True,
        )
        storage_mode = click.prompt(
            "Choose the default storage mode (separate: one item per secret, "
            "combined: one item for all secrets)",
            type=click.Choice([m.value for m in StorageMode]),
            default=StorageMode.SEPARATE.value,
        )
        project_prefix = click.prompt(
            "Enter a project prefix for 1Password items (or leave empty)",
            default="", show_default=False,
        )

        write_template(path, token.strip(), StorageMode(storage_mode), project_prefix.strip())
        console.print(f"\n  [bold green]{escape(path.name)} has been created at {escape(str(path))}[/]")
        if not token.strip():
            console.print(
                "  [yellow]Please edit this file to add your 1Password service "
                "account token before using the tool.[/]"
            )
        console.print()

    @main.command("vaults")
    @click.option("--token", default=None, help="1Password service account token.")
    @click.option("--config", "config_path", default=None, type=click.Path(dir_okay=False),
                  help=f"Config file (default: ./{CONFIG_FILE_NAME}).")
    @handle_errors
    def vaults(token, config_path):
        """List the vaults visible to the token."""
        config = load_optional_config(config_path)
        store = build_store(resolve_token(config, token))

        table = Table(title="1Password vaults")
        table.add_column("ID", style="dim")
        table.add_column("Title", style="cyan")
        for v in store.list_vaults():
            marker = " [green](default)[/]" if config.vault in (v.id, v.title) else ""
            table.add_row(escape(v.id), escape(v.title) + marker)
        console.print(table)
