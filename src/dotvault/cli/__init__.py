"""
dotvault CLI -- .env files and 1Password, kept in step.

The main Click group is defined here and all subcommands are
registered via register functions from their own modules.

Entry point: dotvault.cli:main
"""

from __future__ import annotations

import click

from .. import __version__
from ._common import setup_logging


@click.group()
@click.version_option(version=__version__, prog_name="dotvault")
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging.")
def main(verbose):
    """dotvault: sync secrets between .env files and a 1Password vault."""
    setup_logging(verbose)


# ---------------------------------------------------------------------------
# Register all command groups/commands from modular files
# ---------------------------------------------------------------------------

from .config_cmd import register_config_commands
from .sync_cmd import register_sync_commands

register_config_commands(main)
register_sync_commands(main)
