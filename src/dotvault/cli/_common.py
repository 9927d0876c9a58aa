"""Shared utilities for all CLI command modules.

Provides the Rich console instance, logging setup, error handling,
and the prompts that turn CLI options plus ``1pass.yaml`` into a ready
Reconciler.
"""

from __future__ import annotations

import functools
import logging
import sys
from pathlib import Path
from typing import Callable, Optional

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from ..config import Config, default_config_path, load_config, resolve_token, update_config
from ..envfile.discovery import list_env_files
from ..errors import ConfigurationError, DotvaultError, LocalFileError
from ..sync.engine import Reconciler
from ..sync.models import StorageMode
from ..sync.store import OpCliStore, SecretStore
from ..sync.strategies import create_strategy

console = Console()
logger = logging.getLogger("dotvault.cli")


def setup_logging(verbose: bool = False) -> None:
    """Route dotvault logs through Rich.

    Args:
        verbose: Log at DEBUG instead of INFO.
    """
    root = logging.getLogger("dotvault")
    root.setLevel(logging.DEBUG if verbose else logging.INFO)
    if not any(isinstance(h, RichHandler) for h in root.handlers):
        handler = RichHandler(show_time=False, show_path=False, markup=False)
        handler.setFormatter(logging.Formatter("%(message)s"))
        root.addHandler(handler)


def handle_errors(func: Callable) -> Callable:
    """Turn expected failures into a red message and exit status 1."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except DotvaultError as exc:
            console.print(f"[bold red]An error occurred:[/] {escape(str(exc))}")
            sys.exit(1)

    return wrapper


def sync_options(func: Callable) -> Callable:
    """Options shared by push, pull, diff and sync."""
    options = [
        click.option("--env-file", "-f", default=None, type=click.Path(dir_okay=False),
                     help="The .env file to sync (default: pick from the working directory)."),
        click.option("--vault", default=None, help="Vault id or title."),
        click.option("--mode", default=None,
                     type=click.Choice([m.value for m in StorageMode]),
                     help="Storage mode for this run (default: from config)."),
        click.option("--save-mode", is_flag=True,
                     help="Also store --mode as the default in the config file."),
        click.option("--prefix", default=None, help="Project prefix for combined mode."),
        click.option("--token", default=None,
                     help="1Password service account token."),
        click.option("--config", "config_path", default=None, type=click.Path(dir_okay=False),
                     help="Config file (default: ./1pass.yaml)."),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def load_optional_config(config_path: Optional[str]) -> Config:
    """Load the config file, or fall back to defaults if there is none."""
    path = Path(config_path) if config_path else default_config_path()
    if not path.exists():
        logger.warning("%s not found, using defaults.", path.name)
        return Config()
    return load_config(path)


def build_store(token: str) -> SecretStore:
    """Create the vault backend for a token."""
    store = OpCliStore(token)
    if not store.available():
        raise ConfigurationError(
            "The 1Password CLI ('op') was not found in PATH."
        )
    return store


def ensure_project_prefix(config: Config, prefix: Optional[str], config_path: Optional[str]) -> str:
    """Project prefix from the option or config, prompting if neither has one.

    A prompted prefix is saved back to the config file when one exists.
    """
    chosen = (prefix or config.project_prefix or "").strip()
    if chosen:
        return chosen

    chosen = click.prompt(
        "Enter a project prefix for 1Password items",
        value_proc=_non_empty("Project prefix cannot be empty"),
    )
    path = Path(config_path) if config_path else default_config_path()
    if path.exists():
        update_config(path, project_prefix=chosen)
    return chosen


def save_storage_mode(storage_mode: StorageMode, config_path: Optional[str]) -> None:
    """Make ``storage_mode`` the default in the config file, if there is one."""
    path = Path(config_path) if config_path else default_config_path()
    if not path.exists():
        logger.warning("%s not found, storage mode not saved.", path.name)
        return
    update_config(path, storage_mode=storage_mode)
    console.print(f"  Default storage mode set to [cyan]{storage_mode.value}[/]")


def select_env_file(env_file: Optional[str]) -> Path:
    """Use ``--env-file`` or pick one of the .env files in the working directory.

    Raises:
        LocalFileError: If there is nothing to pick from.
    """
    if env_file:
        return Path(env_file)

    candidates = list_env_files()
    if not candidates:
        raise LocalFileError("No .env files found in the current directory.")
    if len(candidates) == 1:
        return Path(candidates[0])

    chosen = click.prompt(
        "Select the .env file to sync",
        type=click.Choice(candidates),
        default=candidates[0],
    )
    return Path(chosen)


def resolve_vault(store: SecretStore, wanted: Optional[str]) -> str:
    """Return the id of the vault to use, by id or title or by prompting.

    Raises:
        ConfigurationError: If the requested vault does not exist or no
            vault is visible.
    """
    vaults = store.list_vaults()
    if wanted:
        for v in vaults:
            if wanted in (v.id, v.title):
                return v.id
        raise ConfigurationError(f"Vault not found: {wanted}")

    if not vaults:
        raise ConfigurationError("No vaults are visible to this token.")
    if len(vaults) == 1:
        return vaults[0].id

    titles = [v.title for v in vaults]
    chosen = click.prompt(
        "Select a vault to store/sync secrets",
        type=click.Choice(titles),
    )
    vault = next(v for v in vaults if v.title == chosen)
    console.print(f"  Vault [cyan]{escape(vault.title)}[/] selected")
    return vault.id


def prepare_reconciler(
    env_file: Optional[str],
    vault: Optional[str],
    mode: Optional[str],
    prefix: Optional[str],
    token: Optional[str],
    config_path: Optional[str],
    save_mode: bool = False,
) -> Reconciler:
    """Resolve settings, vault and env file into a Reconciler.

    Configuration problems surface before the config file is rewritten
    and before any vault call is made.
    """
    config = load_optional_config(config_path)
    resolved_token = resolve_token(config, token)
    storage_mode = StorageMode(mode) if mode else config.storage_mode
    if save_mode and mode:
        save_storage_mode(storage_mode, config_path)
    project_prefix = ""
    if storage_mode == StorageMode.COMBINED:
        project_prefix = ensure_project_prefix(config, prefix, config_path)

    env_path = select_env_file(env_file)
    store = build_store(resolved_token)
    vault_id = resolve_vault(store, vault or config.vault)
    strategy = create_strategy(storage_mode, store, vault_id, project_prefix)
    return Reconciler(strategy, env_path)


def _non_empty(message: str) -> Callable[[str], str]:
    def check(value: str) -> str:
        if not value.strip():
            raise click.BadParameter(message)
        return value.strip()

    return check
