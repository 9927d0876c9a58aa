"""
Configuration -- the ``1pass.yaml`` file next to your .env files.

    # 1Password configuration
    token: ops_...
    storageMode: separate
    projectPrefix: myapp
    vault: Private

Only the token is mandatory, and it can also come from the
OP_SERVICE_ACCOUNT_TOKEN environment variable or ``--token``.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from . import CONFIG_FILE_NAME
from .errors import ConfigurationError
from .sync.models import StorageMode
from .sync.store import TOKEN_ENV_VAR

logger = logging.getLogger("dotvault.config")

TOKEN_PLACEHOLDER = "<replace_me_with_token>"


class Config(BaseModel):
    """Settings read from ``1pass.yaml``.

    Unknown keys are kept so that rewriting the file does not lose them.
    """

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    token: str = ""
    storage_mode: StorageMode = Field(default=StorageMode.SEPARATE, alias="storageMode")
    project_prefix: str = Field(default="", alias="projectPrefix")
    vault: Optional[str] = None

    @field_validator("token", mode="before")
    @classmethod
    def token_as_text(cls, v: Any) -> str:
        return "" if v is None else str(v).strip()

    @field_validator("storage_mode", mode="before")
    @classmethod
    def storage_mode_fallback(cls, v: Any) -> StorageMode:
        """Anything other than separate/combined means separate."""
        try:
            return StorageMode(v)
        except ValueError:
            return StorageMode.SEPARATE

    @field_validator("project_prefix", mode="before")
    @classmethod
    def prefix_as_text(cls, v: Any) -> str:
        return "" if v is None else str(v).strip()


def default_config_path(directory: Optional[Path] = None) -> Path:
    """Where ``1pass.yaml`` is looked up: the working directory by default."""
    return (Path(directory) if directory is not None else Path.cwd()) / CONFIG_FILE_NAME


def load_config(path: Optional[Path] = None) -> Config:
    """Load and validate the config file.

    Args:
        path: Config file. Defaults to ``./1pass.yaml``.

    Returns:
        Parsed Config.

    Raises:
        ConfigurationError: If the file is missing, unreadable, or not a
            YAML mapping.
    """
    path = Path(path) if path is not None else default_config_path()
    if not path.exists():
        raise ConfigurationError(
            f"{path.name} not found. Run 'dotvault init' to create it."
        )
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigurationError(f"Invalid {path.name}: {exc}") from exc

    if not isinstance(data, dict):
        raise ConfigurationError(
            f"Invalid {path.name}: Configuration must be a YAML object"
        )
    try:
        return Config.model_validate(data)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid {path.name}: {exc}") from exc


def resolve_token(config: Optional[Config] = None, cli_token: Optional[str] = None) -> str:
    """Pick the service account token.

    Priority: ``--token``, then OP_SERVICE_ACCOUNT_TOKEN, then the config
    file. The template placeholder counts as no token.

    Raises:
        ConfigurationError: If no usable token is found.
    """
    config_token = config.token if config else ""
    for candidate in (cli_token, os.environ.get(TOKEN_ENV_VAR), config_token):
        if candidate and candidate.strip() and candidate.strip() != TOKEN_PLACEHOLDER:
            return candidate.strip()

    if config_token == TOKEN_PLACEHOLDER:
        raise ConfigurationError(
            f"{CONFIG_FILE_NAME}: Please replace the placeholder token with "
            "your actual 1Password service account token"
        )
    raise ConfigurationError("1Password service account token must be provided")


def save_config(config: Config, path: Optional[Path] = None) -> Path:
    """Write ``config`` back to disk, using the file's own key names."""
    path = Path(path) if path is not None else default_config_path()
    data = config.model_dump(mode="json", by_alias=True, exclude_none=True)
    path.write_text(yaml.dump(data, default_flow_style=False, sort_keys=False), encoding="utf-8")
    return path


def update_config(path: Optional[Path] = None, **changes: Any) -> Config:
    """Load the config, apply ``changes`` and save it.

    Args:
        path: Config file.
        **changes: Field names (python or file spelling) to new values.

    Returns:
        The updated Config.
    """
    config = load_config(path)
    data = config.model_dump(by_alias=True)
    for key, value in changes.items():
        field_info = Config.model_fields.get(key)
        alias = field_info.alias if field_info and field_info.alias else key
        data[alias] = value.value if isinstance(value, StorageMode) else value
    updated = Config.model_validate(data)
    save_config(updated, path)
    logger.info("%s has been updated.", Path(path or default_config_path()).name)
    return updated


def write_template(
    path: Optional[Path] = None,
    token: str = "",
    storage_mode: StorageMode = StorageMode.SEPARATE,
    project_prefix: str = "",
) -> Path:
    """Write a fresh config file.

    An empty token is written as a placeholder to be filled in later.

    Returns:
        Path of the written file.
    """
    path = Path(path) if path is not None else default_config_path()
    template = (
        "# 1Password configuration\n"
        f"token: {token or TOKEN_PLACEHOLDER}\n"
        f"storageMode: {StorageMode(storage_mode).value}\n"
        f"projectPrefix: {project_prefix}\n"
    )
    path.write_text(template, encoding="utf-8")
    return path


def has_valid_config(path: Optional[Path] = None) -> bool:
    """True if the config file loads and carries a real token."""
    try:
        config = load_config(path)
    except ConfigurationError:
        return False
    return bool(config.token) and config.token != TOKEN_PLACEHOLDER
