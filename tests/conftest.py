"""Shared test fixtures for dotvault."""

from __future__ import annotations

from pathlib import Path

import pytest

from dotvault.sync.store import MemoryStore

VAULT_ID = "vault"


@pytest.fixture
def store() -> MemoryStore:
    """An empty in-memory vault store with a single vault."""
    return MemoryStore({VAULT_ID: "Private"})


@pytest.fixture
def env_file(tmp_path: Path) -> Path:
    """A .env file with comments, a blank line and a quoted value."""
    path = tmp_path / ".env"
    path.write_text(
        "# database\n"
        "DB_HOST=localhost\n"
        "DB_PASSWORD=\"s3cret pass\"\n"
        "\n"
        "# api\n"
        "  API_KEY=abc123\n",
        encoding="utf-8",
    )
    return path


@pytest.fixture
def empty_env_file(tmp_path: Path) -> Path:
    """An existing but empty .env file."""
    path = tmp_path / ".env"
    path.write_text("", encoding="utf-8")
    return path
