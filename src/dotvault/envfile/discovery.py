"""Find candidate .env files in a directory."""

from __future__ import annotations

import fnmatch
from pathlib import Path
from typing import Optional

ENV_FILE_PATTERNS = (".env", "*.env", ".*.env")


def list_env_files(directory: Optional[Path] = None) -> list[str]:
    """List env file names in ``directory`` (default: the working directory).

    Matches ``.env``, ``*.env`` and ``.*.env``, sorted by name.

    Args:
        directory: Where to look.

    Returns:
        File names, not paths.
    """
    root = Path(directory) if directory is not None else Path.cwd()
    if not root.is_dir():
        return []
    return sorted(
        entry.name
        for entry in root.iterdir()
        if entry.is_file()
        and any(fnmatch.fnmatch(entry.name, pat) for pat in ENV_FILE_PATTERNS)
    )
