"""
Error taxonomy for dotvault.

Everything the CLI knows how to report derives from DotvaultError.
Anything else escaping a command is a bug.
"""

from __future__ import annotations


class DotvaultError(Exception):
    """Base class for all expected dotvault failures."""


class ConfigurationError(DotvaultError):
    """Raised for a missing or invalid token, mode, or project prefix.

    Always fatal, and always raised before any file or vault I/O.
    """


class LocalFileError(DotvaultError):
    """Raised when the .env file cannot be found, read, or written."""


class RemoteEntityError(DotvaultError):
    """Raised when a single vault call (list/get/create/put) fails."""
