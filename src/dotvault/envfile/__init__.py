"""
Local side of the sync: the .env file.

The codec turns one value into its on-disk text and back. The document
keeps the rest of the file -- comments, blank lines, ordering -- intact
while values change.
"""

from .codec import decode, encode, is_lossy
from .discovery import list_env_files
from .document import EnvDocument, KeyValueLine, OpaqueLine, is_valid_key

__all__ = [
    "EnvDocument",
    "KeyValueLine",
    "OpaqueLine",
    "decode",
    "encode",
    "is_lossy",
    "is_valid_key",
    "list_env_files",
]
