"""
Vault side of the sync -- stores, storage strategies, and the engine
that reconciles them with a .env file.

Stores: 1Password (``op`` CLI), in-memory.
Strategies: one item per secret, or one item for the whole project.
"""

from .engine import Reconciler
from .strategies import CombinedItemStrategy, SeparateItemsStrategy, create_strategy
from .store import MemoryStore, OpCliStore, SecretStore

__all__ = [
    "CombinedItemStrategy",
    "MemoryStore",
    "OpCliStore",
    "Reconciler",
    "SecretStore",
    "SeparateItemsStrategy",
    "create_strategy",
]
