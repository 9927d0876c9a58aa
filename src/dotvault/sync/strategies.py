"""
Storage strategies -- how a flat secret map is laid out in a vault.

Separate: one PASSWORD item per secret. The item title is the key and
          the concealed ``password`` field holds the value. Keys are
          independent, so one failing key does not stop the others.
Combined: one item titled after the project prefix, one concealed
          field per secret. The whole map is written in a single call,
          so it either all lands or none of it does.

The engine picks one strategy per operation via ``create_strategy``.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Optional

from ..envfile.document import is_valid_key
from ..errors import ConfigurationError, RemoteEntityError
from .models import (
    CONCEALED,
    PASSWORD_CATEGORY,
    PASSWORD_FIELD_ID,
    ApplyResult,
    RemoteField,
    RemoteItem,
    RemoteSection,
    StorageMode,
)
from .store import SecretStore

logger = logging.getLogger("dotvault.sync.strategies")

COMBINED_SECTION_TITLE = "Env secrets"


class StorageStrategy(ABC):
    """Maps a secret map onto vault items and back."""

    def __init__(self, store: SecretStore, vault_id: str):
        self.store = store
        self.vault_id = vault_id

    @property
    @abstractmethod
    def name(self) -> str:
        """Storage mode name."""

    @abstractmethod
    def fetch_remote_map(self, include_empty: bool = False) -> dict[str, str]:
        """Read the vault side as ``{key: value}``.

        Args:
            include_empty: Keep secrets whose value is blank. Pull skips
                them so an empty vault field never wipes a local value.

        Raises:
            RemoteEntityError: If the vault cannot be read.
        """

    @abstractmethod
    def apply_local_map(self, secrets: dict[str, str]) -> ApplyResult:
        """Write ``secrets`` to the vault.

        Returns:
            Which keys were created, updated, left alone, or failed.
        """

    def _find_item(self, title: str) -> Optional[RemoteItem]:
        """First item in the vault whose title is ``title``."""
        for item in self.store.list_all(self.vault_id):
            if item.title == title:
                return item
        return None


class SeparateItemsStrategy(StorageStrategy):
    """One vault item per secret."""

    @property
    def name(self) -> str:
        return StorageMode.SEPARATE.value

    def fetch_remote_map(self, include_empty: bool = False) -> dict[str, str]:
        secrets: dict[str, str] = {}
        for overview in list(self.store.list_all(self.vault_id)):
            if overview.category != PASSWORD_CATEGORY:
                continue
            if not is_valid_key(overview.title):
                logger.debug("Skipping item %r: not a valid env key", overview.title)
                continue
            item = self.store.get(self.vault_id, overview.id)
            password = item.field_by_id(PASSWORD_FIELD_ID)
            if password is None:
                continue
            if not include_empty and password.value.strip() == "":
                continue
            secrets.setdefault(overview.title, password.value)
        return secrets

    def apply_local_map(self, secrets: dict[str, str]) -> ApplyResult:
        result = ApplyResult()
        if not secrets:
            return result

        index: dict[str, RemoteItem] = {}
        for item in self.store.list_all(self.vault_id):
            index.setdefault(item.title, item)

        for key, value in secrets.items():
            try:
                existing = index.get(key)
                if existing is None:
                    self.store.create(_password_item(key, value, self.vault_id))
                    result.created.append(key)
                elif self._update(existing, value):
                    result.updated.append(key)
                else:
                    result.unchanged.append(key)
            except RemoteEntityError as exc:
                logger.error("Failed to sync secret '%s': %s", key, exc)
                result.failed[key] = str(exc)

        return result

    def _update(self, overview: RemoteItem, value: str) -> bool:
        """Set the password field of an existing item. False if already equal."""
        item = self.store.get(self.vault_id, overview.id)
        password = item.field_by_id(PASSWORD_FIELD_ID)
        if password is not None and password.value == value:
            return False

        if password is None:
            item.fields.append(_password_field(value))
        else:
            password.value = value
        self.store.put(item)
        return True


class CombinedItemStrategy(StorageStrategy):
    """All secrets as fields of one item titled after the project prefix."""

    def __init__(self, store: SecretStore, vault_id: str, project_prefix: str):
        super().__init__(store, vault_id)
        if not project_prefix or not project_prefix.strip():
            raise ConfigurationError(
                "Combined storage mode needs a non-empty project prefix"
            )
        self.project_prefix = project_prefix

    @property
    def name(self) -> str:
        return StorageMode.COMBINED.value

    def fetch_remote_map(self, include_empty: bool = False) -> dict[str, str]:
        overview = self._find_item(self.project_prefix)
        if overview is None:
            return {}

        item = self.store.get(self.vault_id, overview.id)
        secrets: dict[str, str] = {}
        for f in item.fields:
            if not include_empty and f.value.strip() == "":
                continue
            secrets[f.title] = f.value
        return secrets

    def apply_local_map(self, secrets: dict[str, str]) -> ApplyResult:
        result = ApplyResult()
        fields = [
            RemoteField(
                id=f"field_{key}",
                title=key,
                value=value,
                field_type=CONCEALED,
                section_id=self.project_prefix,
            )
            for key, value in secrets.items()
        ]

        try:
            overview = self._find_item(self.project_prefix)
            if overview is None:
                if not fields:
                    return result
                self.store.create(self._new_item(fields))
                result.created = [f.title for f in fields]
                return result

            item = self.store.get(self.vault_id, overview.id)
            for f in fields:
                current = item.field_by_title(f.title)
                if current is None:
                    result.created.append(f.title)
                elif current.value != f.value:
                    result.updated.append(f.title)
                else:
                    result.unchanged.append(f.title)

            if not result.changed:
                return result

            dropped = [f.title for f in item.fields if f.title not in secrets]
            if dropped:
                logger.warning(
                    "Fields not in the local file will be removed from '%s': %s",
                    self.project_prefix, ", ".join(dropped),
                )
            item.fields = fields
            if not any(s.id == self.project_prefix for s in item.sections):
                item.sections.append(
                    RemoteSection(id=self.project_prefix, title=COMBINED_SECTION_TITLE)
                )
            self.store.put(item)
        except RemoteEntityError as exc:
            raise RemoteEntityError(f"Failed to sync secrets: {exc}") from exc

        return result

    def _new_item(self, fields: list[RemoteField]) -> RemoteItem:
        return RemoteItem(
            title=self.project_prefix,
            category=PASSWORD_CATEGORY,
            vault_id=self.vault_id,
            fields=fields,
            sections=[
                RemoteSection(id=self.project_prefix, title=COMBINED_SECTION_TITLE)
            ],
        )


def _password_field(value: str) -> RemoteField:
    return RemoteField(
        id=PASSWORD_FIELD_ID,
        title=PASSWORD_FIELD_ID,
        value=value,
        field_type=CONCEALED,
    )


def _password_item(key: str, value: str, vault_id: str) -> RemoteItem:
    return RemoteItem(
        title=key,
        category=PASSWORD_CATEGORY,
        vault_id=vault_id,
        fields=[_password_field(value)],
    )


def create_strategy(
    mode: StorageMode,
    store: SecretStore,
    vault_id: str,
    project_prefix: str = "",
) -> StorageStrategy:
    """Factory function to create the strategy for a storage mode.

    Args:
        mode: Storage mode.
        store: Vault backend.
        vault_id: Vault to operate on.
        project_prefix: Item title for combined mode.

    Returns:
        Instantiated StorageStrategy.

    Raises:
        ConfigurationError: If the mode is unknown or combined mode has
            no project prefix.
    """
    try:
        mode = StorageMode(mode)
    except ValueError as exc:
        raise ConfigurationError(f"Unsupported storage mode: {mode}") from exc

    if mode == StorageMode.COMBINED:
        return CombinedItemStrategy(store, vault_id, project_prefix)
    return SeparateItemsStrategy(store, vault_id)
