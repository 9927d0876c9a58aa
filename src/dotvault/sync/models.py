"""
Sync data models -- vault items and the outcome of each operation.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

PASSWORD_CATEGORY = "PASSWORD"
CONCEALED = "CONCEALED"
PASSWORD_FIELD_ID = "password"


class StorageMode(str, Enum):
    """How secrets map onto vault items."""

    SEPARATE = "separate"
    COMBINED = "combined"


class SyncDirection(str, Enum):
    """Which side is authoritative for an operation."""

    PUSH = "push"
    PULL = "pull"
    DIFF = "diff"


class VaultRef(BaseModel):
    """A vault visible to the current token."""

    id: str
    title: str


class RemoteField(BaseModel):
    """One field of a vault item."""

    id: str
    title: str
    value: str = ""
    field_type: str = CONCEALED
    section_id: Optional[str] = None


class RemoteSection(BaseModel):
    """A named group of fields inside an item."""

    id: str
    title: str = ""


class RemoteItem(BaseModel):
    """A vault item.

    Listings return items without fields; ``SecretStore.get`` fills them in.
    """

    id: Optional[str] = None
    title: str
    category: str = PASSWORD_CATEGORY
    vault_id: str
    fields: list[RemoteField] = Field(default_factory=list)
    sections: list[RemoteSection] = Field(default_factory=list)

    def field_by_id(self, field_id: str) -> Optional[RemoteField]:
        return next((f for f in self.fields if f.id == field_id), None)

    def field_by_title(self, title: str) -> Optional[RemoteField]:
        return next((f for f in self.fields if f.title == title), None)


class ApplyResult(BaseModel):
    """Outcome of writing a local secret map to the vault.

    ``failed`` maps keys to the error that stopped them; it is only ever
    populated in separate-items mode, where keys are independent.
    """

    created: list[str] = Field(default_factory=list)
    updated: list[str] = Field(default_factory=list)
    unchanged: list[str] = Field(default_factory=list)
    failed: dict[str, str] = Field(default_factory=dict)

    @property
    def changed(self) -> bool:
        return bool(self.created or self.updated)

    @property
    def partial(self) -> bool:
        """Some keys failed while others may have gone through."""
        return bool(self.failed)


class PullResult(BaseModel):
    """Outcome of writing vault secrets into the .env file."""

    updated: list[str] = Field(default_factory=list)
    added: list[str] = Field(default_factory=list)
    unchanged: list[str] = Field(default_factory=list)
    skipped: list[str] = Field(default_factory=list)
    written: bool = False

    @property
    def changed(self) -> bool:
        return bool(self.updated or self.added)
