"""
Secret stores -- where vault items live.

The sync engine only ever talks to a store through five calls:
list vaults, list items, get an item, create an item, replace an item.

OpCliStore:  the 1Password ``op`` CLI, driven through subprocess with
             a service account token.
MemoryStore: a plain in-process store. For tests and dry runs.

Every failure surfaces as RemoteEntityError.
"""

from __future__ import annotations

import json
import logging
import os
import shutil
import subprocess
import tempfile
import uuid
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Iterator, Optional

from ..errors import RemoteEntityError
from .models import CONCEALED, RemoteField, RemoteItem, RemoteSection, VaultRef

logger = logging.getLogger("dotvault.sync.store")

TOKEN_ENV_VAR = "OP_SERVICE_ACCOUNT_TOKEN"


class SecretStore(ABC):
    """Abstract vault backend."""

    @abstractmethod
    def list_vaults(self) -> list[VaultRef]:
        """List vaults visible to the caller."""

    @abstractmethod
    def list_all(self, vault_id: str) -> Iterator[RemoteItem]:
        """Iterate over the items of a vault, without their fields.

        Every call starts a fresh listing; a returned iterator is only
        good for one pass.
        """

    @abstractmethod
    def get(self, vault_id: str, item_id: str) -> RemoteItem:
        """Fetch one item with all its fields."""

    @abstractmethod
    def create(self, item: RemoteItem) -> RemoteItem:
        """Create ``item`` in ``item.vault_id`` and return it with its id."""

    @abstractmethod
    def put(self, item: RemoteItem) -> RemoteItem:
        """Replace the fields of an existing item."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable store name."""


class MemoryStore(SecretStore):
    """Vault items held in a dict. Nothing leaves the process."""

    def __init__(self, vaults: Optional[dict[str, str]] = None):
        """Initialize the store.

        Args:
            vaults: Mapping of vault id to vault title.
                Defaults to a single vault ``{"vault": "Private"}``.
        """
        self.vaults = dict(vaults or {"vault": "Private"})
        self.items: dict[str, RemoteItem] = {}
        self.calls: list[tuple[str, str]] = []

    @property
    def name(self) -> str:
        return "memory"

    def add(
        self,
        vault_id: str,
        title: str,
        fields: dict[str, str],
        category: str = "PASSWORD",
    ) -> RemoteItem:
        """Seed an item directly, bypassing the call log.

        Args:
            vault_id: Vault to put the item in.
            title: Item title.
            fields: Field id/title to value.
            category: Item category.
        """
        item = RemoteItem(
            id=uuid.uuid4().hex,
            title=title,
            category=category,
            vault_id=vault_id,
            fields=[
                RemoteField(id=key, title=key, value=value)
                for key, value in fields.items()
            ],
        )
        self.items[item.id] = item
        return item.model_copy(deep=True)

    def list_vaults(self) -> list[VaultRef]:
        return [VaultRef(id=vid, title=title) for vid, title in self.vaults.items()]

    def list_all(self, vault_id: str) -> Iterator[RemoteItem]:
        self.calls.append(("list", vault_id))
        self._require_vault(vault_id)
        for item in list(self.items.values()):
            if item.vault_id == vault_id:
                yield item.model_copy(update={"fields": [], "sections": []})

    def get(self, vault_id: str, item_id: str) -> RemoteItem:
        self.calls.append(("get", item_id))
        item = self.items.get(item_id)
        if item is None or item.vault_id != vault_id:
            raise RemoteEntityError(f"Item {item_id} not found in vault {vault_id}")
        return item.model_copy(deep=True)

    def create(self, item: RemoteItem) -> RemoteItem:
        self.calls.append(("create", item.title))
        self._require_vault(item.vault_id)
        stored = item.model_copy(deep=True, update={"id": uuid.uuid4().hex})
        self.items[stored.id] = stored
        return stored.model_copy(deep=True)

    def put(self, item: RemoteItem) -> RemoteItem:
        self.calls.append(("put", item.title))
        if item.id not in self.items:
            raise RemoteEntityError(f"Item {item.id} does not exist")
        self.items[item.id] = item.model_copy(deep=True)
        return item.model_copy(deep=True)

    def _require_vault(self, vault_id: str) -> None:
        if vault_id not in self.vaults:
            raise RemoteEntityError(f"Vault not found: {vault_id}")


class OpCliStore(SecretStore):
    """1Password backend driven through the ``op`` command line tool.

    Authenticates with a service account token exported to the child
    process as OP_SERVICE_ACCOUNT_TOKEN. Items are created and replaced
    from JSON templates written to private temp files.
    """

    def __init__(self, token: str, op_path: str = "op", timeout: int = 60):
        self.token = token
        self.op_path = op_path
        self.timeout = timeout

    @property
    def name(self) -> str:
        return "1password"

    def available(self) -> bool:
        return shutil.which(self.op_path) is not None

    def _run(self, args: list[str]) -> Any:
        """Run ``op <args> --format json`` and parse its output."""
        env = os.environ.copy()
        env[TOKEN_ENV_VAR] = self.token
        cmd = [self.op_path, *args, "--format", "json"]
        logger.debug("Running: %s", " ".join(cmd[:3]))
        try:
            result = subprocess.run(
                cmd, capture_output=True, text=True,
                check=False, env=env, timeout=self.timeout,
            )
        except (OSError, subprocess.TimeoutExpired) as exc:
            raise RemoteEntityError(f"op {args[0]} {args[1]} failed: {exc}") from exc

        if result.returncode != 0:
            raise RemoteEntityError(
                f"op {args[0]} {args[1]} failed: {result.stderr.strip()}"
            )
        if not result.stdout.strip():
            return None
        try:
            return json.loads(result.stdout)
        except json.JSONDecodeError as exc:
            raise RemoteEntityError(f"op returned invalid JSON: {exc}") from exc

    def _run_with_template(self, args: list[str], item: RemoteItem) -> Any:
        fd, template_path = tempfile.mkstemp(prefix="dotvault-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(_to_template(item), f)
            return self._run([*args, "--template", template_path])
        finally:
            Path(template_path).unlink(missing_ok=True)

    def list_vaults(self) -> list[VaultRef]:
        data = self._run(["vault", "list"]) or []
        return [VaultRef(id=v["id"], title=v.get("name", v["id"])) for v in data]

    def list_all(self, vault_id: str) -> Iterator[RemoteItem]:
        data = self._run(["item", "list", "--vault", vault_id]) or []
        for entry in data:
            yield RemoteItem(
                id=entry["id"],
                title=entry.get("title", ""),
                category=entry.get("category", ""),
                vault_id=entry.get("vault", {}).get("id", vault_id),
            )

    def get(self, vault_id: str, item_id: str) -> RemoteItem:
        data = self._run(["item", "get", item_id, "--vault", vault_id])
        return _from_op_json(data, vault_id)

    def create(self, item: RemoteItem) -> RemoteItem:
        data = self._run_with_template(["item", "create", "--vault", item.vault_id], item)
        return _from_op_json(data, item.vault_id)

    def put(self, item: RemoteItem) -> RemoteItem:
        if not item.id:
            raise RemoteEntityError(f"Cannot replace item {item.title!r} without an id")
        data = self._run_with_template(
            ["item", "edit", item.id, "--vault", item.vault_id], item
        )
        return _from_op_json(data, item.vault_id)


def _from_op_json(data: Any, vault_id: str) -> RemoteItem:
    if not isinstance(data, dict):
        raise RemoteEntityError("op returned no item")
    fields = [
        RemoteField(
            id=f.get("id", ""),
            title=f.get("label", f.get("id", "")),
            value=str(f.get("value", "")),
            field_type=f.get("type", CONCEALED),
            section_id=(f.get("section") or {}).get("id"),
        )
        for f in data.get("fields", [])
    ]
    sections = [
        RemoteSection(id=s["id"], title=s.get("label", ""))
        for s in data.get("sections", [])
        if s.get("id")
    ]
    return RemoteItem(
        id=data.get("id"),
        title=data.get("title", ""),
        category=data.get("category", ""),
        vault_id=(data.get("vault") or {}).get("id", vault_id),
        fields=fields,
        sections=sections,
    )


def _to_template(item: RemoteItem) -> dict[str, Any]:
    template: dict[str, Any] = {
        "title": item.title,
        "category": item.category,
        "fields": [],
        "sections": [{"id": s.id, "label": s.title} for s in item.sections],
    }
    for f in item.fields:
        entry: dict[str, Any] = {
            "id": f.id,
            "label": f.title,
            "type": f.field_type,
            "value": f.value,
        }
        if f.section_id:
            entry["section"] = {"id": f.section_id}
        template["fields"].append(entry)
    return template
