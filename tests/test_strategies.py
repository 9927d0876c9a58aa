"""Tests for the separate-items and combined-item storage strategies."""

from __future__ import annotations

import logging

import pytest

from dotvault.errors import ConfigurationError, RemoteEntityError
from dotvault.sync.models import RemoteItem, StorageMode
from dotvault.sync.store import MemoryStore
from dotvault.sync.strategies import (
    CombinedItemStrategy,
    SeparateItemsStrategy,
    create_strategy,
)

VAULT_ID = "vault"


class FlakyStore(MemoryStore):
    """MemoryStore that refuses to create or put selected titles."""

    def __init__(self, broken: set[str]):
        super().__init__({VAULT_ID: "Private"})
        self.broken = broken

    def create(self, item: RemoteItem) -> RemoteItem:
        if item.title in self.broken:
            raise RemoteEntityError(f"create refused for {item.title}")
        return super().create(item)

    def put(self, item: RemoteItem) -> RemoteItem:
        if item.title in self.broken:
            raise RemoteEntityError(f"put refused for {item.title}")
        return super().put(item)


def _calls(store: MemoryStore, op: str) -> list[str]:
    return [target for name, target in store.calls if name == op]


class TestSeparateItemsFetch:
    """SeparateItemsStrategy.fetch_remote_map()."""

    def test_reads_password_items(self, store: MemoryStore):
        store.add(VAULT_ID, "FOO", {"password": "bar"})
        store.add(VAULT_ID, "BAZ", {"password": "hello world"})
        strategy = SeparateItemsStrategy(store, VAULT_ID)
        assert strategy.fetch_remote_map() == {"FOO": "bar", "BAZ": "hello world"}

    def test_ignores_other_categories(self, store: MemoryStore):
        store.add(VAULT_ID, "LOGIN_ITEM", {"password": "x"}, category="LOGIN")
        strategy = SeparateItemsStrategy(store, VAULT_ID)
        assert strategy.fetch_remote_map() == {}

    def test_ignores_items_without_password_field(self, store: MemoryStore):
        store.add(VAULT_ID, "NOTE", {"notes": "x"})
        strategy = SeparateItemsStrategy(store, VAULT_ID)
        assert strategy.fetch_remote_map() == {}

    def test_ignores_titles_that_are_not_keys(self, store: MemoryStore):
        store.add(VAULT_ID, "My Bank Login", {"password": "x"})
        strategy = SeparateItemsStrategy(store, VAULT_ID)
        assert strategy.fetch_remote_map() == {}

    def test_empty_values_skipped_unless_requested(self, store: MemoryStore):
        store.add(VAULT_ID, "EMPTY", {"password": "  "})
        strategy = SeparateItemsStrategy(store, VAULT_ID)
        assert strategy.fetch_remote_map() == {}
        assert strategy.fetch_remote_map(include_empty=True) == {"EMPTY": "  "}


class TestSeparateItemsApply:
    """SeparateItemsStrategy.apply_local_map()."""

    def test_creates_missing_item(self, store: MemoryStore):
        strategy = SeparateItemsStrategy(store, VAULT_ID)
        result = strategy.apply_local_map({"FOO": "bar"})

        assert result.created == ["FOO"]
        assert result.updated == []
        items = list(store.items.values())
        assert len(items) == 1
        assert items[0].title == "FOO"
        assert items[0].field_by_id("password").value == "bar"
        assert items[0].field_by_id("password").field_type == "CONCEALED"

    def test_updates_differing_item(self, store: MemoryStore):
        store.add(VAULT_ID, "FOO", {"password": "old"})
        strategy = SeparateItemsStrategy(store, VAULT_ID)
        result = strategy.apply_local_map({"FOO": "new"})

        assert result.updated == ["FOO"]
        assert _calls(store, "put") == ["FOO"]
        assert strategy.fetch_remote_map() == {"FOO": "new"}

    def test_equal_item_left_alone(self, store: MemoryStore):
        store.add(VAULT_ID, "FOO", {"password": "same"})
        strategy = SeparateItemsStrategy(store, VAULT_ID)
        result = strategy.apply_local_map({"FOO": "same"})

        assert result.unchanged == ["FOO"]
        assert not result.changed
        assert _calls(store, "put") == []

    def test_item_without_password_field_gets_one(self, store: MemoryStore):
        store.add(VAULT_ID, "FOO", {"notes": "x"})
        strategy = SeparateItemsStrategy(store, VAULT_ID)
        result = strategy.apply_local_map({"FOO": "bar"})
        assert result.updated == ["FOO"]
        assert strategy.fetch_remote_map() == {"FOO": "bar"}

    def test_lists_vault_once(self, store: MemoryStore):
        strategy = SeparateItemsStrategy(store, VAULT_ID)
        strategy.apply_local_map({"A": "1", "B": "2", "C": "3"})
        assert len(_calls(store, "list")) == 1

    def test_processes_in_insertion_order(self, store: MemoryStore):
        strategy = SeparateItemsStrategy(store, VAULT_ID)
        result = strategy.apply_local_map({"C": "3", "A": "1", "B": "2"})
        assert result.created == ["C", "A", "B"]
        assert _calls(store, "create") == ["C", "A", "B"]

    def test_per_key_failure_does_not_abort(self):
        store = FlakyStore({"BAD"})
        strategy = SeparateItemsStrategy(store, VAULT_ID)
        result = strategy.apply_local_map({"GOOD1": "1", "BAD": "2", "GOOD2": "3"})

        assert result.created == ["GOOD1", "GOOD2"]
        assert list(result.failed) == ["BAD"]
        assert "create refused" in result.failed["BAD"]
        assert result.partial

    def test_failed_key_named_in_log(self, caplog):
        strategy = SeparateItemsStrategy(FlakyStore({"BAD"}), VAULT_ID)
        with caplog.at_level(logging.ERROR, logger="dotvault"):
            result = strategy.apply_local_map({"BAD": "2"})
        assert "Failed to sync secret 'BAD'" in caplog.text
        assert result.failed["BAD"] == "create refused for BAD"

    def test_empty_map_is_noop(self, store: MemoryStore):
        strategy = SeparateItemsStrategy(store, VAULT_ID)
        result = strategy.apply_local_map({})
        assert not result.changed
        assert store.calls == []


class TestCombinedItem:
    """CombinedItemStrategy fetch/apply."""

    def test_requires_prefix(self, store: MemoryStore):
        with pytest.raises(ConfigurationError):
            CombinedItemStrategy(store, VAULT_ID, "")
        with pytest.raises(ConfigurationError):
            CombinedItemStrategy(store, VAULT_ID, "   ")

    def test_fetch_missing_item_is_empty(self, store: MemoryStore):
        strategy = CombinedItemStrategy(store, VAULT_ID, "myapp")
        assert strategy.fetch_remote_map() == {}

    def test_fetch_fields(self, store: MemoryStore):
        store.add(VAULT_ID, "myapp", {"A": "1", "B": "", "C": "3"})
        strategy = CombinedItemStrategy(store, VAULT_ID, "myapp")
        assert strategy.fetch_remote_map() == {"A": "1", "C": "3"}
        assert strategy.fetch_remote_map(include_empty=True) == {"A": "1", "B": "", "C": "3"}

    def test_create_item_with_all_fields(self, store: MemoryStore):
        strategy = CombinedItemStrategy(store, VAULT_ID, "myapp")
        result = strategy.apply_local_map({"A": "1", "B": "2"})

        assert result.created == ["A", "B"]
        assert _calls(store, "create") == ["myapp"]
        item = next(iter(store.items.values()))
        assert [f.id for f in item.fields] == ["field_A", "field_B"]
        assert {f.section_id for f in item.fields} == {"myapp"}
        assert item.sections[0].id == "myapp"

    def test_single_put_replaces_field_list(self, store: MemoryStore):
        """Remote myapp{A:1}, local {A:1, B:2}: one put, created=[B]."""
        store.add(VAULT_ID, "myapp", {"A": "1"})
        strategy = CombinedItemStrategy(store, VAULT_ID, "myapp")
        result = strategy.apply_local_map({"A": "1", "B": "2"})

        assert result.updated == []
        assert result.created == ["B"]
        assert result.unchanged == ["A"]
        assert _calls(store, "put") == ["myapp"]
        item = next(iter(store.items.values()))
        assert {f.title: f.value for f in item.fields} == {"A": "1", "B": "2"}

    def test_update_classified(self, store: MemoryStore):
        store.add(VAULT_ID, "myapp", {"A": "1"})
        strategy = CombinedItemStrategy(store, VAULT_ID, "myapp")
        result = strategy.apply_local_map({"A": "changed"})
        assert result.updated == ["A"]
        assert result.created == []

    def test_no_write_when_nothing_changed(self, store: MemoryStore):
        store.add(VAULT_ID, "myapp", {"A": "1"})
        strategy = CombinedItemStrategy(store, VAULT_ID, "myapp")
        result = strategy.apply_local_map({"A": "1"})
        assert not result.changed
        assert _calls(store, "put") == []

    def test_remote_only_fields_dropped_on_write(self, store: MemoryStore):
        store.add(VAULT_ID, "myapp", {"A": "1", "OLD": "x"})
        strategy = CombinedItemStrategy(store, VAULT_ID, "myapp")
        strategy.apply_local_map({"A": "2"})
        assert strategy.fetch_remote_map() == {"A": "2"}

    def test_failure_aborts_batch(self):
        store = FlakyStore({"myapp"})
        store.add(VAULT_ID, "myapp", {"A": "1"})
        strategy = CombinedItemStrategy(store, VAULT_ID, "myapp")
        with pytest.raises(RemoteEntityError, match="Failed to sync secrets"):
            strategy.apply_local_map({"A": "2", "B": "3"})
        assert strategy.fetch_remote_map() == {"A": "1"}

    def test_empty_map_creates_nothing(self, store: MemoryStore):
        strategy = CombinedItemStrategy(store, VAULT_ID, "myapp")
        result = strategy.apply_local_map({})
        assert not result.changed
        assert store.items == {}


class TestStrategyFactory:
    """Tests for the create_strategy factory function."""

    def test_creates_separate(self, store: MemoryStore):
        strategy = create_strategy(StorageMode.SEPARATE, store, VAULT_ID)
        assert isinstance(strategy, SeparateItemsStrategy)
        assert strategy.name == "separate"

    def test_creates_combined_from_string(self, store: MemoryStore):
        strategy = create_strategy("combined", store, VAULT_ID, "myapp")
        assert isinstance(strategy, CombinedItemStrategy)
        assert strategy.project_prefix == "myapp"

    def test_unknown_mode(self, store: MemoryStore):
        with pytest.raises(ConfigurationError, match="Unsupported storage mode"):
            create_strategy("sideways", store, VAULT_ID)

    def test_combined_without_prefix(self, store: MemoryStore):
        with pytest.raises(ConfigurationError):
            create_strategy(StorageMode.COMBINED, store, VAULT_ID)
