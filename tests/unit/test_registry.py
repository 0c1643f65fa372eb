"""
Tests for syncscope.core.registry module.
"""

from pathlib import Path
from typing import Any

import pytest

from conftest import APP_ID, save_record
from syncscope.core.errors import ConfigurationError, StorageError
from syncscope.core.registry import (
    JsonFileStore,
    MemoryStore,
    SubscriptionRegistry,
    resolve_app_id,
)


class FlakyStore(MemoryStore):
    """Memory store whose writes fail a given number of times."""

    def __init__(self, failures: int, initial: dict[str, Any] | None = None) -> None:
        super().__init__(initial)
        self.failures = failures
        self.attempts = 0

    def set_value(self, key: str, value: Any) -> None:
        self.attempts += 1
        if self.attempts <= self.failures:
            raise StorageError("disk full")
        super().set_value(key, value)


class TestMemoryStore:
    """Tests for MemoryStore."""

    def test_values_are_copied(self) -> None:
        store = MemoryStore()
        value = {"subscriptions": {}}
        store.set_value("k", value)
        value["subscriptions"]["x"] = 1
        assert store.get_value("k") == {"subscriptions": {}}

    def test_missing_key(self) -> None:
        assert MemoryStore().get_value("missing") is None


class TestJsonFileStore:
    """Tests for JsonFileStore."""

    def test_set_and_get(self, temp_dir: Path) -> None:
        store = JsonFileStore(temp_dir / "nested" / "registry.json")
        store.set_value("appId", "todo")
        store.set_value("todo", {"subscriptions": {}})

        reopened = JsonFileStore(temp_dir / "nested" / "registry.json")
        assert reopened.get_value("appId") == "todo"
        assert reopened.get_value("todo") == {"subscriptions": {}}

    def test_missing_file(self, temp_dir: Path) -> None:
        assert JsonFileStore(temp_dir / "none.json").get_value("appId") is None

    def test_corrupt_file(self, temp_dir: Path) -> None:
        path = temp_dir / "registry.json"
        path.write_text("{not json")
        with pytest.raises(StorageError):
            JsonFileStore(path).get_value("appId")

    def test_non_object_document(self, temp_dir: Path) -> None:
        path = temp_dir / "registry.json"
        path.write_text("[1, 2]")
        with pytest.raises(StorageError):
            JsonFileStore(path).get_value("appId")

    def test_failed_write_leaves_no_temp_file(
        self, temp_dir: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        def failing_replace(src, dst):
            raise OSError("device busy")

        monkeypatch.setattr("syncscope.core.registry.os.replace", failing_replace)
        store = JsonFileStore(temp_dir / "registry.json")

        with pytest.raises(StorageError, match="device busy"):
            store.set_value("appId", "todo")

        assert list(temp_dir.iterdir()) == []


class TestResolveAppId:
    """Tests for resolve_app_id."""

    def test_configured_wins(self, store: MemoryStore) -> None:
        assert resolve_app_id("other-app", store) == "other-app"

    def test_falls_back_to_store(self, store: MemoryStore) -> None:
        assert resolve_app_id(None, store) == APP_ID

    def test_missing(self) -> None:
        with pytest.raises(ConfigurationError):
            resolve_app_id(None, MemoryStore())


class TestSubscriptionRegistry:
    """Tests for SubscriptionRegistry."""

    def test_record_created_lazily(self, registry: SubscriptionRegistry, store: MemoryStore) -> None:
        assert store.get_value(APP_ID) is None
        assert registry.saved_subscriptions() == {}
        assert store.get_value(APP_ID) == {"subscriptions": {}}

    def test_set_subscription(self, registry: SubscriptionRegistry, store: MemoryStore) -> None:
        registry.set_subscription("open", "Task", "done == false")
        assert store.get_value(APP_ID) == {
            "subscriptions": {"open": {"class": "Task", "filter": "done == false"}}
        }

    def test_set_overwrites_by_name(self, registry: SubscriptionRegistry) -> None:
        registry.set_subscription("open", "Task", "done == false")
        registry.set_subscription("open", "Task", "priority > 2")
        saved = registry.saved_subscriptions()
        assert list(saved) == ["open"]
        assert saved["open"].filter == "priority > 2"

    def test_delete_subscription(self, registry: SubscriptionRegistry, store: MemoryStore) -> None:
        save_record(store, {"open": ("Task", "done == false"), "all": ("Item", "TRUEPREDICATE")})
        assert registry.delete_subscription("open") is True
        assert list(registry.saved_subscriptions()) == ["all"]

    def test_delete_unknown_is_noop(self, registry: SubscriptionRegistry) -> None:
        assert registry.delete_subscription("ghost") is False

    def test_records_are_per_app(self, store: MemoryStore) -> None:
        SubscriptionRegistry(store, "app-a").set_subscription("open", "Task", "done == false")
        assert SubscriptionRegistry(store, "app-b").saved_subscriptions() == {}

    def test_malformed_record(self, registry: SubscriptionRegistry, store: MemoryStore) -> None:
        store.set_value(APP_ID, {"subscriptions": {"open": {"filter": "x"}}})
        with pytest.raises(StorageError):
            registry.load_record()

    def test_write_retried(self) -> None:
        store = FlakyStore(failures=2, initial={APP_ID: {"subscriptions": {}}})
        delays: list[float] = []
        registry = SubscriptionRegistry(
            store, APP_ID, persist_retries=3, persist_backoff_seconds=0.5, sleep=delays.append
        )

        registry.set_subscription("open", "Task", "done == false")

        assert store.attempts == 3
        assert delays == [0.5, 1.0]
        assert "open" in store.get_value(APP_ID)["subscriptions"]

    def test_write_gives_up(self) -> None:
        store = FlakyStore(failures=10)
        registry = SubscriptionRegistry(
            store, APP_ID, persist_retries=2, sleep=lambda _: None
        )

        with pytest.raises(StorageError, match="Could not persist"):
            registry.load_record()
        assert store.attempts == 2
