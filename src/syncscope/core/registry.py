"""
SyncScope persistent subscription registry.

Keeps the desired subscription set for each application identifier in a
durable key-value store so the live set can be rebuilt across runs.
"""

from __future__ import annotations

import json
import os
import tempfile
import time
from collections.abc import Callable
from pathlib import Path
from typing import Any, Protocol

from pydantic import ValidationError as RecordValidationError

from syncscope.core.errors import ConfigurationError, StorageError
from syncscope.core.logging import get_logger
from syncscope.core.models import RegistryRecord, SubscriptionEntry

logger = get_logger(__name__)

APP_ID_KEY = "appId"


class KeyValueStore(Protocol):
    """Minimal durable key-value contract the registry relies on."""

    def get_value(self, key: str) -> Any | None: ...

    def set_value(self, key: str, value: Any) -> None: ...


class MemoryStore:
    """Dict-backed store for tests and embedding."""

    def __init__(self, initial: dict[str, Any] | None = None) -> None:
        self._data: dict[str, Any] = json.loads(json.dumps(initial or {}))

    def get_value(self, key: str) -> Any | None:
        value = self._data.get(key)
        return json.loads(json.dumps(value)) if value is not None else None

    def set_value(self, key: str, value: Any) -> None:
        self._data[key] = json.loads(json.dumps(value))


class JsonFileStore:
    """Store keeping every key in a single JSON document on disk."""

    def __init__(self, path: Path) -> None:
        self.path = path

    def _read_document(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, encoding="utf-8") as handle:
                data = json.load(handle)
        except (OSError, json.JSONDecodeError) as exc:
            raise StorageError(f"Cannot read registry store {self.path}: {exc}") from exc
        if not isinstance(data, dict):
            raise StorageError(f"Registry store {self.path} is not a JSON object")
        return data

    def get_value(self, key: str) -> Any | None:
        return self._read_document().get(key)

    def set_value(self, key: str, value: Any) -> None:
        document = self._read_document()
        document[key] = value
        tmp_name: str | None = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp"
            )
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(document, handle, indent=2)
            os.replace(tmp_name, self.path)
        except OSError as exc:
            if tmp_name is not None and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise StorageError(f"Cannot write registry store {self.path}: {exc}") from exc


def resolve_app_id(configured: str | None, store: KeyValueStore) -> str:
    """Return the configured application id, falling back to the store's ``appId`` key."""
    if configured:
        return configured
    stored = store.get_value(APP_ID_KEY)
    if isinstance(stored, str) and stored:
        return stored
    raise ConfigurationError(
        "No application id configured. Pass --app-id or set sync.app_id in the config file."
    )


class SubscriptionRegistry:
    """Desired-state mirror of the live subscription set, keyed by application id."""

    def __init__(
        self,
        store: KeyValueStore,
        app_id: str,
        persist_retries: int = 3,
        persist_backoff_seconds: float = 0.2,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.store = store
        self.app_id = app_id
        self.persist_retries = max(1, persist_retries)
        self.persist_backoff_seconds = persist_backoff_seconds
        self._sleep = sleep

    def load_record(self) -> RegistryRecord:
        """Load the record for this application, creating an empty one on first use."""
        raw = self._read()
        if raw is None:
            record = RegistryRecord()
            self.save_record(record)
            logger.info("Created subscription registry record", app_id=self.app_id)
            return record
        try:
            return RegistryRecord.model_validate(raw)
        except RecordValidationError as exc:
            raise StorageError(f"Registry record for {self.app_id} is malformed: {exc}") from exc

    def saved_subscriptions(self) -> dict[str, SubscriptionEntry]:
        return self.load_record().subscriptions

    def set_subscription(self, name: str, class_name: str, filter: str) -> RegistryRecord:
        record = self.load_record()
        record.subscriptions[name] = SubscriptionEntry(class_name=class_name, filter=filter)
        self.save_record(record)
        return record

    def delete_subscription(self, name: str) -> bool:
        """Remove ``name`` from the record. Returns False if it was not saved."""
        record = self.load_record()
        if record.subscriptions.pop(name, None) is None:
            return False
        self.save_record(record)
        return True

    def save_record(self, record: RegistryRecord) -> None:
        """Persist ``record``, retrying with linear backoff before giving up."""
        payload = record.to_store()
        last_error: Exception | None = None

        for attempt in range(1, self.persist_retries + 1):
            try:
                self.store.set_value(self.app_id, payload)
                return
            except (StorageError, OSError) as exc:
                last_error = exc
                logger.warning(
                    "Registry write failed",
                    app_id=self.app_id,
                    attempt=attempt,
                    retries=self.persist_retries,
                    error=str(exc),
                )
                if attempt < self.persist_retries:
                    self._sleep(self.persist_backoff_seconds * attempt)

        raise StorageError(
            f"Could not persist registry record for {self.app_id}: {last_error}"
        ) from last_error

    def _read(self) -> Any | None:
        try:
            return self.store.get_value(self.app_id)
        except OSError as exc:
            raise StorageError(f"Cannot read registry record for {self.app_id}: {exc}") from exc
