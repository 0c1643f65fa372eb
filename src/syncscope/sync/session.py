"""
SyncScope sync session layer.

Describes the contract the reconciliation engine needs from a
sync-capable database session, and provides a local in-process backend
that honours it.
"""

from __future__ import annotations

import json
import threading
import time
from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

from syncscope.core.errors import (
    ClassNotFoundError,
    StorageError,
    SyncRejectionError,
    SyncTimeoutError,
)
from syncscope.core.logging import get_logger
from syncscope.core.models import Subscription

if TYPE_CHECKING:
    from syncscope.core.config import SyncConfig

logger = get_logger(__name__)

# Query string of a subscription registered on an unfiltered cursor
MATCH_ALL = "TRUEPREDICATE"


class QueryCursor(Protocol):
    object_type: str
    query_string: str | None

    def filtered(self, query: str) -> QueryCursor: ...


class MutableSubscriptionSet(Protocol):
    def add(self, cursor: QueryCursor, name: str) -> Subscription: ...

    def remove_by_name(self, name: str) -> bool: ...

    def remove_all(self) -> int: ...


class SubscriptionSet(Protocol):
    @property
    def is_empty(self) -> bool: ...

    def __iter__(self) -> Iterator[Subscription]: ...

    def __len__(self) -> int: ...

    def find_by_name(self, name: str) -> Subscription | None: ...

    def update(self, mutator: Callable[[MutableSubscriptionSet], None]) -> None: ...

    def wait_for_synchronization(self, timeout: float | None = None) -> None: ...


class SyncSession(Protocol):
    @property
    def subscriptions(self) -> SubscriptionSet: ...

    def objects(self, class_name: str) -> QueryCursor: ...


@dataclass(frozen=True)
class LocalQuery:
    """Query cursor over one class of the local session's schema."""

    object_type: str
    query_string: str | None = None

    def filtered(self, query: str) -> LocalQuery:
        return LocalQuery(object_type=self.object_type, query_string=query)


class LocalMutableSubscriptionSet:
    """Mutable view handed to ``update`` mutators; edits a staged copy."""

    def __init__(self, staged: dict[str, Subscription]) -> None:
        self._staged = staged

    def add(self, cursor: QueryCursor, name: str) -> Subscription:
        subscription = Subscription(
            name=name,
            object_type=cursor.object_type,
            query_string=cursor.query_string or MATCH_ALL,
        )
        self._staged[name] = subscription
        return subscription

    def remove_by_name(self, name: str) -> bool:
        return self._staged.pop(name, None) is not None

    def remove_all(self) -> int:
        count = len(self._staged)
        self._staged.clear()
        return count


class LocalSubscriptionSet:
    """
    Live subscription set of a local session.

    ``update`` commits a whole batch or nothing. The committed set stays
    pending until ``wait_for_synchronization`` acknowledges it; a rejected
    or timed-out set is rolled back to the last acknowledged one.
    """

    def __init__(
        self,
        initial: Iterable[Subscription] = (),
        rejected_filters: Iterable[str] = (),
        latency_seconds: float = 0.0,
        on_acknowledge: Callable[[list[Subscription]], None] | None = None,
    ) -> None:
        self._live: dict[str, Subscription] = {sub.name: sub for sub in initial}
        self._acknowledged = dict(self._live)
        self._pending = False
        self._lock = threading.RLock()
        self.rejected_filters = set(rejected_filters)
        self.latency_seconds = latency_seconds
        self.update_count = 0
        self._on_acknowledge = on_acknowledge

    @property
    def is_empty(self) -> bool:
        with self._lock:
            return not self._live

    @property
    def is_pending(self) -> bool:
        return self._pending

    def __iter__(self) -> Iterator[Subscription]:
        with self._lock:
            return iter(list(self._live.values()))

    def __len__(self) -> int:
        with self._lock:
            return len(self._live)

    def find_by_name(self, name: str) -> Subscription | None:
        with self._lock:
            return self._live.get(name)

    def update(self, mutator: Callable[[MutableSubscriptionSet], None]) -> None:
        with self._lock:
            self.update_count += 1
            staged = dict(self._live)
            mutator(LocalMutableSubscriptionSet(staged))
            self._live = staged
            self._pending = True

    def wait_for_synchronization(self, timeout: float | None = None) -> None:
        if self.latency_seconds > 0:
            if timeout is not None and timeout < self.latency_seconds:
                time.sleep(timeout)
                with self._lock:
                    self._live = dict(self._acknowledged)
                    self._pending = False
                raise SyncTimeoutError(
                    f"Subscription set not acknowledged within {timeout:g}s"
                )
            time.sleep(self.latency_seconds)

        with self._lock:
            if not self._pending:
                return
            rejected = [
                sub for sub in self._live.values() if sub.query_string in self.rejected_filters
            ]
            if rejected:
                self._live = dict(self._acknowledged)
                self._pending = False
                raise SyncRejectionError(
                    f"Invalid query for subscription {rejected[0].name}: "
                    f"{rejected[0].query_string}"
                )
            self._acknowledged = dict(self._live)
            self._pending = False
            snapshot = list(self._acknowledged.values())

        if self._on_acknowledge is not None:
            self._on_acknowledge(snapshot)


class LocalSyncSession:
    """
    In-process sync session with a fixed schema.

    When ``schema_classes`` is None every class name is accepted. When a
    ``state_file`` is given the acknowledged live set survives restarts.
    """

    def __init__(
        self,
        schema_classes: Iterable[str] | None = None,
        state_file: Path | None = None,
        rejected_filters: Iterable[str] = (),
        latency_seconds: float = 0.0,
        initial: Iterable[Subscription] = (),
    ) -> None:
        self.schema_classes = set(schema_classes) if schema_classes is not None else None
        self.state_file = state_file
        loaded = list(initial) or self._load_state()
        self._subscriptions = LocalSubscriptionSet(
            initial=loaded,
            rejected_filters=rejected_filters,
            latency_seconds=latency_seconds,
            on_acknowledge=self._save_state if state_file else None,
        )

    @property
    def subscriptions(self) -> LocalSubscriptionSet:
        return self._subscriptions

    def objects(self, class_name: str) -> LocalQuery:
        if self.schema_classes is not None and class_name not in self.schema_classes:
            raise ClassNotFoundError(class_name)
        return LocalQuery(object_type=class_name)

    def _load_state(self) -> list[Subscription]:
        if self.state_file is None or not self.state_file.exists():
            return []
        try:
            with open(self.state_file, encoding="utf-8") as handle:
                rows = json.load(handle)
            return [
                Subscription(
                    name=row["name"],
                    object_type=row["objectType"],
                    query_string=row["queryString"],
                )
                for row in rows
            ]
        except (OSError, json.JSONDecodeError, KeyError, TypeError) as exc:
            raise StorageError(f"Cannot read live subscription state {self.state_file}: {exc}") from exc

    def _save_state(self, subscriptions: list[Subscription]) -> None:
        assert self.state_file is not None
        rows = [
            {"name": sub.name, "objectType": sub.object_type, "queryString": sub.query_string}
            for sub in subscriptions
        ]
        self.state_file.parent.mkdir(parents=True, exist_ok=True)
        with open(self.state_file, "w", encoding="utf-8") as handle:
            json.dump(rows, handle, indent=2)
        logger.debug("Saved live subscription state", path=str(self.state_file), count=len(rows))


def open_session(config: SyncConfig) -> LocalSyncSession:
    """Open a sync session for the configured backend."""
    if config.backend == "local":
        return LocalSyncSession(
            schema_classes=config.schema_classes or None,
            state_file=config.state_file,
            rejected_filters=config.rejected_filters,
        )
    raise ValueError(f"Unsupported sync backend: {config.backend}")
