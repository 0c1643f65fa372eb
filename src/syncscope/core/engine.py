"""
SyncScope reconciliation engine.

Keeps the live subscription set of a sync session and the persisted
registry record in agreement. Every mutating operation submits one atomic
batch, waits for the server to acknowledge it and only then updates the
registry. Operations never raise; they return an OperationResult.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from datetime import datetime
from typing import Any

from syncscope.core.errors import (
    OperationInProgressError,
    StorageError,
    SyncScopeError,
    ValidationError,
)
from syncscope.core.logging import OperationLogger, get_logger
from syncscope.core.models import (
    EngineState,
    OperationResult,
    ReconciliationReport,
    RegistryRecord,
    Subscription,
    SubscriptionEntry,
)
from syncscope.core.registry import SubscriptionRegistry
from syncscope.sync.session import MutableSubscriptionSet, QueryCursor, SyncSession

logger = get_logger(__name__)

Mutator = Callable[[MutableSubscriptionSet], None]


class SubscriptionEngine:
    """Reconciles the registry's desired subscriptions with a session's live set."""

    def __init__(
        self,
        sync_session: SyncSession,
        registry: SubscriptionRegistry,
        min_field_length: int = 2,
        wait_timeout: float | None = None,
    ) -> None:
        self.sync_session = sync_session
        self.registry = registry
        self.min_field_length = min_field_length
        self.wait_timeout = wait_timeout
        self._state = EngineState.UNINITIALIZED
        self._lock = threading.Lock()

    @property
    def state(self) -> EngineState:
        return self._state

    # Read-only operations

    def live_subscriptions(self) -> list[Subscription]:
        subscriptions = self.sync_session.subscriptions
        if subscriptions.is_empty:
            return []
        return list(subscriptions)

    def list_subscriptions(self) -> OperationResult:
        """Live subscriptions as Name/Table/Query rows, as reported by the server."""
        result = OperationResult(success=True, operation="list subscriptions", start_time=datetime.now())
        try:
            result.data = [sub.to_row() for sub in self.live_subscriptions()]
            result.message = f"{len(result.data)} live subscription(s)"
        except Exception as exc:
            logger.error("Listing subscriptions failed", error=str(exc))
            result.success = False
            result.message = str(exc)
        result.end_time = datetime.now()
        return result

    def reconcile_report(self) -> ReconciliationReport:
        """Compare the registry record with the live set without changing either."""
        saved = self.registry.saved_subscriptions()
        live = {sub.name: sub for sub in self.live_subscriptions()}

        report = ReconciliationReport()
        for name, entry in saved.items():
            if name not in live:
                report.missing.append(name)
            elif not live[name].matches(entry):
                report.changed.append(name)
        report.extra = [name for name in live if name not in saved]
        return report

    # Mutating operations

    def apply_initial_subscriptions(self) -> OperationResult:
        """Register the saved subscriptions if the live set is empty, then settle."""
        return self._run("apply initial subscriptions", self._apply_saved)

    def add_modify_subscription(self, name: str, class_name: str, filter: str) -> OperationResult:
        """Add a subscription, or overwrite the one with the same name."""
        try:
            self._validate_fields(name=name, class_name=class_name, filter=filter)
        except ValidationError as exc:
            logger.debug("Ignoring add with invalid input", reason=str(exc))
            return OperationResult(success=True, operation="add subscription", skipped=True)

        def body(result: OperationResult) -> None:
            cursor = self.sync_session.objects(class_name)
            self.registry.load_record()

            def mutator(mutable: MutableSubscriptionSet) -> None:
                mutable.add(cursor.filtered(filter), name=name)

            self._commit(mutator)
            self._persist(lambda: self.registry.set_subscription(name, class_name, filter))
            result.message = f"Subscription {name} added"

        return self._run("add subscription", body, subscription=name, class_name=class_name)

    def remove_subscription(self, name: str | None) -> OperationResult:
        """Remove a live subscription by name; ``None`` means the caller cancelled."""
        if not name:
            return OperationResult(success=True, operation="remove subscription", skipped=True)

        def body(result: OperationResult) -> None:
            self.registry.load_record()

            if self.sync_session.subscriptions.find_by_name(name) is None:
                warning = f"Subscription {name} is not in the live set"
                logger.warning("Removing unknown subscription", subscription=name)
                result.warnings.append(warning)
            else:
                self._commit(lambda mutable: mutable.remove_by_name(name))

            self._persist(lambda: self.registry.delete_subscription(name))
            result.message = f"Subscription {name} removed"

        return self._run("remove subscription", body, subscription=name)

    def clear_subscriptions(self) -> OperationResult:
        """Remove every live subscription and forget them in the registry."""

        def body(result: OperationResult) -> None:
            self.registry.load_record()
            removed = len(self.live_subscriptions())
            if removed:
                self._submit(lambda mutable: mutable.remove_all())
            self._synchronize()
            self._persist(lambda: self.registry.save_record(RegistryRecord()))
            result.message = f"Removed {removed} subscription(s)"

        return self._run("clear subscriptions", body)

    def refresh_subscriptions(self) -> OperationResult:
        """Drop the live set and rebuild it from the registry record."""

        def body(result: OperationResult) -> None:
            saved = self.registry.saved_subscriptions()
            cursors = self._resolve_cursors(saved)

            if not self.sync_session.subscriptions.is_empty:
                self._submit(lambda mutable: mutable.remove_all())
            self._apply_saved(result, saved=saved, cursors=cursors)
            result.message = "Subscriptions refreshed!"

        return self._run("refresh subscriptions", body)

    # Internals

    def _validate_fields(self, **fields: str | None) -> None:
        for field_name, value in fields.items():
            if len(value or "") < self.min_field_length:
                raise ValidationError(
                    f"{field_name} must be at least {self.min_field_length} characters"
                )

    def _apply_saved(
        self,
        result: OperationResult,
        saved: dict[str, SubscriptionEntry] | None = None,
        cursors: dict[str, QueryCursor] | None = None,
    ) -> None:
        if not self.sync_session.subscriptions.is_empty:
            self._synchronize()
            result.message = "Live subscriptions already present"
            return

        if saved is None:
            saved = self.registry.saved_subscriptions()
        if not saved:
            self._synchronize()
            result.message = "No saved subscriptions to apply"
            return

        if cursors is None:
            cursors = self._resolve_cursors(saved)

        def mutator(mutable: MutableSubscriptionSet) -> None:
            for name, entry in saved.items():
                mutable.add(cursors[entry.class_name].filtered(entry.filter), name=name)

        self._commit(mutator)
        result.message = f"Applied {len(saved)} saved subscription(s)"

    def _resolve_cursors(self, saved: dict[str, SubscriptionEntry]) -> dict[str, QueryCursor]:
        # Resolve every class first so an unknown one aborts before any mutation
        return {
            entry.class_name: self.sync_session.objects(entry.class_name)
            for entry in saved.values()
        }

    def _submit(self, mutator: Mutator) -> None:
        self._state = EngineState.MUTATING
        try:
            self.sync_session.subscriptions.update(mutator)
        except Exception:
            self._state = EngineState.FAILED
            raise

    def _synchronize(self) -> None:
        try:
            self.sync_session.subscriptions.wait_for_synchronization(timeout=self.wait_timeout)
        except Exception:
            self._state = EngineState.FAILED
            raise
        self._state = EngineState.SETTLED

    def _commit(self, mutator: Mutator) -> None:
        self._submit(mutator)
        self._synchronize()

    def _persist(self, action: Callable[[], object]) -> None:
        try:
            action()
        except StorageError as exc:
            logger.error(
                "Registry out of date after confirmed live change",
                app_id=self.registry.app_id,
                error=str(exc),
            )
            raise StorageError(
                f"Live subscriptions were updated but the registry could not be saved: {exc}. "
                "The live set is authoritative; repeat the operation to persist it."
            ) from exc

    def _run(
        self,
        operation: str,
        body: Callable[[OperationResult], None],
        **context: Any,
    ) -> OperationResult:
        result = OperationResult(success=True, operation=operation, start_time=datetime.now())

        with OperationLogger(operation, logger, **context) as op_log:
            try:
                if not self._lock.acquire(blocking=False):
                    raise OperationInProgressError(
                        f"Cannot {operation}: another subscription operation is in progress"
                    )
                try:
                    body(result)
                finally:
                    self._lock.release()
            except SyncScopeError as exc:
                result.success = False
                result.message = str(exc)
                op_log.fail(result.message)
            except Exception as exc:
                result.success = False
                result.message = str(exc) or type(exc).__name__
                op_log.fail(result.message)

        result.end_time = datetime.now()
        return result
