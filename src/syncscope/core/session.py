"""
SyncScope Session Management.

Wires configuration, logging, the subscription registry and the sync
session into one reconciliation engine, and keeps a report of every
operation run during the session.
"""

from __future__ import annotations

import json
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any

from syncscope.core.config import SyncScopeConfig, load_config
from syncscope.core.engine import SubscriptionEngine
from syncscope.core.logging import SessionLogger, get_logger, setup_logging
from syncscope.core.models import OperationResult, ReconciliationReport
from syncscope.core.registry import (
    JsonFileStore,
    KeyValueStore,
    SubscriptionRegistry,
    resolve_app_id,
)
from syncscope.sync.session import SyncSession, open_session

logger = get_logger(__name__)


@dataclass
class SessionReport:
    """Record of the subscription operations run in one session."""

    session_id: str
    app_id: str
    started_at: datetime
    ended_at: datetime | None = None
    operations: list[dict[str, Any]] = field(default_factory=list)
    errors: list[dict[str, Any]] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "session_id": self.session_id,
            "app_id": self.app_id,
            "started_at": self.started_at.isoformat(),
            "ended_at": self.ended_at.isoformat() if self.ended_at else None,
            "operations": self.operations,
            "errors": self.errors,
            "warnings": self.warnings,
            "summary": {
                "total_operations": len(self.operations),
                "failed_operations": sum(
                    1 for op in self.operations if not op.get("success", True)
                ),
                "total_warnings": len(self.warnings),
            },
        }

    def save(self, path: Path) -> None:
        """Save report to file."""
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            json.dump(self.to_dict(), f, indent=2, default=str)


class Session:
    """
    A SyncScope session against one application's sync session.

    This is the main entry point the CLI drives.
    """

    def __init__(
        self,
        config: SyncScopeConfig | None = None,
        app_id: str | None = None,
        store: KeyValueStore | None = None,
        sync_session: SyncSession | None = None,
        session_id: str | None = None,
    ) -> None:
        self.id = session_id or str(uuid.uuid4())
        self.config = config or load_config()
        self.started_at = datetime.now()

        setup_logging(self.config.logging)

        self.store = store or JsonFileStore(self.config.registry.store_file)
        self.app_id = resolve_app_id(app_id or self.config.sync.app_id, self.store)
        self.registry = SubscriptionRegistry(
            self.store,
            self.app_id,
            persist_retries=self.config.registry.persist_retries,
            persist_backoff_seconds=self.config.registry.persist_backoff_seconds,
        )
        self.sync_session = sync_session or open_session(self.config.sync)
        self.engine = SubscriptionEngine(
            self.sync_session,
            self.registry,
            min_field_length=self.config.registry.min_field_length,
            wait_timeout=self.config.sync.wait_timeout_seconds,
        )

        self.session_logger = SessionLogger(
            self.config.get_session_file(),
            get_logger(f"session.{self.id[:8]}"),
        )
        self._report = SessionReport(
            session_id=self.id,
            app_id=self.app_id,
            started_at=self.started_at,
        )
        self._closed = False

        logger.info("Session started", session_id=self.id, app_id=self.app_id)
        self.session_logger.info("Session started", session_id=self.id, app_id=self.app_id)

    def list_subscriptions(self) -> OperationResult:
        return self._track(self.engine.list_subscriptions())

    def apply_initial_subscriptions(self) -> OperationResult:
        return self._track(self.engine.apply_initial_subscriptions())

    def add_modify_subscription(self, name: str, class_name: str, filter: str) -> OperationResult:
        return self._track(self.engine.add_modify_subscription(name, class_name, filter))

    def remove_subscription(self, name: str | None) -> OperationResult:
        return self._track(self.engine.remove_subscription(name))

    def refresh_subscriptions(self) -> OperationResult:
        return self._track(self.engine.refresh_subscriptions())

    def clear_subscriptions(self) -> OperationResult:
        return self._track(self.engine.clear_subscriptions())

    def reconcile_report(self) -> ReconciliationReport:
        return self.engine.reconcile_report()

    def _track(self, result: OperationResult) -> OperationResult:
        """Track an operation in the session report."""
        if result.skipped:
            return result

        operation_record: dict[str, Any] = {
            "timestamp": datetime.now().isoformat(),
            **result.to_dict(),
        }
        operation_record.pop("data", None)
        self._report.operations.append(operation_record)

        if result.warnings:
            self._report.warnings.extend(result.warnings)

        if result.success:
            self.session_logger.info(
                "Operation completed", operation=result.operation, message=result.message
            )
        else:
            self._report.errors.append(
                {
                    "timestamp": datetime.now().isoformat(),
                    "operation": result.operation,
                    "error": result.message,
                }
            )
            self.session_logger.error(
                "Operation failed", operation=result.operation, error=result.message
            )

        return result

    def close(self) -> Path:
        """Close the session and save reports."""
        report_path = self.config.session_directory / f"report_{self.id[:8]}.json"
        if self._closed:
            return report_path
        self._closed = True
        self._report.ended_at = datetime.now()

        self.session_logger.save()
        self._report.save(report_path)

        logger.info(
            "Session closed",
            session_id=self.id,
            duration_seconds=(self._report.ended_at - self.started_at).total_seconds(),
            report_path=str(report_path),
        )

        return report_path

    def get_report(self) -> SessionReport:
        """Get the current session report."""
        return self._report

    def __enter__(self) -> Session:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()
