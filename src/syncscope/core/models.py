"""
SyncScope data models.

Defines the subscription types shared by the registry, the sync session
and the reconciliation engine.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum, auto
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class EngineState(Enum):
    """Reconciliation engine states for one sync session."""

    UNINITIALIZED = auto()  # No operation has settled the session yet
    SETTLED = auto()  # Last change acknowledged by the server
    MUTATING = auto()  # A batch is submitted and awaiting acknowledgment
    FAILED = auto()  # Last mutation failed, live set unchanged


@dataclass(frozen=True)
class Subscription:
    """A named, server-evaluated query over one database class."""

    name: str
    object_type: str
    query_string: str

    def to_row(self) -> dict[str, str]:
        """Display record in Name/Table/Query form."""
        return {
            "Name": self.name,
            "Table": self.object_type,
            "Query": self.query_string,
        }

    def matches(self, entry: SubscriptionEntry) -> bool:
        return self.object_type == entry.class_name and self.query_string == entry.filter


class SubscriptionEntry(BaseModel):
    """Desired-state definition of one subscription as stored in the registry."""

    model_config = ConfigDict(populate_by_name=True)

    class_name: str = Field(alias="class")
    filter: str


class RegistryRecord(BaseModel):
    """Persisted mirror of the desired subscriptions for one application."""

    subscriptions: dict[str, SubscriptionEntry] = Field(default_factory=dict)

    def to_store(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


@dataclass
class OperationResult:
    """Terminal status of one engine operation, ready for display."""

    success: bool
    operation: str
    message: str = ""
    data: list[dict[str, str]] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    skipped: bool = False
    start_time: datetime | None = None
    end_time: datetime | None = None

    @property
    def duration_seconds(self) -> float | None:
        if self.start_time and self.end_time:
            return (self.end_time - self.start_time).total_seconds()
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "operation": self.operation,
            "message": self.message,
            "data": self.data,
            "warnings": self.warnings,
            "skipped": self.skipped,
            "duration_seconds": self.duration_seconds,
        }


@dataclass
class ReconciliationReport:
    """Differences between the registry record and the live subscription set."""

    missing: list[str] = field(default_factory=list)
    extra: list[str] = field(default_factory=list)
    changed: list[str] = field(default_factory=list)

    @property
    def in_sync(self) -> bool:
        return not (self.missing or self.extra or self.changed)

    def to_dict(self) -> dict[str, Any]:
        return {
            "in_sync": self.in_sync,
            "missing": self.missing,
            "extra": self.extra,
            "changed": self.changed,
        }
