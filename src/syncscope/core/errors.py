"""
SyncScope error taxonomy.

Every failure the reconciliation engine can meet is one of these. The engine
catches them at its boundary and turns them into failed operation results.
"""

from __future__ import annotations


class SyncScopeError(Exception):
    """Base class for all SyncScope errors."""


class ConfigurationError(SyncScopeError):
    """Raised when required configuration is missing or inconsistent."""


class ValidationError(SyncScopeError):
    """Raised for malformed user input (e.g. too-short subscription fields)."""


class ClassNotFoundError(SyncScopeError):
    """Raised when a query targets a class the schema does not know."""

    def __init__(self, class_name: str) -> None:
        super().__init__(f"Class {class_name} doesn't exist!")
        self.class_name = class_name


class SyncRejectionError(SyncScopeError):
    """Raised when the server rejects a subscription set change."""


class SyncTimeoutError(SyncRejectionError):
    """Raised when a bounded synchronization wait expires."""


class StorageError(SyncScopeError):
    """Raised when the registry store cannot be read or written."""


class OperationInProgressError(SyncScopeError):
    """Raised when an engine operation starts while another one is running."""
