"""
SyncScope Core - Subscription reconciliation service layer.

Contains configuration, logging, the persistent subscription registry,
the reconciliation engine and session management.
"""

from syncscope.core.config import SyncScopeConfig
from syncscope.core.engine import SubscriptionEngine
from syncscope.core.logging import get_logger, setup_logging
from syncscope.core.models import EngineState, OperationResult, Subscription
from syncscope.core.registry import SubscriptionRegistry
from syncscope.core.session import Session

__all__ = [
    "SyncScopeConfig",
    "SubscriptionEngine",
    "EngineState",
    "OperationResult",
    "Subscription",
    "SubscriptionRegistry",
    "Session",
    "get_logger",
    "setup_logging",
]
