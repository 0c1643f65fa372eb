"""
SyncScope sync module.

Sync session contract and the local in-process session backend.
"""

from syncscope.sync.session import (
    LocalSyncSession,
    MutableSubscriptionSet,
    QueryCursor,
    SubscriptionSet,
    SyncSession,
    open_session,
)

__all__ = [
    "LocalSyncSession",
    "MutableSubscriptionSet",
    "QueryCursor",
    "SubscriptionSet",
    "SyncSession",
    "open_session",
]
