"""
SyncScope - Console tool for managing sync subscriptions.

Inspects, adds, removes and re-applies the named query subscriptions of a
sync-enabled database, keeping a local registry of them across runs.
"""

__version__ = "1.0.0"
__author__ = "SyncScope Team"

from syncscope.core.config import SyncScopeConfig
from syncscope.core.session import Session

__all__ = ["SyncScopeConfig", "Session", "__version__"]
