"""
SyncScope CLI Module.

Provides command-line interface for SyncScope operations.
"""

from syncscope.cli.main import main, cli

__all__ = ["main", "cli"]
