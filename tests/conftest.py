"""
Pytest configuration and fixtures for SyncScope tests.
"""

import json
import sys
import tempfile
from pathlib import Path
from typing import Generator

import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

APP_ID = "app-test"
SCHEMA = ["Task", "Project", "Item"]


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def sample_config(temp_dir: Path) -> "SyncScopeConfig":
    """Create a sample configuration rooted in a temporary directory."""
    from syncscope.core.config import SyncScopeConfig

    config = SyncScopeConfig.model_validate(
        {
            "logging": {"console_enabled": False, "log_directory": str(temp_dir / "logs")},
            "sync": {
                "app_id": APP_ID,
                "state_file": str(temp_dir / "live.json"),
                "schema_classes": SCHEMA,
            },
            "registry": {
                "store_file": str(temp_dir / "registry.json"),
                "persist_backoff_seconds": 0,
            },
            "ui": {"pause_seconds": 0},
            "session_directory": str(temp_dir / "sessions"),
        }
    )
    config.ensure_directories()
    return config


@pytest.fixture
def config_file(sample_config: "SyncScopeConfig", temp_dir: Path) -> Path:
    """Write the sample configuration to disk for CLI tests."""
    path = temp_dir / "config.json"
    sample_config.save(path)
    return path


@pytest.fixture
def store() -> "MemoryStore":
    from syncscope.core.registry import MemoryStore

    return MemoryStore({"appId": APP_ID})


@pytest.fixture
def registry(store: "MemoryStore") -> "SubscriptionRegistry":
    from syncscope.core.registry import SubscriptionRegistry

    return SubscriptionRegistry(store, APP_ID, persist_backoff_seconds=0)


@pytest.fixture
def sync_session() -> "LocalSyncSession":
    from syncscope.sync.session import LocalSyncSession

    return LocalSyncSession(schema_classes=SCHEMA)


@pytest.fixture
def engine(sync_session: "LocalSyncSession", registry: "SubscriptionRegistry") -> "SubscriptionEngine":
    from syncscope.core.engine import SubscriptionEngine

    return SubscriptionEngine(sync_session, registry)


def save_record(store: "MemoryStore", subscriptions: dict[str, tuple[str, str]]) -> None:
    """Store a registry record of name -> (class, filter) for APP_ID."""
    store.set_value(
        APP_ID,
        {
            "subscriptions": {
                name: {"class": class_name, "filter": query}
                for name, (class_name, query) in subscriptions.items()
            }
        },
    )


def read_json(path: Path) -> object:
    with open(path) as handle:
        return json.load(handle)


def pytest_configure(config: pytest.Config) -> None:
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "slow: Slow running tests")
