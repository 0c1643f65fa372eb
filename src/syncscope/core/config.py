"""
SyncScope configuration management.

Provides centralized configuration with validation using Pydantic.
"""

from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, field_validator

DEFAULT_HOME = Path.home() / ".syncscope"


class LoggingConfig(BaseModel):
    """Configuration for structured logging."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    file_enabled: bool = True
    console_enabled: bool = True
    json_format: bool = False
    log_directory: Path = Field(default_factory=lambda: DEFAULT_HOME / "logs")

    @field_validator("log_directory", mode="before")
    @classmethod
    def expand_path(cls, v: str | Path) -> Path:
        return Path(v).expanduser().resolve()


class SyncConfig(BaseModel):
    """Configuration for the sync session backend."""

    app_id: str | None = None
    backend: Literal["local"] = "local"
    state_file: Path | None = Field(default_factory=lambda: DEFAULT_HOME / "live_subscriptions.json")
    schema_classes: list[str] = Field(default_factory=list)
    wait_timeout_seconds: float | None = Field(default=None, gt=0)
    rejected_filters: list[str] = Field(default_factory=list)

    @field_validator("state_file", mode="before")
    @classmethod
    def expand_state_file(cls, v: str | Path | None) -> Path | None:
        if v is None:
            return None
        return Path(v).expanduser().resolve()


class RegistryConfig(BaseModel):
    """Configuration for the persistent subscription registry."""

    store_file: Path = Field(default_factory=lambda: DEFAULT_HOME / "registry.json")
    min_field_length: int = Field(default=2, ge=0)
    persist_retries: int = Field(default=3, ge=1, le=10)
    persist_backoff_seconds: float = Field(default=0.2, ge=0)

    @field_validator("store_file", mode="before")
    @classmethod
    def expand_store_file(cls, v: str | Path) -> Path:
        return Path(v).expanduser().resolve()


class UIConfig(BaseModel):
    """Configuration for the interactive shell."""

    pause_seconds: float = Field(default=2.0, ge=0, le=30)
    show_banner: bool = True


class SyncScopeConfig(BaseModel):
    """Main SyncScope configuration."""

    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    sync: SyncConfig = Field(default_factory=SyncConfig)
    registry: RegistryConfig = Field(default_factory=RegistryConfig)
    ui: UIConfig = Field(default_factory=UIConfig)
    session_directory: Path = Field(default_factory=lambda: DEFAULT_HOME / "sessions")

    @field_validator("session_directory", mode="before")
    @classmethod
    def expand_session_path(cls, v: str | Path) -> Path:
        return Path(v).expanduser().resolve()

    @classmethod
    def load(cls, config_path: Path | None = None) -> SyncScopeConfig:
        """Load configuration from file or create default."""
        if config_path is None:
            config_path = DEFAULT_HOME / "config.json"

        if config_path.exists():
            with open(config_path) as f:
                data = json.load(f)
            return cls.model_validate(data)

        return cls()

    def save(self, config_path: Path | None = None) -> None:
        """Save configuration to file."""
        if config_path is None:
            config_path = DEFAULT_HOME / "config.json"

        config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(config_path, "w") as f:
            json.dump(self.model_dump(mode="json"), f, indent=2, default=str)

    def ensure_directories(self) -> None:
        """Create all required directories."""
        self.logging.log_directory.mkdir(parents=True, exist_ok=True)
        self.session_directory.mkdir(parents=True, exist_ok=True)
        self.registry.store_file.parent.mkdir(parents=True, exist_ok=True)
        if self.sync.state_file:
            self.sync.state_file.parent.mkdir(parents=True, exist_ok=True)

    def get_session_file(self) -> Path:
        """Get path for a new session log file."""
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        return self.session_directory / f"session_{timestamp}.json"


def get_default_config() -> SyncScopeConfig:
    """Get the default configuration."""
    return SyncScopeConfig()


def load_config(config_path: Path | None = None) -> SyncScopeConfig:
    """Load or create configuration."""
    config = SyncScopeConfig.load(config_path)
    config.ensure_directories()
    return config
