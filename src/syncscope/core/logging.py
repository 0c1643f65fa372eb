"""
SyncScope structured logging.

Provides structured output for debugging and an audit trail of
subscription changes made against the sync server.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any

import structlog
from structlog.types import EventDict, WrappedLogger

if TYPE_CHECKING:
    from syncscope.core.config import LoggingConfig


_configured = False


def add_timestamp(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Add ISO format timestamp to log events."""
    event_dict["timestamp"] = datetime.now().isoformat()
    return event_dict


def add_log_level(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Add log level to event dict."""
    event_dict["level"] = method_name.upper()
    return event_dict


def get_log_file(config: LoggingConfig) -> Path:
    """Daily log file inside the configured log directory."""
    return config.log_directory / f"syncscope_{datetime.now().strftime('%Y%m%d')}.log"


def setup_logging(config: LoggingConfig) -> None:
    """Configure structured logging for SyncScope."""
    global _configured

    if _configured:
        return

    config.log_directory.mkdir(parents=True, exist_ok=True)

    handlers: list[logging.Handler] = []

    if config.console_enabled:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(getattr(logging, config.level))
        handlers.append(console_handler)

    if config.file_enabled:
        file_handler = logging.FileHandler(get_log_file(config), encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        handlers.append(file_handler)

    logging.basicConfig(
        level=logging.DEBUG,
        handlers=handlers,
        format="%(message)s",
    )

    shared_processors: list[structlog.types.Processor] = [
        structlog.stdlib.add_logger_name,
        add_timestamp,
        add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if config.json_format:
        renderers: list[structlog.types.Processor] = [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        renderers = [structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())]

    structlog.configure(
        processors=shared_processors + renderers,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    _configured = True


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name or "syncscope")


class OperationLogger:
    """
    Context manager logging the start and outcome of an engine operation.

    Engine operations report failures as results instead of raising, so a
    failure can also be recorded explicitly with ``fail()``.
    """

    def __init__(
        self,
        operation: str,
        logger: structlog.stdlib.BoundLogger | None = None,
        **context: Any,
    ):
        self.operation = operation
        self.logger = logger or get_logger()
        self.context = context
        self.start_time: datetime | None = None
        self.failure: str | None = None

    def __enter__(self) -> OperationLogger:
        self.start_time = datetime.now()
        self.logger.info(
            f"Starting {self.operation}",
            operation=self.operation,
            **self.context,
        )
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        duration = (datetime.now() - self.start_time).total_seconds() if self.start_time else 0

        if exc_type is not None:
            self.logger.error(
                f"Failed {self.operation}",
                operation=self.operation,
                duration_seconds=duration,
                error_type=exc_type.__name__,
                error=str(exc_val),
                **self.context,
            )
        elif self.failure is not None:
            self.logger.error(
                f"Failed {self.operation}",
                operation=self.operation,
                duration_seconds=duration,
                error=self.failure,
                **self.context,
            )
        else:
            self.logger.info(
                f"Completed {self.operation}",
                operation=self.operation,
                duration_seconds=duration,
                **self.context,
            )

    def fail(self, reason: str) -> None:
        """Mark the operation as failed without raising."""
        self.failure = reason

    def update(self, **additional_context: Any) -> None:
        """Update the operation context."""
        self.context.update(additional_context)


class SessionLogger:
    """Logger that writes to both structlog and a session-specific file."""

    def __init__(self, session_file: Path, logger: structlog.stdlib.BoundLogger | None = None):
        self.session_file = session_file
        self.logger = logger or get_logger()
        self.entries: list[dict[str, Any]] = []
        self.session_file.parent.mkdir(parents=True, exist_ok=True)

    def log(self, level: str, message: str, **kwargs: Any) -> None:
        """Log to both structlog and session file."""
        entry = {
            "timestamp": datetime.now().isoformat(),
            "level": level,
            "message": message,
            **kwargs,
        }
        self.entries.append(entry)

        log_method = getattr(self.logger, level.lower(), self.logger.info)
        log_method(message, **kwargs)

    def info(self, message: str, **kwargs: Any) -> None:
        self.log("INFO", message, **kwargs)

    def warning(self, message: str, **kwargs: Any) -> None:
        self.log("WARNING", message, **kwargs)

    def error(self, message: str, **kwargs: Any) -> None:
        self.log("ERROR", message, **kwargs)

    def save(self) -> None:
        """Save session log to file."""
        with open(self.session_file, "w") as f:
            json.dump(
                {
                    "session_file": str(self.session_file),
                    "entries": self.entries,
                    "summary": {
                        "total_entries": len(self.entries),
                        "errors": sum(1 for e in self.entries if e["level"] == "ERROR"),
                        "warnings": sum(1 for e in self.entries if e["level"] == "WARNING"),
                    },
                },
                f,
                indent=2,
                default=str,
            )
