"""
Structured logging configuration for certscope.

Provides JSON and human-readable formatters for the certscope logger
tree, plus an InventoryLogger wrapper that emits collector lifecycle
events with persistent context fields.
"""

from __future__ import annotations

import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any, TextIO

LOGGER_ROOT = "certscope"

# LogRecord attributes that are not user-supplied extra fields
_RESERVED_ATTRS = frozenset({
    "name",
    "msg",
    "args",
    "created",
    "filename",
    "funcName",
    "levelname",
    "levelno",
    "lineno",
    "module",
    "msecs",
    "pathname",
    "process",
    "processName",
    "relativeCreated",
    "stack_info",
    "exc_info",
    "exc_text",
    "thread",
    "threadName",
    "taskName",
    "message",
})


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class StructuredFormatter(logging.Formatter):
    """
    Formatter that outputs one JSON object per log line.

    Extra fields passed through `extra=` (collector name, item identity,
    counts) become top-level keys.
    """

    def __init__(
        self,
        include_timestamp: bool = True,
        include_logger: bool = True,
        include_location: bool = False,
        extra_fields: dict[str, Any] | None = None,
    ):
        """
        Initialize structured formatter.

        Args:
            include_timestamp: Include timestamp in output
            include_logger: Include logger name in output
            include_location: Include file/line location
            extra_fields: Additional fields to include in every log
        """
        super().__init__()
        self.include_timestamp = include_timestamp
        self.include_logger = include_logger
        self.include_location = include_location
        self.extra_fields = extra_fields or {}

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data: dict[str, Any] = {}

        if self.include_timestamp:
            log_data["timestamp"] = _utc_now().isoformat().replace("+00:00", "Z")

        log_data["level"] = record.levelname.lower()

        if self.include_logger:
            log_data["logger"] = record.name

        log_data["message"] = record.getMessage()

        if self.include_location:
            log_data["location"] = {
                "file": record.pathname,
                "line": record.lineno,
                "function": record.funcName,
            }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS and not key.startswith("_"):
                log_data[key] = value

        log_data.update(self.extra_fields)

        return json.dumps(log_data, default=str)


class HumanReadableFormatter(logging.Formatter):
    """
    Formatter that outputs human-readable log lines.

    Useful for local runs from a terminal.
    """

    COLORS = {
        "DEBUG": "\033[36m",  # Cyan
        "INFO": "\033[32m",  # Green
        "WARNING": "\033[33m",  # Yellow
        "ERROR": "\033[31m",  # Red
        "CRITICAL": "\033[35m",  # Magenta
    }
    RESET = "\033[0m"

    def __init__(self, use_colors: bool = True, include_timestamp: bool = True):
        """
        Initialize human-readable formatter.

        Args:
            use_colors: Use ANSI colors when writing to a terminal
            include_timestamp: Include timestamp in output
        """
        super().__init__()
        self.use_colors = use_colors and sys.stderr.isatty()
        self.include_timestamp = include_timestamp

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as text."""
        parts = []

        if self.include_timestamp:
            parts.append(f"[{_utc_now().strftime('%Y-%m-%d %H:%M:%S')}]")

        level = record.levelname
        if self.use_colors and level in self.COLORS:
            level = f"{self.COLORS[level]}{level}{self.RESET}"
        parts.append(f"{level:>8}")

        parts.append(f"{record.name}:")
        parts.append(record.getMessage())

        output = " ".join(parts)

        if record.exc_info:
            output += "\n" + self.formatException(record.exc_info)

        return output


class InventoryLogger:
    """
    Wrapper around a standard logger for inventory runs.

    Carries persistent context (environment, group, run id) into every
    record and provides the collector lifecycle events.
    """

    def __init__(self, name: str, level: int | None = None):
        """
        Initialize the logger.

        Args:
            name: Logger name
            level: Log level (default: inherit from the certscope logger)
        """
        self.logger = logging.getLogger(name)
        if level is not None:
            self.logger.setLevel(level)
        self._context: dict[str, Any] = {}

    @property
    def context(self) -> dict[str, Any]:
        return dict(self._context)

    def set_context(self, **kwargs: Any) -> None:
        """Set persistent context fields for all logs."""
        self._context.update(kwargs)

    def clear_context(self) -> None:
        """Clear context fields."""
        self._context.clear()

    def _log(
        self,
        level: int,
        message: str,
        exc_info: bool = False,
        **kwargs: Any,
    ) -> None:
        extra = {**self._context, **kwargs}
        self.logger.log(level, message, exc_info=exc_info, extra=extra)

    def debug(self, message: str, **kwargs: Any) -> None:
        self._log(logging.DEBUG, message, **kwargs)

    def info(self, message: str, **kwargs: Any) -> None:
        self._log(logging.INFO, message, **kwargs)

    def warning(self, message: str, **kwargs: Any) -> None:
        self._log(logging.WARNING, message, **kwargs)

    def error(self, message: str, exc_info: bool = False, **kwargs: Any) -> None:
        self._log(logging.ERROR, message, exc_info=exc_info, **kwargs)

    def collector_started(self, collector_name: str) -> None:
        """Log collector start event."""
        self.debug(
            f"Collector {collector_name} started",
            event_type="collector.started",
            collector_name=collector_name,
        )

    def collector_completed(
        self,
        collector_name: str,
        record_count: int,
        skipped_count: int,
        duration_seconds: float,
    ) -> None:
        """Log collector completion event."""
        self.info(
            f"Collector {collector_name} found {record_count} certificates "
            f"({skipped_count} skipped) in {duration_seconds:.2f}s",
            event_type="collector.completed",
            collector_name=collector_name,
            record_count=record_count,
            skipped_count=skipped_count,
            duration_seconds=duration_seconds,
        )

    def collector_failed(self, collector_name: str, error: str) -> None:
        """Log a collector that could not read its source."""
        self.error(
            f"Collector {collector_name} failed: {error}",
            event_type="collector.failed",
            collector_name=collector_name,
            error=error,
        )

    def item_skipped(self, collector_name: str, item: str, reason: str) -> None:
        """Log one item skipped by a collector."""
        self.warning(
            f"Collector {collector_name} skipped {item}: {reason}",
            event_type="item.skipped",
            collector_name=collector_name,
            item=item,
            reason=reason,
        )


def configure_logging(
    level: str = "INFO",
    format: str = "human",
    output: str = "stderr",
    extra_fields: dict[str, Any] | None = None,
) -> None:
    """
    Configure logging for the certscope logger tree.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        format: Output format (human, json)
        output: Output destination (stderr, stdout)
        extra_fields: Extra fields to include in structured logs
    """
    root_logger = logging.getLogger(LOGGER_ROOT)
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    root_logger.handlers.clear()

    stream: TextIO = sys.stdout if output == "stdout" else sys.stderr
    handler = logging.StreamHandler(stream)

    if format == "json":
        formatter: logging.Formatter = StructuredFormatter(extra_fields=extra_fields)
    else:
        formatter = HumanReadableFormatter()

    handler.setFormatter(formatter)
    root_logger.addHandler(handler)


def get_logger(name: str) -> InventoryLogger:
    """
    Get an InventoryLogger under the certscope logger tree.

    Args:
        name: Logger name relative to certscope (e.g. "plugins.manager")

    Returns:
        InventoryLogger instance
    """
    if name == LOGGER_ROOT or name.startswith(f"{LOGGER_ROOT}."):
        return InventoryLogger(name)
    return InventoryLogger(f"{LOGGER_ROOT}.{name}")


# Configure logging from environment on import
_log_level = os.getenv("CERTSCOPE_LOG_LEVEL", "INFO")
_log_format = os.getenv("CERTSCOPE_LOG_FORMAT", "human")
configure_logging(level=_log_level, format=_log_format)
