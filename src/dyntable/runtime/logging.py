"""
Logging infrastructure.

Provides:
- Console output for human monitoring
- File output to .dyntable/logs/ in JSON Lines format
- Component-tagged loggers (ENGINE, SCHEMA, API) with structured context

Log Format Design:
- Primary file: .dyntable/logs/dyntable.log (JSONL)
- Each line is a complete JSON object with timestamp, level, component,
  message and optional structured context
"""

from __future__ import annotations

import json
import logging
import os
import sys
from collections import deque
from collections.abc import Iterator
from datetime import UTC, datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

ROOT_LOGGER = "dyntable"
LOG_FILE_NAME = "dyntable.log"

# =============================================================================
# Terminal Colors (respects NO_COLOR)
# =============================================================================

_NO_COLOR = bool(os.environ.get("NO_COLOR")) or not sys.stdout.isatty()


class Colors:
    """ANSI color codes for terminal output."""

    RESET = "" if _NO_COLOR else "\033[0m"
    DIM = "" if _NO_COLOR else "\033[2m"

    # Log levels
    DEBUG = "" if _NO_COLOR else "\033[36m"  # Cyan
    INFO = "" if _NO_COLOR else "\033[32m"  # Green
    WARNING = "" if _NO_COLOR else "\033[33m"  # Yellow
    ERROR = "" if _NO_COLOR else "\033[31m"  # Red
    CRITICAL = "" if _NO_COLOR else "\033[35m"  # Magenta

    # Components
    ENGINE = "" if _NO_COLOR else "\033[34m"  # Blue
    SCHEMA = "" if _NO_COLOR else "\033[36m"  # Cyan
    API = "" if _NO_COLOR else "\033[35m"  # Magenta


# =============================================================================
# Formatters
# =============================================================================


class JSONLFormatter(logging.Formatter):
    """
    Formats log records as JSON Lines.

    Example output:
    {"timestamp":"2024-01-15T10:30:45.123Z","level":"INFO","component":"SCHEMA","message":"Added column","context":{"relation":"events","column":"nickname"}}
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, UTC)
            .isoformat()
            .replace("+00:00", "Z"),
            "level": record.levelname,
            "component": getattr(record, "component", "DYNTABLE"),
            "message": record.getMessage(),
        }

        context = getattr(record, "context", None)
        if context:
            entry["context"] = context

        if record.levelno >= logging.WARNING:
            source_info: dict[str, Any] = {}
            if record.pathname:
                source_info["file"] = record.pathname
            if record.lineno:
                source_info["line"] = record.lineno
            if record.funcName and record.funcName != "<module>":
                source_info["function"] = record.funcName
            if source_info:
                entry["source"] = source_info

        if record.exc_info and record.exc_info[0]:
            entry["exception"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
            }

        return json.dumps(entry, default=str)


class ConsoleFormatter(logging.Formatter):
    """Human-readable formatter for console output."""

    LEVEL_COLORS = {
        logging.DEBUG: Colors.DEBUG,
        logging.INFO: Colors.INFO,
        logging.WARNING: Colors.WARNING,
        logging.ERROR: Colors.ERROR,
        logging.CRITICAL: Colors.CRITICAL,
    }

    def format(self, record: logging.LogRecord) -> str:
        component = getattr(record, "component", "DYNTABLE")
        component_color = getattr(record, "component_color", "")
        timestamp = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")

        if _NO_COLOR:
            prefix = f"[{timestamp}] [{component}]"
        else:
            prefix = (
                f"{Colors.DIM}{timestamp}{Colors.RESET} "
                f"{component_color}[{component}]{Colors.RESET}"
            )

        if record.levelno != logging.INFO:
            level_name = record.levelname
            if not _NO_COLOR:
                color = self.LEVEL_COLORS.get(record.levelno, "")
                level_name = f"{color}{level_name}{Colors.RESET}"
            prefix = f"{prefix} {level_name}:"

        message = f"{prefix} {record.getMessage()}"
        context = getattr(record, "context", None)
        if context:
            details = " ".join(f"{k}={v}" for k, v in context.items())
            message = f"{message} ({details})"
        return message


# =============================================================================
# Logger Setup
# =============================================================================


_loggers: dict[str, logging.Logger] = {}
_log_dir: Path | None = None


def setup_logging(
    log_dir: Path | str | None = ".dyntable/logs",
    level: int | str = logging.INFO,
    max_bytes: int = 5 * 1024 * 1024,  # 5MB
    backup_count: int = 3,
) -> Path | None:
    """
    Initialize the logging infrastructure on the ``dyntable`` logger.

    Args:
        log_dir: Directory for the JSONL log file; None for console only
        level: Minimum log level (number or name)
        max_bytes: Max size per log file before rotation
        backup_count: Number of backup files to keep

    Returns:
        Path to the log directory, or None when file logging is off
    """
    global _log_dir

    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    root_logger = logging.getLogger(ROOT_LOGGER)
    root_logger.setLevel(level)
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(ConsoleFormatter())
    console_handler.setLevel(level)
    root_logger.addHandler(console_handler)

    if log_dir is None:
        _log_dir = None
        return None

    _log_dir = Path(log_dir)
    _log_dir.mkdir(parents=True, exist_ok=True)
    log_file = _log_dir / LOG_FILE_NAME
    file_handler = RotatingFileHandler(
        log_file,
        maxBytes=max_bytes,
        backupCount=backup_count,
        encoding="utf-8",
    )
    file_handler.setFormatter(JSONLFormatter())
    file_handler.setLevel(level)
    root_logger.addHandler(file_handler)

    root_logger.debug(
        "Logging initialized",
        extra={"component": "DYNTABLE", "context": {"log_file": str(log_file)}},
    )
    return _log_dir


def get_logger(component: str, color: str = "") -> logging.Logger:
    """
    Get a logger for a specific component.

    Args:
        component: Component name (e.g., "ENGINE", "SCHEMA", "API")
        color: ANSI color code for the component tag

    Returns:
        Configured logger instance
    """
    if component in _loggers:
        return _loggers[component]

    logger = logging.getLogger(f"{ROOT_LOGGER}.{component.lower().replace(' ', '_')}")

    class ComponentFilter(logging.Filter):
        def filter(self, record: logging.LogRecord) -> bool:
            if not hasattr(record, "component"):
                record.component = component
            if not hasattr(record, "component_color"):
                record.component_color = color
            return True

    logger.addFilter(ComponentFilter())
    _loggers[component] = logger
    return logger


def log_with_context(
    logger: logging.Logger,
    level: int,
    message: str,
    context: dict[str, Any] | None = None,
    **kwargs: Any,
) -> None:
    """
    Log a message with structured context data.

    Args:
        logger: Logger instance
        level: Logging level (logging.INFO, logging.ERROR, etc.)
        message: Human-readable message
        context: Structured context data (included in JSONL)
        **kwargs: Additional context items
    """
    extra = {"context": {**(context or {}), **kwargs}} if (context or kwargs) else {}
    logger.log(level, message, extra=extra)


# =============================================================================
# Component Loggers
# =============================================================================


def get_engine_logger() -> logging.Logger:
    """Get logger for record operations."""
    return get_logger("ENGINE", Colors.ENGINE)


def get_schema_logger() -> logging.Logger:
    """Get logger for schema changes."""
    return get_logger("SCHEMA", Colors.SCHEMA)


def get_api_logger() -> logging.Logger:
    """Get logger for the HTTP adapter."""
    return get_logger("API", Colors.API)


def get_log_file(log_dir: Path | str | None = None) -> Path | None:
    """
    Locate the JSONL log file.

    Uses ``log_dir`` when given, otherwise the directory configured by the
    last ``setup_logging`` call in this process.
    """
    directory = Path(log_dir) if log_dir is not None else _log_dir
    return directory / LOG_FILE_NAME if directory else None


def _iter_log_file(log_file: Path, backup_count: int) -> Iterator[str]:
    # Rotated files hold older entries: dyntable.log.3 is the oldest
    for index in range(backup_count, 0, -1):
        rotated = log_file.with_name(f"{log_file.name}.{index}")
        if rotated.exists():
            yield from rotated.read_text(encoding="utf-8").splitlines()
    if log_file.exists():
        yield from log_file.read_text(encoding="utf-8").splitlines()


def get_recent_logs(
    count: int = 50,
    level: str | None = None,
    log_dir: Path | str | None = None,
    backup_count: int = 3,
) -> list[dict[str, Any]]:
    """
    Read back the most recent JSONL entries, rotated files included.

    Args:
        count: Maximum number of entries to return
        level: Only entries at this level (ERROR, WARNING, ...)
        log_dir: Log directory; defaults to the configured one
        backup_count: Rotated files to consider

    Returns:
        Entries oldest first; lines that are not JSON objects are skipped
    """
    log_file = get_log_file(log_dir)
    if log_file is None:
        return []

    wanted = level.upper() if level else None
    entries: deque[dict[str, Any]] = deque(maxlen=max(count, 0))
    for line in _iter_log_file(log_file, backup_count):
        try:
            entry = json.loads(line)
        except json.JSONDecodeError:
            continue
        if not isinstance(entry, dict):
            continue
        if wanted and entry.get("level") != wanted:
            continue
        entries.append(entry)
    return list(entries)
