"""
crmdeck logging infrastructure.

- Console output for humans (``ConsoleFormatter``)
- JSONL file output under ``.crmdeck/logs/crmdeck.log`` (``JSONLFormatter``),
  one complete JSON object per line so the file can be tailed and parsed

Modules log through ``logging.getLogger(__name__)``; everything below the
``crmdeck`` and ``crmdeck_ui`` loggers ends up in both outputs once
``setup_logging`` has run.
"""

from __future__ import annotations

import json
import logging
import os
import sys
from datetime import UTC, datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, TextIO

LOG_FILENAME = "crmdeck.log"
ROOT_LOGGERS = ("crmdeck", "crmdeck_ui")

# =============================================================================
# Terminal Colors (respects NO_COLOR)
# =============================================================================

_NO_COLOR = bool(os.environ.get("NO_COLOR")) or not sys.stdout.isatty()


class Colors:
    """ANSI color codes for terminal output."""

    RESET = "" if _NO_COLOR else "\033[0m"
    DIM = "" if _NO_COLOR else "\033[2m"

    DEBUG = "" if _NO_COLOR else "\033[36m"  # Cyan
    INFO = "" if _NO_COLOR else "\033[32m"  # Green
    WARNING = "" if _NO_COLOR else "\033[33m"  # Yellow
    ERROR = "" if _NO_COLOR else "\033[31m"  # Red
    CRITICAL = "" if _NO_COLOR else "\033[35m"  # Magenta

    COMPONENT = "" if _NO_COLOR else "\033[34m"  # Blue


def _component(record: logging.LogRecord) -> str:
    explicit = getattr(record, "component", None)
    if explicit:
        return str(explicit)
    # crmdeck.core.cache -> cache
    return record.name.rsplit(".", 1)[-1]


# =============================================================================
# Formatters
# =============================================================================


class JSONLFormatter(logging.Formatter):
    """
    Formats log records as JSON Lines.

    Example output:
    {"timestamp":"2026-01-15T10:30:45.123+00:00","level":"WARNING","component":"cache","message":"Fetch failed for ...","context":{"endpoint":"/leads"}}
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "component": _component(record),
            "logger": record.name,
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
        component = _component(record)
        timestamp = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")

        if _NO_COLOR:
            prefix = f"[{timestamp}] [{component}]"
        else:
            prefix = (
                f"{Colors.DIM}{timestamp}{Colors.RESET} "
                f"{Colors.COMPONENT}[{component}]{Colors.RESET}"
            )

        if record.levelno != logging.INFO:
            level_name = record.levelname
            if not _NO_COLOR:
                color = self.LEVEL_COLORS.get(record.levelno, "")
                level_name = f"{color}{level_name}{Colors.RESET}"
            prefix = f"{prefix} {level_name}:"

        message = f"{prefix} {record.getMessage()}"
        if record.exc_info:
            message = f"{message}\n{self.formatException(record.exc_info)}"
        return message


# =============================================================================
# Logger Setup
# =============================================================================


_log_dir: Path | None = None


def setup_logging(
    log_dir: Path | str = ".crmdeck/logs",
    level: int | str = logging.INFO,
    max_bytes: int = 5 * 1024 * 1024,  # 5MB
    backup_count: int = 3,
    console: bool = True,
    stream: TextIO | None = None,
) -> Path:
    """
    Initialize the logging infrastructure.

    Args:
        log_dir: Directory for log files
        level: Minimum log level (int or name such as ``"DEBUG"``)
        max_bytes: Max size per log file before rotation
        backup_count: Number of backup files to keep
        console: Also log human-readable lines to the console
        stream: Console stream (defaults to stdout)

    Returns:
        Path to the log directory
    """
    global _log_dir

    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    _log_dir = Path(log_dir)
    _log_dir.mkdir(parents=True, exist_ok=True)
    log_file = _log_dir / LOG_FILENAME

    file_handler = RotatingFileHandler(
        log_file,
        maxBytes=max_bytes,
        backupCount=backup_count,
        encoding="utf-8",
    )
    file_handler.setFormatter(JSONLFormatter())
    file_handler.setLevel(level)

    handlers: list[logging.Handler] = [file_handler]
    if console:
        console_handler = logging.StreamHandler(stream or sys.stdout)
        console_handler.setFormatter(ConsoleFormatter())
        console_handler.setLevel(level)
        handlers.append(console_handler)

    for name in ROOT_LOGGERS:
        root_logger = logging.getLogger(name)
        root_logger.setLevel(level)
        for handler in list(root_logger.handlers):
            root_logger.removeHandler(handler)
            handler.close()
        for handler in handlers:
            root_logger.addHandler(handler)
        root_logger.propagate = False

    log_with_context(
        logging.getLogger("crmdeck"),
        logging.INFO,
        "crmdeck logging initialized",
        log_format="jsonl",
        log_file=str(log_file),
    )
    return _log_dir


# =============================================================================
# Contextual Logging
# =============================================================================


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
        context: Structured context data (included in the JSONL entry)
        **kwargs: Additional context items
    """
    extra = {"context": {**(context or {}), **kwargs}} if (context or kwargs) else {}
    logger.log(level, message, extra=extra)


def get_log_file() -> Path | None:
    """Path to the main log file, once logging is set up."""
    if _log_dir:
        return _log_dir / LOG_FILENAME
    return None
