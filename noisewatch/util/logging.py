"""Structured logging configuration for noisewatch.

Workers log from pool threads, so every record carries the thread name.

- Console handler (stderr), human readable, colored on a TTY
- Optional JSON-lines file handler for machine parsing
- Level from the caller, or NOISEWATCH_DEBUG / NOISEWATCH_LOG_LEVEL

Usage:
    from noisewatch.util.logging import get_logger, configure_logging

    configure_logging(level="DEBUG", json_file="/var/log/noisewatch.jsonl")
    logger = get_logger(__name__)
    logger.info("Batch done", extra={"sequence": 12, "worker": "estimator-0"})
"""

from __future__ import annotations

import json
import logging
import os
import sys
import traceback
from datetime import datetime, timezone
from typing import Any, Dict, Optional


_configured = False
_root_logger_name = "noisewatch"

_EXTRA_FIELDS = ("worker", "sequence", "error_type", "duration_ms", "reason")


class JSONFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        output: Dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc)
            .isoformat(timespec="milliseconds")
            .replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "thread": record.threadName,
            "message": record.getMessage(),
        }
        for key in _EXTRA_FIELDS:
            if hasattr(record, key):
                output[key] = getattr(record, key)
        if record.exc_info:
            output["traceback"] = "".join(traceback.format_exception(*record.exc_info))
        return json.dumps(output, default=str)


class ConsoleFormatter(logging.Formatter):
    """Human-readable console format with optional color."""

    LEVEL_COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def __init__(self, use_color: bool = True):
        super().__init__()
        self.use_color = use_color and sys.stderr.isatty()

    def format(self, record: logging.LogRecord) -> str:
        ts = datetime.fromtimestamp(record.created, timezone.utc).strftime("%H:%M:%S.%f")[:-3]
        level = record.levelname
        if self.use_color:
            level_str = f"{self.LEVEL_COLORS.get(level, '')}{level:8}{self.RESET}"
        else:
            level_str = f"{level:8}"
        name = record.name.replace(f"{_root_logger_name}.", "")
        base = f"[{ts}] {level_str} [{name}/{record.threadName}] {record.getMessage()}"
        if record.exc_info:
            base += "\n" + "".join(traceback.format_exception(*record.exc_info))
        return base


def configure_logging(
    *,
    level: Optional[str] = None,
    json_file: Optional[str] = None,
    use_color: bool = True,
) -> None:
    """Configure the noisewatch logger tree. Safe to call more than once."""
    global _configured

    if level is None:
        if os.environ.get("NOISEWATCH_DEBUG", "").strip() in ("1", "true", "yes"):
            level = "DEBUG"
        else:
            level = os.environ.get("NOISEWATCH_LOG_LEVEL", "INFO")

    numeric_level = getattr(logging, level.upper(), logging.INFO)

    logger = logging.getLogger(_root_logger_name)
    logger.setLevel(numeric_level)
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)
        handler.close()

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(numeric_level)
    console_handler.setFormatter(ConsoleFormatter(use_color=use_color))
    logger.addHandler(console_handler)

    if json_file:
        try:
            file_handler = logging.FileHandler(json_file, mode="a", encoding="utf-8")
            file_handler.setLevel(numeric_level)
            file_handler.setFormatter(JSONFormatter())
            logger.addHandler(file_handler)
        except OSError as exc:
            logger.warning("Failed to open JSON log file %s: %s", json_file, exc)

    logger.propagate = False
    _configured = True


def get_logger(name: str) -> logging.Logger:
    """Return a logger under the noisewatch namespace, configuring defaults once."""
    if not _configured:
        configure_logging()

    if not name.startswith(_root_logger_name):
        if name == "__main__":
            name = f"{_root_logger_name}.main"
        else:
            name = f"{_root_logger_name}.{name}"
    return logging.getLogger(name)


def log_exception(
    logger: logging.Logger,
    message: str,
    *,
    error_type: Optional[str] = None,
    **extra: Any,
) -> None:
    """Log the exception currently being handled with structured context."""
    extra_dict = dict(extra)
    if error_type:
        extra_dict["error_type"] = error_type
    logger.exception(message, extra=extra_dict)
