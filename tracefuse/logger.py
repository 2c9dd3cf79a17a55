"""
Centralized logging system for tracefuse.

Module loggers are children of the ``tracefuse`` package logger, which owns the
single handler. Log lines go to stderr so that stdout stays free for formatted
results, and the structured formatter redacts credentials that commonly show up
in logged request headers.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from tracefuse.config import settings

ROOT_LOGGER_NAME = "tracefuse"

_RESERVED_RECORD_KEYS = {
    "name", "msg", "args", "levelname", "levelno", "pathname",
    "filename", "module", "exc_info", "exc_text", "stack_info",
    "lineno", "funcName", "created", "msecs", "relativeCreated",
    "thread", "threadName", "processName", "process", "message",
    "taskName",
}

_SENSITIVE_KEYS = {
    "authorization", "proxy-authorization", "cookie", "set-cookie",
    "token", "access_token", "refresh_token", "id_token",
    "password", "secret", "client_secret", "api_key", "apikey", "x-api-key",
}

_SENSITIVE_MARKERS = ("bearer ", "basic ", "access_token=", "client_secret=")


class StructuredFormatter(logging.Formatter):
    """
    Formatter emitting one JSON object per log record.

    Extra fields passed through ``extra=`` are kept as top-level keys.
    """

    def __init__(self, sanitize: bool = True):
        """
        Initialize the structured formatter.

        Args:
            sanitize: Whether to redact credentials from log entries
        """
        super().__init__()
        self.sanitize = sanitize

    def format(self, record: logging.LogRecord) -> str:
        log_entry: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "function": record.funcName,
            "line": record.lineno,
        }

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        for key, value in record.__dict__.items():
            if key not in _RESERVED_RECORD_KEYS:
                log_entry[key] = value

        if self.sanitize:
            log_entry = _sanitize(log_entry)

        return json.dumps(log_entry, ensure_ascii=False, separators=(',', ':'), default=str)


def _sanitize(obj: Any) -> Any:
    """Redact header-like credentials from a log entry."""
    if isinstance(obj, dict):
        return {
            k: "[REDACTED]" if str(k).lower() in _SENSITIVE_KEYS else _sanitize(v)
            for k, v in obj.items()
        }
    if isinstance(obj, list):
        return [_sanitize(item) for item in obj]
    if isinstance(obj, str):
        lowered = obj.lower()
        for marker in _SENSITIVE_MARKERS:
            position = lowered.find(marker)
            if position != -1:
                return obj[:position + len(marker)] + "[REDACTED]"
        return obj
    return obj


class SimpleFormatter(logging.Formatter):
    """Simple, human-readable formatter for development use."""

    def __init__(self):
        super().__init__(
            fmt="%(asctime)s [%(levelname)8s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S"
        )


def setup_logger(
    level: Optional[str] = None,
    log_format: Optional[str] = None
) -> logging.Logger:
    """
    Configure the package logger.

    The first call installs the handler. Later calls with an explicit level or
    format reconfigure it, which is how the CLI switches to verbose output.

    Args:
        level: Log level (defaults to settings.log_level)
        log_format: 'structured' or 'simple' (defaults to settings.log_format)

    Returns:
        logging.Logger: The configured ``tracefuse`` logger
    """
    log_level = (level or settings.log_level).upper()
    format_type = log_format or settings.log_format

    logger = logging.getLogger(ROOT_LOGGER_NAME)

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        logger.addHandler(handler)
        logger.propagate = False
    elif level is None and log_format is None:
        return logger

    logger.setLevel(getattr(logging, log_level))
    for handler in logger.handlers:
        handler.setLevel(getattr(logging, log_level))
        if format_type == "structured":
            handler.setFormatter(StructuredFormatter(sanitize=settings.sanitize_logs))
        else:
            handler.setFormatter(SimpleFormatter())

    return logger


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """
    Get a logger below the package logger.

    Args:
        name: Module name, usually ``__name__``

    Returns:
        logging.Logger: Child logger that propagates to the package handler
    """
    setup_logger()
    if not name or name == ROOT_LOGGER_NAME:
        return logging.getLogger(ROOT_LOGGER_NAME)
    if not name.startswith(ROOT_LOGGER_NAME + "."):
        name = f"{ROOT_LOGGER_NAME}.{name}"
    return logging.getLogger(name)


# Create the global logger instance
logger = setup_logger()
