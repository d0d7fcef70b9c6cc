"""Structured logging framework using structlog.

This module provides centralized logging configuration with:
- ISO-8601 timestamps
- JSON rendering for structured logs
- Automatic sanitization of sensitive fields
- Context binding support
- Dual output (stdout + optional file logging)

The record pipeline itself never logs. It reports plain-value events to a
TelemetrySink; ``StructlogSink`` forwards those events to a structlog logger.

Usage:
    >>> from logify.utils.logging import configure_logging, get_logger
    >>> configure_logging()
    >>> logger = get_logger(__name__)
    >>> logger.info("processing_started", source="logs.csv")
"""

import logging
import re
from datetime import datetime
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path
from typing import Any, Dict, MutableMapping, Optional

import structlog
from structlog.types import EventDict, Processor

from logify.config import Settings, get_settings

# Sensitive key patterns for sanitization
SENSITIVE_PATTERNS = [
    re.compile(r".*password.*", re.IGNORECASE),
    re.compile(r".*token.*", re.IGNORECASE),
    re.compile(r".*api_key.*", re.IGNORECASE),
    re.compile(r".*secret.*", re.IGNORECASE),
]

REDACTED_VALUE = "[REDACTED]"

_HANDLER_MARKER = "_logify_handler"


def sanitize_for_logging(data: Dict[str, Any]) -> Dict[str, Any]:
    """Redact sensitive values from a dictionary before logging.

    Example:
        >>> sanitize_for_logging({"password": "secret123", "user": "admin"})
        {'password': '[REDACTED]', 'user': 'admin'}
    """
    sanitized: Dict[str, Any] = {}
    for key, value in data.items():
        if any(pattern.match(key) for pattern in SENSITIVE_PATTERNS):
            sanitized[key] = REDACTED_VALUE
        elif isinstance(value, dict):
            sanitized[key] = sanitize_for_logging(value)
        else:
            sanitized[key] = value
    return sanitized


def sanitization_processor(
    logger: logging.Logger, method_name: str, event_dict: EventDict
) -> MutableMapping[str, Any]:
    """Structlog processor that sanitizes sensitive fields in event_dict."""
    return sanitize_for_logging(dict(event_dict))


def _get_log_file_path(log_dir: Path) -> Path:
    """Get the log file path with date-based naming."""
    log_dir.mkdir(parents=True, exist_ok=True)
    date_str = datetime.now().strftime("%Y%m%d")
    return log_dir / f"logify-{date_str}.log"


def configure_logging(settings: Optional[Settings] = None) -> None:
    """Configure stdlib logging and structlog for the process.

    Called once by the entry point. Sets up:
    - stdout handler (always) and rotating file handler (when enabled)
    - ISO-8601 timestamps, log level, logger name
    - Sanitization processor
    - JSON renderer
    """
    settings = settings or get_settings()
    level = getattr(logging, settings.LOG_LEVEL, logging.INFO)

    root = logging.getLogger()
    # Re-configuring replaces our handlers instead of stacking them
    for handler in list(root.handlers):
        if getattr(handler, _HANDLER_MARKER, False):
            root.removeHandler(handler)
            handler.close()

    stdout_handler = logging.StreamHandler()
    stdout_handler.setLevel(level)
    setattr(stdout_handler, _HANDLER_MARKER, True)
    root.addHandler(stdout_handler)

    if settings.log_to_file:
        file_handler = TimedRotatingFileHandler(
            filename=str(_get_log_file_path(Path(settings.log_file_dir))),
            when="midnight",
            interval=1,
            backupCount=30,
            encoding="utf-8",
        )
        file_handler.setLevel(level)
        setattr(file_handler, _HANDLER_MARKER, True)
        root.addHandler(file_handler)

    root.setLevel(level)

    processors: list[Processor] = [
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        sanitization_processor,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.JSONRenderer(),
    ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> Any:
    """Get a structlog BoundLogger instance.

    Args:
        name: Logger name (typically __name__ of the calling module)
    """
    return structlog.get_logger(name)


def bind_context(**kwargs: Any) -> Any:
    """Create a logger with bound context fields.

    Example:
        >>> logger = bind_context(source="logs.csv", execution_id="a1b2c3")
        >>> logger.info("records_loaded", count=4)
    """
    return structlog.get_logger().bind(**kwargs)


class StructlogSink:
    """TelemetrySink that logs every pipeline event at INFO level."""

    def __init__(self, logger: Optional[Any] = None) -> None:
        self._logger = logger if logger is not None else get_logger("logify.pipeline")

    def record(self, event: str, **values: Any) -> None:
        self._logger.info(event, **values)
