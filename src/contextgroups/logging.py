"""Centralized logging utilities for the access subsystem.

This module provides:
- Logging configuration from AccessConfig
- Safe, length-bounded previews for large id collections
- Structured (JSON) or plain formatting with access context
- A logger adapter that carries user_id / item_id / strategy
"""

from __future__ import annotations

import json
import logging
from typing import Any, Optional

from .config import AccessConfig, LogLevel

# Record attributes lifted into the formatted output
CONTEXT_FIELDS = ("user_id", "item_id", "strategy")

_STANDARD_ATTRS = {
    "name", "msg", "args", "created", "filename", "funcName",
    "levelname", "levelno", "lineno", "module", "msecs",
    "message", "pathname", "process", "processName", "relativeCreated",
    "thread", "threadName", "exc_info", "exc_text", "stack_info", "taskName",
    *CONTEXT_FIELDS,
}


def safe_preview(value: Any, limit: int = 240) -> str:
    """Create a safe, length-bounded preview of a value for logging.

    Id sets computed by the bulk strategies can hold thousands of entries;
    this keeps log lines readable.

    Args:
        value: The value to preview (any type)
        limit: Maximum length of the preview (default: 240)

    Returns:
        A single-line, truncated string representation
    """
    if value is None:
        return ""

    if isinstance(value, str):
        s = value
    elif isinstance(value, (set, frozenset)):
        s = json.dumps(sorted(value, key=str), default=str)
    elif isinstance(value, (dict, list, tuple)):
        try:
            s = json.dumps(value, default=str, ensure_ascii=False)
        except (TypeError, ValueError):
            s = str(value)
    else:
        s = str(value)

    s = " ".join(s.split())

    if len(s) > limit:
        return s[: limit - 1] + "…"

    return s


class AccessLogFormatter(logging.Formatter):
    """Formatter that includes access context and optional JSON output."""

    def __init__(self, json_format: bool = True, *args: Any, **kwargs: Any):
        super().__init__(*args, **kwargs)
        self.json_format = json_format

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for field in CONTEXT_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                log_data[field] = value

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        for key, value in record.__dict__.items():
            if key not in _STANDARD_ATTRS and not key.startswith("_"):
                log_data[key] = safe_preview(value)

        if self.json_format:
            return json.dumps(log_data, default=str, ensure_ascii=False)

        parts = [
            f"[{log_data['timestamp']}]",
            f"{log_data['level']}",
            f"{log_data['logger']}",
        ]
        for field in CONTEXT_FIELDS:
            if field in log_data:
                parts.append(f"{field}={log_data[field]}")
        parts.append(f": {log_data['message']}")
        line = " ".join(parts)
        if "exception" in log_data:
            line = f"{line}\n{log_data['exception']}"
        return line


class AccessLoggerAdapter(logging.LoggerAdapter):
    """Logger adapter that adds user_id / item_id / strategy to log records.

    Usage:
        logger = get_access_logger(__name__, user_id=42)
        logger.info("Computed exclude set", item_id=100)
    """

    def __init__(
        self,
        logger: logging.Logger,
        user_id: Optional[int] = None,
        item_id: Optional[int] = None,
        strategy: Optional[str] = None,
    ):
        super().__init__(logger, {})
        self.user_id = user_id
        self.item_id = item_id
        self.strategy = strategy

    def process(self, msg: str, kwargs: Any) -> tuple[str, Any]:
        """Move access context from kwargs into ``extra``."""
        extra = dict(kwargs.get("extra") or {})
        for field in CONTEXT_FIELDS:
            value = kwargs.pop(field, getattr(self, field))
            if value is not None:
                extra[field] = value
        kwargs["extra"] = extra
        return msg, kwargs


def setup_logging(
    config: Optional[AccessConfig] = None,
    json_format: Optional[bool] = None,
) -> None:
    """Configure the root logger from AccessConfig.

    Args:
        config: AccessConfig instance (if None, loads from environment)
        json_format: Override ``config.log_json``
    """
    if config is None:
        from .config import load_access_config_from_env

        config = load_access_config_from_env()

    level_map = {
        LogLevel.DEBUG: logging.DEBUG,
        LogLevel.INFO: logging.INFO,
        LogLevel.WARNING: logging.WARNING,
        LogLevel.ERROR: logging.ERROR,
        LogLevel.CRITICAL: logging.CRITICAL,
    }
    log_level = level_map.get(config.log_level, logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    # Remove existing handlers to avoid duplicates
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(log_level)
    console_handler.setFormatter(
        AccessLogFormatter(json_format=config.log_json if json_format is None else json_format)
    )
    root_logger.addHandler(console_handler)

    logging.getLogger("contextgroups").setLevel(log_level)


def get_access_logger(
    name: str,
    user_id: Optional[int] = None,
    item_id: Optional[int] = None,
    strategy: Optional[str] = None,
) -> AccessLoggerAdapter:
    """Get a logger adapter carrying access context.

    Args:
        name: Logger name (typically __name__)
        user_id: Optional user id to include in all logs
        item_id: Optional content item id to include in all logs
        strategy: Optional strategy name to include in all logs

    Returns:
        AccessLoggerAdapter instance
    """
    return AccessLoggerAdapter(logging.getLogger(name), user_id=user_id, item_id=item_id, strategy=strategy)


__all__ = [
    "AccessLogFormatter",
    "AccessLoggerAdapter",
    "get_access_logger",
    "safe_preview",
    "setup_logging",
]
