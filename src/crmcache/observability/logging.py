"""Structured logging for cache diagnostics.

Provides:
- JSON-formatted logs for log aggregation systems
- Human-readable console logs for development
- Correlation and cache-scope context carried through context vars

Cache modules log with ``extra={...}`` context (key, ttl, counts); both
formatters render those fields alongside the message.

Usage:
    from crmcache.observability.logging import configure_logging

    configure_logging(json_format=True, level="DEBUG")

    logger = logging.getLogger(__name__)
    logger.debug("Cache hit", extra={"key": "customer:42"})
"""

from __future__ import annotations

import contextvars
import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

# Context variables for log correlation
correlation_id_var: contextvars.ContextVar[str] = contextvars.ContextVar(
    "correlation_id", default=""
)
cache_scope_var: contextvars.ContextVar[str] = contextvars.ContextVar("cache_scope", default="")

# Standard LogRecord attributes, never rendered as extra fields
_STANDARD_ATTRS = frozenset(
    {
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
    }
)


def _extra_fields(record: logging.LogRecord) -> dict[str, Any]:
    return {
        key: value
        for key, value in record.__dict__.items()
        if key not in _STANDARD_ATTRS and not key.startswith("_")
    }


class JsonFormatter(logging.Formatter):
    """JSON log formatter with correlation context.

    Output format:
    {
        "timestamp": "2026-01-10T12:34:56.789Z",
        "level": "DEBUG",
        "logger": "crmcache.cache.ttl",
        "message": "Cache hit",
        "module": "ttl",
        "function": "get",
        "line": 42,
        "cache_scope": "api",
        "key": "customer:42"
    }
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        correlation_id = correlation_id_var.get()
        if correlation_id:
            log_data["correlation_id"] = correlation_id

        cache_scope = cache_scope_var.get()
        if cache_scope:
            log_data["cache_scope"] = cache_scope

        if record.exc_info:
            log_data["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "traceback": self.formatException(record.exc_info),
            }

        for key, value in _extra_fields(record).items():
            try:
                json.dumps(value)  # Verify it's JSON serializable
                log_data[key] = value
            except (TypeError, ValueError):
                log_data[key] = str(value)

        return json.dumps(log_data, default=str, ensure_ascii=False)


class ConsoleFormatter(logging.Formatter):
    """Human-readable formatter for development.

    Output format:
    2026-01-10 12:34:56 | DEBUG | crmcache.cache.ttl | Cache hit | key=customer:42
    """

    COLORS = {
        "DEBUG": "\033[36m",  # Cyan
        "INFO": "\033[32m",  # Green
        "WARNING": "\033[33m",  # Yellow
        "ERROR": "\033[31m",  # Red
        "CRITICAL": "\033[35m",  # Magenta
    }
    RESET = "\033[0m"

    def __init__(self, use_colors: bool = True) -> None:
        super().__init__()
        self.use_colors = use_colors and sys.stderr.isatty()

    def format(self, record: logging.LogRecord) -> str:
        """Format log record for console output."""
        timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        level = record.levelname

        if self.use_colors:
            color = self.COLORS.get(level, "")
            level = f"{color}{level}{self.RESET}"

        message = record.getMessage()

        context_parts = []
        cache_scope = cache_scope_var.get()
        if cache_scope:
            context_parts.append(f"scope={cache_scope}")
        context_parts.extend(f"{key}={value}" for key, value in _extra_fields(record).items())

        context = f" | {' '.join(context_parts)}" if context_parts else ""

        result = f"{timestamp} | {level:8} | {record.name} | {message}{context}"

        if record.exc_info:
            result += "\n" + self.formatException(record.exc_info)

        return result


def configure_logging(
    json_format: bool = True,
    level: str = "INFO",
    use_colors: bool = True,
) -> None:
    """Configure application-wide logging.

    Args:
        json_format: Use JSON format (recommended for production)
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        use_colors: Use ANSI colors in console format
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)

    if json_format:
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(ConsoleFormatter(use_colors=use_colors))

    root_logger.addHandler(handler)

    # redis-py is chatty at DEBUG
    logging.getLogger("redis").setLevel(logging.WARNING)


class LogContext:
    """Context manager for adding temporary log context.

    Usage:
        with LogContext(cache_scope="api", correlation_id="req-123"):
            await api_cache.get("customers:all", fetch_customers)
    """

    def __init__(self, **kwargs: Any) -> None:
        self.extra = kwargs
        self._tokens: dict[str, contextvars.Token[str]] = {}

    def __enter__(self) -> "LogContext":
        if "correlation_id" in self.extra:
            self._tokens["correlation_id"] = correlation_id_var.set(self.extra["correlation_id"])
        if "cache_scope" in self.extra:
            self._tokens["cache_scope"] = cache_scope_var.set(self.extra["cache_scope"])
        return self

    def __exit__(self, *args: Any) -> None:
        for key, token in self._tokens.items():
            if key == "correlation_id":
                correlation_id_var.reset(token)
            elif key == "cache_scope":
                cache_scope_var.reset(token)

