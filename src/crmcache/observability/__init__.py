"""Observability module for crmcache.

Provides structured logging with correlation and cache-scope context.
"""

from crmcache.observability.logging import (
    ConsoleFormatter,
    JsonFormatter,
    LogContext,
    cache_scope_var,
    configure_logging,
    correlation_id_var,
)

__all__ = [
    "configure_logging",
    "LogContext",
    "JsonFormatter",
    "ConsoleFormatter",
    "correlation_id_var",
    "cache_scope_var",
]
