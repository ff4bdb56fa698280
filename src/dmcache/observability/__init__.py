"""Observability for dm-cache: structured logging with async-safe context."""

from dmcache.observability.logging import (
    ConsoleFormatter,
    JsonFormatter,
    LogContext,
    configure_logging,
    configure_logging_from_settings,
    log_context_var,
)

__all__ = [
    "configure_logging",
    "configure_logging_from_settings",
    "ConsoleFormatter",
    "JsonFormatter",
    "LogContext",
    "log_context_var",
]
