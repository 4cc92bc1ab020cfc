"""Structured logging and correlation context."""

from __future__ import annotations

from dexter.observability.logging import (
    LoggingConfig,
    StructuredLoggingHandle,
    configure_structlog,
    correlation_scope,
    log_session_block,
    setup_structured_logging,
    shutdown_logging,
)

__all__ = [
    "LoggingConfig",
    "StructuredLoggingHandle",
    "configure_structlog",
    "correlation_scope",
    "log_session_block",
    "setup_structured_logging",
    "shutdown_logging",
]
