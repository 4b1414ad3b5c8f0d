"""Observability package for logging."""

from recents_core.observability.logging import (
    AccountContext,
    JsonFormatter,
    StructuredLogger,
    configure_logging,
    get_logger,
)

__all__ = [
    "AccountContext",
    "JsonFormatter",
    "StructuredLogger",
    "configure_logging",
    "get_logger",
]
