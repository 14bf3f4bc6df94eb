"""Public logging helpers for the gateway."""

from .custom_logger import (
    LoggerConfig,
    bind_context,
    clear_context,
    configure_logging,
    get_context,
    get_logger,
    log_context,
)

__all__ = [
    "LoggerConfig",
    "bind_context",
    "clear_context",
    "configure_logging",
    "get_context",
    "get_logger",
    "log_context",
]
