"""
Gateway logging utilities.

Logging is configured once through ``logging.config.dictConfig``. Request
scoped values (request id, content hash, pipeline stage) live in a context
variable and are copied onto every record by ``ContextFilter`` so that a single
upload can be followed across the hashing, storage and publish steps.
"""

from __future__ import annotations

import contextvars
import json
import logging
import logging.config
import os
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_LOG_FORMAT = (
    "%(asctime)s | %(levelname)-8s | %(name)s | %(request_id)s | %(stage)s | %(message)s"
)
DEFAULT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

GATEWAY_LOG_LEVEL = "GATEWAY_LOG_LEVEL"
GATEWAY_LOG_FORMAT = "GATEWAY_LOG_FORMAT"
GATEWAY_LOG_JSON = "GATEWAY_LOG_JSON"

# Fields that the plain-text format string may reference.
_DEFAULT_FIELDS = {"request_id": "-", "stage": "-", "file_hash": "-"}

_RESERVED_ATTRS = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None)).keys()
) | {"message", "asctime"}

_context_data: contextvars.ContextVar[Dict[str, Any]] = contextvars.ContextVar(
    "gateway_log_context", default={}
)
_configured = False


class ContextFilter(logging.Filter):
    """Copy the bound request context onto each log record."""

    def filter(self, record: logging.LogRecord) -> bool:
        for key, value in _context_data.get().items():
            if key not in _RESERVED_ATTRS and not hasattr(record, key):
                setattr(record, key, value)
        for key, default in _DEFAULT_FIELDS.items():
            if not hasattr(record, key):
                setattr(record, key, default)
        return True


class JsonFormatter(logging.Formatter):
    """One JSON object per line, using the ``severity`` key Cloud Logging expects."""

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "time": self.formatTime(record, self.datefmt),
            "severity": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)

        for key, value in record.__dict__.items():
            if key in _RESERVED_ATTRS or key in payload:
                continue
            if _DEFAULT_FIELDS.get(key) == value:
                continue
            payload[key] = value

        return json.dumps(payload, default=repr, separators=(",", ":"))


@dataclass
class LoggerConfig:
    """Logging options, overridable through ``GATEWAY_LOG_*`` variables."""

    level: str = field(default=DEFAULT_LOG_LEVEL)
    fmt: str = field(default=DEFAULT_LOG_FORMAT)
    datefmt: str = field(default=DEFAULT_DATE_FORMAT)
    json_logs: bool = field(default=False)

    @classmethod
    def from_env(cls) -> "LoggerConfig":
        config = cls()

        level = os.getenv(GATEWAY_LOG_LEVEL)
        if level:
            config.level = level.upper()

        log_format = os.getenv(GATEWAY_LOG_FORMAT)
        if log_format:
            config.fmt = log_format

        json_logs = os.getenv(GATEWAY_LOG_JSON)
        if json_logs is not None:
            config.json_logs = json_logs.lower() in {"1", "true", "yes"}

        return config

    def to_dict(self) -> Dict[str, Any]:
        """Build the ``dictConfig`` payload for this configuration."""
        if self.json_logs:
            formatter: Dict[str, Any] = {
                "()": "ingestion_gateway.logger.custom_logger.JsonFormatter",
                "datefmt": self.datefmt,
            }
        else:
            formatter = {"format": self.fmt, "datefmt": self.datefmt}

        return {
            "version": 1,
            "disable_existing_loggers": False,
            "filters": {
                "context": {"()": "ingestion_gateway.logger.custom_logger.ContextFilter"},
            },
            "formatters": {"gateway": formatter},
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "level": self.level,
                    "formatter": "gateway",
                    "filters": ["context"],
                },
            },
            "root": {"level": self.level, "handlers": ["console"]},
        }


def configure_logging(config: Optional[LoggerConfig] = None, force: bool = False) -> None:
    """Install the gateway logging configuration (idempotent unless ``force``)."""
    global _configured

    if _configured and not force:
        return

    config = config or LoggerConfig.from_env()
    logging.config.dictConfig(config.to_dict())
    logging.captureWarnings(True)
    _configured = True


def get_logger(name: Optional[str] = None) -> logging.Logger:
    if not _configured:
        configure_logging()
    return logging.getLogger(name)


def bind_context(**kwargs: Any) -> None:
    """Attach key/value pairs to the current logging context."""
    current = dict(_context_data.get())
    current.update(
        {key: value for key, value in kwargs.items() if value is not None and key not in _RESERVED_ATTRS}
    )
    _context_data.set(current)


def get_context() -> Dict[str, Any]:
    """Return a copy of the current logging context."""
    return dict(_context_data.get())


def clear_context(*keys: str) -> None:
    """Drop ``keys`` from the logging context, or everything when none are given."""
    if not keys:
        _context_data.set({})
        return

    current = dict(_context_data.get())
    for key in keys:
        current.pop(key, None)
    _context_data.set(current)


@contextmanager
def log_context(**kwargs: Any):
    """
    Temporarily bind values to the logging context.

    Example:

        with log_context(request_id="abc123", stage="hashing"):
            logger.info("Digest computed.")
    """
    scoped = {
        key: value
        for key, value in kwargs.items()
        if value is not None and key not in _RESERVED_ATTRS
    }
    token = _context_data.set({**_context_data.get(), **scoped})
    try:
        yield
    finally:
        _context_data.reset(token)
