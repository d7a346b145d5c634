"""
cush/core/logging.py

Purpose: Logging configuration

- JSON lines in production, coloured single lines in development
- Request-scoped context (user_id, role, path, payment_id...) via LogContext
- Credential-looking fields are masked before they reach a handler
"""

import contextvars
import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict

from cush.core.config import settings


_log_context: contextvars.ContextVar[Dict[str, Any]] = contextvars.ContextVar("cush_log_context", default={})

SENSITIVE_MARKERS = ("password", "token", "secret", "authorization", "api_key")
MASK = "***"

# Attributes every LogRecord has; anything else arrived through extra= or LogContext
_RECORD_ATTRS = set(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {"message", "asctime"}

LEVEL_COLORS = {
    "DEBUG": "\033[36m",
    "INFO": "\033[32m",
    "WARNING": "\033[33m",
    "ERROR": "\033[31m",
    "CRITICAL": "\033[35m",
}
RESET = "\033[0m"


def mask_sensitive(fields: Dict[str, Any]) -> Dict[str, Any]:
    return {
        key: MASK if any(marker in key.lower() for marker in SENSITIVE_MARKERS) else value
        for key, value in fields.items()
    }


def record_fields(record: logging.LogRecord) -> Dict[str, Any]:
    """Custom fields attached to a record, masked."""
    return mask_sensitive({k: v for k, v in vars(record).items() if k not in _RECORD_ATTRS})


class ContextFilter(logging.Filter):
    """Copies the active LogContext onto records without overriding explicit extras."""

    def filter(self, record: logging.LogRecord) -> bool:
        for key, value in _log_context.get().items():
            if not hasattr(record, key):
                setattr(record, key, value)
        return True


class StructuredFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
            "at": f"{record.module}.{record.funcName}:{record.lineno}",
        }
        entry.update(record_fields(record))
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class DevelopmentFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        color = LEVEL_COLORS.get(record.levelname, RESET)
        clock = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        line = f"{color}{clock} {record.levelname[:4]}{RESET} {record.name}: {record.getMessage()}"

        fields = record_fields(record)
        if fields:
            line += "  " + " ".join(f"{k}={v}" for k, v in fields.items())
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def setup_logging() -> logging.Logger:
    """
    Install a single stdout handler on the root logger.

    Safe to call more than once; the previous handlers are replaced.
    """
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(StructuredFormatter() if settings.is_production else DevelopmentFormatter())
    handler.addFilter(ContextFilter())

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))

    for noisy in ("httpx", "httpcore", "redis", "openai", "multipart", "uvicorn.access"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    logger = logging.getLogger("cush")
    logger.debug("Logging configured", extra={"environment": settings.ENVIRONMENT, "log_level": settings.LOG_LEVEL})
    return logger


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger under the ``cush`` namespace.

    Args:
        name: Module name (usually __name__)

    Returns:
        Logger named ``cush.<name>``
    """
    return logging.getLogger(f"cush.{name}")


class LogContext:
    """
    Attach fields to every record logged inside the block.

    Nests, and is safe across awaits since it is backed by a ContextVar.
    Explicit ``extra=`` values win over context values.

    Usage:
        with LogContext(user_id=user["id"], path=request.url.path):
            logger.info("Uploading document")
    """

    def __init__(self, **fields):
        self.fields = fields
        self._token = None

    def __enter__(self):
        self._token = _log_context.set({**_log_context.get(), **self.fields})
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        _log_context.reset(self._token)
