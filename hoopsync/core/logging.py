"""
Structured logging for the sync engine.

Every record carries the current correlation id: the ``X-Correlation-ID`` of
an HTTP request, or the tick id while the scheduler runs a sync tick. Sync
context passed through ``extra`` (``unit``, ``tick_id``, ``records``...) is
lifted to top-level JSON fields so log pipelines can filter on it.
"""
import json
import logging
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Iterator

correlation_id_var: ContextVar[str] = ContextVar("correlation_id", default="")

# Attributes every LogRecord has; anything else came in through ``extra``
_RECORD_ATTRS = frozenset(logging.LogRecord("", 0, "", 0, "", None, None).__dict__) | {"message", "asctime"}

# ``extra`` keys promoted out of the nested "extra" object
_SYNC_FIELDS = ("unit", "tick_id", "provider")


def _extra_fields(record: logging.LogRecord) -> dict[str, Any]:
    return {k: v for k, v in record.__dict__.items() if k not in _RECORD_ATTRS}


class JSONFormatter(logging.Formatter):
    """
    One JSON object per line.

    Fields: timestamp (UTC, ISO 8601), level, logger, message,
    correlation_id, the promoted sync fields when present, exception, and
    any remaining ``extra`` under "extra".
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "correlation_id": correlation_id_var.get(),
        }

        extra = _extra_fields(record)
        for name in _SYNC_FIELDS:
            if name in extra:
                log_data[name] = extra.pop(name)

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)
        if extra:
            log_data["extra"] = extra

        return json.dumps(log_data, default=str)


class ColoredFormatter(logging.Formatter):
    """Human-readable console output for development (``LOG_JSON=false``)."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, "")
        timestamp = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        unit = getattr(record, "unit", None)

        line = f"{timestamp} {color}{record.levelname:<8}{self.RESET} {record.name}"
        if unit:
            line += f" [{unit}]"
        line += f": {record.getMessage()}"

        correlation_id = correlation_id_var.get()
        if correlation_id:
            line += f" ({correlation_id})"
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def configure_logging(
    level: str = "INFO",
    json_output: bool = True,
    handler: logging.Handler | None = None,
) -> None:
    """
    Install a single root handler with the JSON or colored formatter.

    Calling it again replaces the previous configuration.
    """
    root_logger = logging.getLogger()
    root_logger.handlers.clear()

    log_level = getattr(logging, level.upper(), logging.INFO)
    root_logger.setLevel(log_level)

    if handler is None:
        handler = logging.StreamHandler(sys.stdout)
        handler.setLevel(log_level)
    handler.setFormatter(JSONFormatter() if json_output else ColoredFormatter())
    root_logger.addHandler(handler)

    for noisy in ("httpx", "httpcore", "apscheduler", "uvicorn.access"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def set_correlation_id(correlation_id: str) -> Any:
    """Bind ``correlation_id``; returns the token for ``clear_correlation_id``."""
    return correlation_id_var.set(correlation_id)


def get_correlation_id() -> str:
    return correlation_id_var.get()


def clear_correlation_id(token: Any) -> None:
    correlation_id_var.reset(token)


@contextmanager
def correlation_scope(correlation_id: str) -> Iterator[str]:
    """Bind a correlation id for the duration of a block (one sync tick)."""
    token = set_correlation_id(correlation_id)
    try:
        yield correlation_id
    finally:
        clear_correlation_id(token)
