"""JSON line logging with request correlation ids and local timestamps."""

from __future__ import annotations

import json
import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone, tzinfo
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

CORRELATION_ID_CTX: ContextVar[str] = ContextVar("correlation_id", default="")

# Attributes passed through ``extra=`` that end up in the JSON line.
LOG_CONTEXT_FIELDS = (
    "path",
    "method",
    "status_code",
    "error_code",
    "user_id",
    "cache_key",
    "operation",
)


def resolve_timezone(name: str) -> tzinfo:
    """Return the named zone, falling back to UTC for unknown names."""
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        return timezone.utc


class JsonLogFormatter(logging.Formatter):
    """Render each record as one JSON object per line."""

    def __init__(self, tz: tzinfo = timezone.utc) -> None:
        super().__init__()
        self._tz = tz

    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created, tz=self._tz)
        payload: dict[str, Any] = {
            "timestamp": created.isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "correlation_id": CORRELATION_ID_CTX.get(),
        }
        payload.update(
            {
                key: getattr(record, key)
                for key in LOG_CONTEXT_FIELDS
                if getattr(record, key, None) not in (None, "")
            }
        )
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


def setup_logging(level: str = "INFO", tz_name: str = "UTC") -> None:
    """Route the root logger to stdout as JSON lines."""
    handler = logging.StreamHandler(stream=sys.stdout)
    handler.setFormatter(JsonLogFormatter(resolve_timezone(tz_name)))

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    root_logger.addHandler(handler)


def set_correlation_id(correlation_id: str) -> None:
    """Bind the correlation id to the current request context."""
    CORRELATION_ID_CTX.set(correlation_id)
