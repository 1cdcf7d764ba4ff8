"""Logging setup shared by the hub, the chat controller and the relay app."""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Optional

from repairhub.core.config import settings
from repairhub.core.context import current_log_fields

# Attributes every LogRecord carries; anything else arrived through `extra=`
_RESERVED_ATTRS = set(vars(logging.makeLogRecord({}))) | {"message", "asctime"}

_CONTEXT_FIELDS = ("session_id", "chat_id")


class SessionContextFilter(logging.Filter):
    """Copy session context fields onto each record."""

    def filter(self, record: logging.LogRecord) -> bool:
        ctx = current_log_fields()
        for field in _CONTEXT_FIELDS:
            if not hasattr(record, field):
                setattr(record, field, ctx.get(field))
        return True


class JsonFormatter(logging.Formatter):
    """Render records as one JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key, value in record.__dict__.items():
            if key in _RESERVED_ATTRS or key.startswith("_"):
                continue
            if value is None and key in _CONTEXT_FIELDS:
                continue
            payload[key] = value
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


TEXT_FORMAT = "%(asctime)s %(levelname)s [%(name)s] [session=%(session_id)s] %(message)s"


def setup_logging(level: Optional[str] = None, log_format: Optional[str] = None) -> None:
    """Configure the root logger from settings (or explicit overrides)."""
    level = (level or settings.log_level).upper()
    log_format = log_format or settings.log_format

    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(SessionContextFilter())
    if log_format == "json":
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter(TEXT_FORMAT))

    root = logging.getLogger()
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(level)


def get_logger(name: str) -> logging.Logger:
    """Return a module logger."""
    return logging.getLogger(name)
