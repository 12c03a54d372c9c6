from __future__ import annotations

"""Application-wide logging configuration.

Provides a JSON formatter with a minimal, consistent set of fields:
- timestamp (UTC ISO8601), level, logger, service, environment, message
- Supports structured extras via `logger.info(msg, extra={...})` which are
  merged into the JSON (e.g. ``video_id``, ``file_id``, ``user_id``).
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from libs.core.settings import get_settings

# Attributes every LogRecord carries; anything else came in through `extra=`.
_RECORD_ATTRS = frozenset(
    {
        "name",
        "msg",
        "args",
        "levelname",
        "levelno",
        "pathname",
        "filename",
        "module",
        "exc_info",
        "exc_text",
        "stack_info",
        "lineno",
        "funcName",
        "created",
        "msecs",
        "relativeCreated",
        "thread",
        "threadName",
        "processName",
        "process",
        "taskName",
    }
)

# Google client libraries log every discovery/cache lookup at INFO.
_NOISY_LOGGERS = ("googleapiclient.discovery_cache", "googleapiclient.discovery")


class _JsonFormatter(logging.Formatter):
    """One-line JSON log formatter with stable keys and UTC timestamps."""

    def format(self, record: logging.LogRecord) -> str:  # noqa: D401
        settings = get_settings()
        dt = datetime.fromtimestamp(record.created, tz=timezone.utc)
        base: Dict[str, Any] = {
            "timestamp": dt.strftime("%Y-%m-%dT%H:%M:%S.%fZ"),
            "level": record.levelname,
            "logger": record.name,
            "service": settings.service_name,
            "environment": settings.environment,
            "message": record.getMessage(),
        }
        for k, v in record.__dict__.items():
            if k in _RECORD_ATTRS or k in base:
                continue
            base[k] = v
        if record.exc_info:
            etype = getattr(record.exc_info[0], "__name__", str(record.exc_info[0]))
            base["error"] = {
                "class": etype,
                "message": str(record.exc_info[1])[:500],
            }
        # datetimes and other simple objects are rendered with str()
        return json.dumps(base, ensure_ascii=False, default=str)


def setup_logging(level: Optional[str] = None) -> None:
    """Configure root logger to output one-line JSON logs."""

    settings = get_settings()
    name = (level or settings.log_level).upper()
    root_level = getattr(logging, name, logging.INFO)

    handler = logging.StreamHandler()
    handler.setFormatter(_JsonFormatter())

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(root_level)

    for noisy in _NOISY_LOGGERS:
        logging.getLogger(noisy).setLevel(max(root_level, logging.WARNING))


__all__ = ["setup_logging"]
