"""
Logging configuration.

Two formats, selected by LOG_FORMAT:
- "text": ``asctime [LEVEL] logger (request_id): message``
- "json": one JSON object per line with timestamp, level, logger, message,
  request_id and, when present, duration_ms / role

Both carry the X-Request-ID of the request being handled ("-" outside one).
"""

import json
import logging
from datetime import datetime, timezone

from dispo.middleware.request_context import get_request_id

TEXT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s (%(request_id)s): %(message)s"
EXTRA_FIELDS = ("duration_ms", "role")


class RequestIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = get_request_id() or "-"
        return True


class JSONFormatter(logging.Formatter):
    """Emit each log record as a single JSON line."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "request_id": getattr(record, "request_id", None) or get_request_id() or "-",
        }
        payload.update({name: getattr(record, name) for name in EXTRA_FIELDS if hasattr(record, name)})

        if record.exc_info and record.exc_info[1]:
            payload["exception"] = self.formatException(record.exc_info)

        # German template text (Früh, Übersicht) stays readable
        return json.dumps(payload, default=str, ensure_ascii=False)


def configure_logging(log_level: str = "INFO", log_format: str = "text") -> None:
    """Install a single stream handler on the root logger."""
    handler = logging.StreamHandler()
    handler.addFilter(RequestIdFilter())
    handler.setFormatter(JSONFormatter() if log_format == "json" else logging.Formatter(TEXT_FORMAT))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(getattr(logging, log_level.upper(), logging.INFO))
