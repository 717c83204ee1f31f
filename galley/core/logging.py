"""
Logging for the galley service.

One "galley" logger. Production writes one JSON object per line; other
environments get a short human-readable line with the request id and any
call/task/feature tags. The request id lives in a ContextVar set by
RequestIdMiddleware, so service code never has to pass it around.
"""

import json
import logging
import os
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Optional

LOGGER_NAME = "galley"
MAX_FIELD_CHARS = 500

request_id_ctx_var: ContextVar[Optional[str]] = ContextVar("galley_request_id", default=None)

# record attributes promoted to top-level keys in JSON output
_TAGS = ("user_id", "call_id", "task", "feature", "event_type", "error_code", "status")

_LATENCY_BUCKETS = ((10, "<10ms"), (100, "10-100ms"), (500, "100-500ms"), (1000, "500-1000ms"))


def get_request_id(default: Optional[str] = None) -> Optional[str]:
    return request_id_ctx_var.get() or default


def latency_bucket_ms(latency_ms: Optional[float]) -> str:
    if latency_ms is None:
        return "unknown"
    for ceiling, label in _LATENCY_BUCKETS:
        if latency_ms < ceiling:
            return label
    return ">=1000ms"


def _iso(record: logging.LogRecord) -> str:
    stamp = datetime.fromtimestamp(record.created, timezone.utc)
    return stamp.isoformat(timespec="milliseconds").replace("+00:00", "Z")


class RequestContextFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        if not getattr(record, "request_id", None):
            record.request_id = get_request_id()
        return True


class GalleyFormatter(logging.Formatter):
    """JSON lines when `as_json`, otherwise `time LEVEL [rid] message key=value`."""

    def __init__(self, as_json: bool = False):
        super().__init__()
        self.as_json = as_json

    def _tags(self, record: logging.LogRecord) -> Dict[str, Any]:
        return {name: getattr(record, name) for name in _TAGS if getattr(record, name, None) is not None}

    def format(self, record: logging.LogRecord) -> str:
        tags = self._tags(record)
        if self.as_json:
            line = {
                "timestamp": _iso(record),
                "level": record.levelname,
                "logger": record.name,
                "message": record.getMessage(),
                "request_id": getattr(record, "request_id", None),
                **tags,
            }
            if record.exc_info:
                line["exc_info"] = self.formatException(record.exc_info)
            return json.dumps(line, default=str)

        rid = getattr(record, "request_id", None)
        text = f"{_iso(record)} {record.levelname:<7} [{rid or '-'}] {record.getMessage()}"
        if tags:
            text += " " + " ".join(f"{k}={v}" for k, v in tags.items())
        if record.exc_info:
            text += "\n" + self.formatException(record.exc_info)
        return text


def configure_logging(env: str = "development", level: Optional[str] = None) -> logging.Logger:
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel((level or os.getenv("LOG_LEVEL") or "INFO").upper())

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(GalleyFormatter(as_json=env.lower() == "production"))
    handler.addFilter(RequestContextFilter())
    logger.handlers = [handler]

    # uvicorn's access log duplicates request.complete
    logging.getLogger("uvicorn.access").propagate = False
    return logger


def _clip(value: Any) -> str:
    text = value if isinstance(value, str) else json.dumps(value, default=str)
    if len(text) > MAX_FIELD_CHARS:
        return text[:MAX_FIELD_CHARS] + "...<truncated>"
    return text


def log_event(
    level: str,
    msg: str,
    *,
    request_id: Optional[str] = None,
    user_id: Optional[str] = None,
    call_id: Optional[str] = None,
    event_type: Optional[str] = None,
    error_code: Optional[str] = None,
    extra: Optional[Dict[str, object]] = None,
):
    """Log `msg` with correlation ids; values in `extra` are clipped."""
    logger = logging.getLogger(LOGGER_NAME)
    if not logger.handlers:
        configure_logging(os.getenv("ENV", "development"))

    fields: Dict[str, Any] = {
        "request_id": request_id or get_request_id(),
        "user_id": user_id,
        "call_id": call_id,
        "event_type": event_type,
        "error_code": error_code,
    }
    for key, value in (extra or {}).items():
        fields[key] = _clip(value)

    getattr(logger, level, logger.info)(msg, extra=fields)
