"""
Structured logging configuration.

Provides:
    • JSON log lines in production, one object per record
    • Coloured console output in development
    • Request-scoped context (request_id, client_ip, endpoint, method)
      stamped onto every record emitted while a request is being served

The outbound-alert audit trail is plain log records emitted by the
notification dispatcher. Dispatch fields passed through ``extra=``
(volunteer_id, distance_km, ...) become top-level JSON keys and a short
``key=value`` suffix in console output.

Usage:
    from backend.app.core.logging_config import setup_logging, get_logger

    setup_logging()
    logger = get_logger(__name__)
    logger.info("Dispatch", extra={"volunteer_id": "vol_1", "distance_km": 3.2})
"""

from __future__ import annotations

import json
import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from backend.app.core.config import settings

_request_context: ContextVar[Dict[str, Any]] = ContextVar(
    "request_context", default={}
)

# Record attributes promoted from ``extra=`` into structured output
DISPATCH_FIELDS = (
    "emergency_id",
    "volunteer_id",
    "distance_km",
    "candidate_count",
    "notified_count",
)
FEED_FIELDS = ("source", "record_count")
HTTP_FIELDS = ("duration_ms", "status_code")

_EXTRA_FIELDS = DISPATCH_FIELDS + FEED_FIELDS + HTTP_FIELDS


def set_request_context(**kwargs: Any) -> None:
    """Replace the request context (middleware calls this per request)."""
    _request_context.set(kwargs)


def get_request_context() -> Dict[str, Any]:
    return _request_context.get()


def _extras(record: logging.LogRecord) -> Dict[str, Any]:
    return {k: getattr(record, k) for k in _EXTRA_FIELDS if hasattr(record, k)}


class RequestContextFilter(logging.Filter):
    """Copy the current request context onto the record as ``ctx``."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.ctx = get_request_context()
        return True


# ═══════════════════════════════════════════════════════════════════════════
# Formatters
# ═══════════════════════════════════════════════════════════════════════════

class JSONFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}:{record.funcName}:{record.lineno}",
        }

        ctx = getattr(record, "ctx", None)
        if ctx:
            entry["context"] = ctx
        entry.update(_extras(record))

        if record.exc_info and record.exc_info[1]:
            exc = record.exc_info[1]
            entry["exception"] = {"type": type(exc).__name__, "message": str(exc)}

        return json.dumps(entry, default=str, ensure_ascii=False)


class PrettyFormatter(logging.Formatter):
    """Coloured single-line format for local development."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, self.RESET)
        ts = self.formatTime(record, "%H:%M:%S")

        ctx = getattr(record, "ctx", None) or {}
        rid = f" [{ctx['request_id'][:8]}]" if ctx.get("request_id") else ""

        extras = _extras(record)
        suffix = ""
        if extras:
            suffix = "  " + " ".join(f"{k}={v}" for k, v in extras.items())

        line = (
            f"{color}{ts} {record.levelname:8s}{self.RESET}"
            f"{rid} {record.name}: {record.getMessage()}{suffix}"
        )
        if record.exc_info and record.exc_info[1]:
            line += f"\n  {type(record.exc_info[1]).__name__}: {record.exc_info[1]}"
        return line


# ═══════════════════════════════════════════════════════════════════════════
# Setup
# ═══════════════════════════════════════════════════════════════════════════

def setup_logging(level: Optional[str] = None, json_output: Optional[bool] = None) -> None:
    """
    Install a single stdout handler on the root logger.

    ``level`` defaults to settings.LOG_LEVEL; ``json_output`` defaults to
    True in production.
    """
    root = logging.getLogger()
    root.setLevel(getattr(logging, (level or settings.LOG_LEVEL).upper(), logging.INFO))
    root.handlers.clear()

    use_json = settings.is_production if json_output is None else json_output

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter() if use_json else PrettyFormatter())
    handler.addFilter(RequestContextFilter())
    root.addHandler(handler)

    for noisy in ("uvicorn.access", "httpx", "httpcore"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
