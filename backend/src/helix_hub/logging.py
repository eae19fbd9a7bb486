"""Structured logging for Helix Hub.

Log lines are JSON in deployed environments and plain text locally.
Every record carries the correlation ID of the API request that
produced it (``-`` outside a request), so resolver and database logs
can be traced back to a single call.
"""

import json
import logging
import sys
from contextvars import ContextVar, Token
from datetime import datetime, timezone
from typing import Any

from .config import get_settings

# Attributes present on every LogRecord; anything else came in via ``extra``.
_RESERVED_ATTRS = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", None, None)).keys()
) | {"message", "asctime"}

_request_id_var: ContextVar[str | None] = ContextVar("request_id", default=None)


def set_request_id(request_id: str | None) -> Token:
    """Bind a correlation ID to the current context."""
    return _request_id_var.set(request_id)


def reset_request_id(token: Token) -> None:
    """Restore the correlation ID that was bound before ``set_request_id``."""
    _request_id_var.reset(token)


def get_request_id() -> str | None:
    """Correlation ID bound to the current context, if any."""
    return _request_id_var.get()


class RequestContextFilter(logging.Filter):
    """Stamps each record with the current request's correlation ID."""

    def filter(self, record: logging.LogRecord) -> bool:
        if getattr(record, "request_id", None) is None:
            record.request_id = get_request_id() or "-"
        return True


class JSONFormatter(logging.Formatter):
    """One JSON object per line, including any ``extra`` fields."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}:{record.funcName}:{record.lineno}",
        }
        entry.update(
            (key, value)
            for key, value in vars(record).items()
            if key not in _RESERVED_ATTRS and not key.startswith("_")
        )
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class TextFormatter(logging.Formatter):
    """Single-line format for local development."""

    def __init__(self):
        super().__init__(
            fmt="%(asctime)s %(levelname)-7s [%(request_id)s] %(name)s: %(message)s",
            datefmt="%H:%M:%S",
        )


def setup_logging(level: str | None = None) -> None:
    """Install the root handler.

    Args:
        level: Overrides ``LOG_LEVEL`` when given; the CLI keeps its
            report output clean by logging warnings only
    """
    settings = get_settings()
    level_name = (level or settings.log_level).upper()

    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(RequestContextFilter())
    handler.setFormatter(
        JSONFormatter() if settings.log_format == "json" else TextFormatter()
    )

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(getattr(logging, level_name, logging.INFO))

    for noisy in ("httpx", "httpcore", "sqlalchemy.engine", "aioodbc"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    get_logger(__name__).debug(
        "Logging configured",
        extra={"log_level": level_name, "log_format": settings.log_format},
    )


def get_logger(name: str) -> logging.Logger:
    """Module logger; a thin alias so call sites import from one place."""
    return logging.getLogger(name)


class LoggerAdapter(logging.LoggerAdapter):
    """Merges fixed context fields into every call's ``extra``."""

    def process(self, msg: str, kwargs: dict[str, Any]) -> tuple[str, dict[str, Any]]:
        kwargs["extra"] = {**self.extra, **kwargs.get("extra", {})}
        return msg, kwargs


def get_context_logger(name: str, **context: Any) -> LoggerAdapter:
    """Logger that attaches ``context`` to everything it emits.

    Usage:
        logger = get_context_logger(__name__, source="instructions")
        logger.warning("Query failed")  # carries source="instructions"
    """
    return LoggerAdapter(get_logger(name), context)


# =========================
# Event helpers
# =========================


def log_resolution_event(
    action: str,
    key: str,
    record_id: str | None,
    signal: str | None = None,
    existing_id: str | None = None,
) -> None:
    """Log a single identity resolution decision.

    Args:
        action: Decision taken (created, merged, collision)
        key: Group key the record ended up under
        record_id: Declared ID of the incoming record
        signal: Identity signal that decided the comparison
        existing_id: Declared ID of the group's representative
    """
    get_logger("helix_hub.resolution").debug(
        f"Resolution {action}: {record_id or '<no id>'} -> {key}",
        extra={
            "event": "enquiry_resolution",
            "action": action,
            "key": key,
            "record_id": record_id,
            "existing_id": existing_id,
            "signal": signal,
        },
    )


def log_resolution_summary(
    input_count: int,
    group_count: int,
    merged_count: int,
    collision_count: int,
) -> None:
    """Log the outcome of a resolver pass."""
    get_logger("helix_hub.resolution").info(
        f"Resolved {input_count} enquiries into {group_count} groups",
        extra={
            "event": "resolution_summary",
            "input_count": input_count,
            "group_count": group_count,
            "merged_count": merged_count,
            "collision_count": collision_count,
        },
    )


def log_source_warning(source: str, error: str) -> None:
    """Log a failed enquiry source that was downgraded to a warning."""
    get_logger("helix_hub.db").warning(
        f"Enquiry source {source} failed: {error}",
        extra={"event": "source_warning", "source": source, "error": error},
    )


def log_api_request(method: str, path: str, status_code: int, duration_ms: float) -> None:
    """Log a completed API request; the correlation ID comes from context."""
    get_logger("helix_hub.api").info(
        f"{method} {path} -> {status_code} in {duration_ms}ms",
        extra={
            "event": "api_request",
            "method": method,
            "path": path,
            "status_code": status_code,
            "duration_ms": duration_ms,
        },
    )
