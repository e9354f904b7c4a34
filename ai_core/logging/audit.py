"""Structured JSON audit logging for the AI core.

One JSON object per line on stdout, plus an optional file (AUDIT_LOG_FILE).
Client creation, upstream retries, cipher failures and rate limit denials
all log through the ``ai_core.audit`` logger with their fields under
``extra={"audit_data": {...}}``.

Fields whose name marks them as secret are masked before serialization.
"""

import json
import logging
import sys
import time
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone

from ai_core.config.settings import get_settings

AUDIT_LOGGER_NAME = "ai_core.audit"
MASK = "***"
SECRET_FIELDS = frozenset({
    "api_key",
    "authorization",
    "credential",
    "encryption_key",
    "plaintext",
    "secret",
})

# Correlates every entry written while serving one HTTP request
request_id_var: ContextVar[str] = ContextVar("request_id", default="")


def mask_secrets(data: dict) -> dict:
    return {k: (MASK if k.lower() in SECRET_FIELDS and v else v) for k, v in data.items()}


class JSONFormatter(logging.Formatter):
    """Serializes a record, its request id and its audit fields as one JSON line."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "request_id": request_id_var.get(),
        }
        audit_data = getattr(record, "audit_data", None)
        if isinstance(audit_data, dict):
            entry.update(mask_secrets(audit_data))
        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = record.exc_info[0].__name__
        return json.dumps(entry, default=str)


def setup_logging() -> logging.Logger:
    """(Re)configure the audit logger from settings. Safe to call repeatedly."""
    settings = get_settings()
    logger = logging.getLogger(AUDIT_LOGGER_NAME)
    logger.setLevel(getattr(logging, settings.log_level.upper(), logging.INFO))

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if settings.audit_log_file:
        handlers.append(logging.FileHandler(settings.audit_log_file, encoding="utf-8"))
    for handler in handlers:
        handler.setFormatter(JSONFormatter())
        logger.addHandler(handler)

    logger.propagate = False
    return logger


def get_audit_logger() -> logging.Logger:
    return logging.getLogger(AUDIT_LOGGER_NAME)


def generate_request_id() -> str:
    return uuid.uuid4().hex[:12]


class RequestTimer:
    """Wall-clock latency of a block, in milliseconds."""

    def __init__(self):
        self.start_time: float = 0
        self.elapsed_ms: float = 0

    def __enter__(self):
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, *args):
        self.elapsed_ms = round((time.perf_counter() - self.start_time) * 1000, 2)
