"""Logging: JSON lines in production, readable text with context in development.

Invariants:
    - Every record carries its own creation time (UTC), level, logger and message
    - Context fields passed via `extra=` are emitted only when set, in CONTEXT_FIELDS order
    - setup_logging() leaves exactly one jobboard handler on the root logger,
      however often it is called
    - SQLAlchemy engine and httpx request logs are capped at WARNING
"""

import json
import logging
from datetime import datetime, timezone

CONTEXT_FIELDS = (
    "job_id", "application_id", "user_id", "error_code",
    "operation", "count", "path", "cache_key",
)
_HANDLER_NAME = "jobboard"
_NOISY_LOGGERS = ("sqlalchemy.engine", "httpx")


def _context(record: logging.LogRecord) -> dict:
    return {
        key: record.__dict__[key]
        for key in CONTEXT_FIELDS
        if record.__dict__.get(key) is not None
    }


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        log = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **_context(record),
        }
        if record.exc_info:
            log["exception"] = self.formatException(record.exc_info)
        return json.dumps(log, ensure_ascii=False, default=str)


class ContextTextFormatter(logging.Formatter):
    """`<time> <LEVEL> <logger> - <message> [key=value ...]`, traceback below."""

    def __init__(self):
        super().__init__("%(asctime)s %(levelname)s %(name)s - %(message)s")

    def format(self, record: logging.LogRecord) -> str:
        first, _, rest = super().format(record).partition("\n")
        context = _context(record)
        if context:
            first += " [" + " ".join(f"{k}={v}" for k, v in context.items()) + "]"
        return f"{first}\n{rest}" if rest else first


def setup_logging(level: str = "INFO", fmt: str = "json") -> logging.Handler:
    handler = logging.StreamHandler()
    handler.set_name(_HANDLER_NAME)
    handler.setFormatter(JSONFormatter() if fmt == "json" else ContextTextFormatter())

    root = logging.getLogger()
    for existing in [h for h in root.handlers if h.get_name() == _HANDLER_NAME]:
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    return handler
