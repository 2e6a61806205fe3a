"""
Logging configuration.

- **Console handler**: human-readable, colour-coded lines for local work.
- **Rotating JSON file**: one JSON object per line in ``logs/auditvault.log``
  for log aggregation, plus an error-only file for alerting.
- **Request correlation**: the request ID set by ``RequestIDMiddleware`` is
  held in a context variable and stamped onto every record by
  :class:`RequestIDFilter`, so a single upload or status change can be traced
  across the service, repository and blob store log lines.

Usage:
    Call ``setup_logging()`` once during application startup (in ``main.py``).
    Modules obtain loggers with ``logging.getLogger(__name__)``.
"""

import json
import logging
import os
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from typing import Any, Dict, Optional

from auditvault.core.config import settings

# ── Log directory, relative to the project root ──
LOG_DIR = os.path.join(os.path.dirname(os.path.dirname(os.path.dirname(__file__))), "logs")
LOG_FILE = "auditvault.log"
ERROR_LOG_FILE = "auditvault-error.log"

# Set per request by the middleware; ``None`` outside a request (startup, seed).
request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)


class RequestIDFilter(logging.Filter):
    """Attach the current request ID (if any) to each log record."""

    def filter(self, record: logging.LogRecord) -> bool:
        if getattr(record, "request_id", None) is None:
            record.request_id = request_id_var.get()
        return True


class JSONFormatter(logging.Formatter):
    """
    Formats log records as single-line JSON objects.

    Output example::

        {"timestamp": "2025-02-17T10:30:00.123+00:00", "level": "INFO",
         "logger": "auditvault.services.document_service",
         "message": "Document 3f2c... status PENDING -> APPROVED by ...",
         "module": "document_service", "function": "update_status", "line": 42,
         "request_id": "6c1d..."}
    """

    EXTRA_FIELDS = ("document_id", "user_id", "status_code", "method", "path", "elapsed_ms")

    def format(self, record: logging.LogRecord) -> str:
        log_entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        request_id = getattr(record, "request_id", None)
        if request_id:
            log_entry["request_id"] = request_id

        if record.exc_info and record.exc_info[0] is not None:
            log_entry["exception"] = self.formatException(record.exc_info)

        for key in self.EXTRA_FIELDS:
            val = getattr(record, key, None)
            if val is not None:
                log_entry[key] = val

        return json.dumps(log_entry, default=str)


class ConsoleFormatter(logging.Formatter):
    """Human-readable formatter with ANSI colours per level."""

    COLOURS = {
        "DEBUG": "\033[36m",  # Cyan
        "INFO": "\033[32m",  # Green
        "WARNING": "\033[33m",  # Yellow
        "ERROR": "\033[31m",  # Red
        "CRITICAL": "\033[35m",  # Magenta
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        colour = self.COLOURS.get(record.levelname, self.RESET)
        timestamp = datetime.fromtimestamp(record.created, tz=timezone.utc).strftime(
            "%Y-%m-%d %H:%M:%S"
        )

        request_id = getattr(record, "request_id", None)
        rid_str = f" [{request_id[:8]}]" if request_id else ""

        base = (
            f"{timestamp} | {colour}{record.levelname:<8}{self.RESET} | "
            f"{record.name}{rid_str} | {record.getMessage()}"
        )
        if record.exc_info and record.exc_info[0] is not None:
            base += "\n" + self.formatException(record.exc_info)
        return base


def _rotating_handler(filename: str, level: int) -> RotatingFileHandler:
    handler = RotatingFileHandler(
        filename=os.path.join(LOG_DIR, filename),
        maxBytes=settings.LOG_FILE_MAX_BYTES,
        backupCount=settings.LOG_FILE_BACKUP_COUNT,
        encoding="utf-8",
    )
    handler.setLevel(level)
    handler.setFormatter(JSONFormatter())
    handler.addFilter(RequestIDFilter())
    return handler


def setup_logging() -> None:
    """
    Configure the root logger with console + rotating file handlers.

    Idempotent: does nothing if the root logger already has handlers.

    ``DEBUG=true`` switches everything to DEBUG and turns on SQL echo;
    otherwise ``LOG_LEVEL`` decides (default INFO).
    """
    root_logger = logging.getLogger()

    if root_logger.handlers:
        return

    level = (
        logging.DEBUG
        if settings.DEBUG
        else getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)
    )
    root_logger.setLevel(level)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(ConsoleFormatter())
    console_handler.addFilter(RequestIDFilter())
    root_logger.addHandler(console_handler)

    os.makedirs(LOG_DIR, exist_ok=True)
    root_logger.addHandler(_rotating_handler(LOG_FILE, level))
    root_logger.addHandler(_rotating_handler(ERROR_LOG_FILE, logging.ERROR))

    # ── Quieten third-party loggers ──
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.error").setLevel(logging.INFO)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("passlib").setLevel(logging.ERROR)
    logging.getLogger("sqlalchemy.engine").setLevel(
        logging.DEBUG if settings.DEBUG else logging.WARNING
    )

    root_logger.info(
        "Logging initialized: level=%s, file=%s, max_size=%s MB, backups=%d",
        logging.getLevelName(level),
        os.path.join(LOG_DIR, LOG_FILE),
        settings.LOG_FILE_MAX_BYTES // (1024 * 1024),
        settings.LOG_FILE_BACKUP_COUNT,
    )
