"""Structured logging configuration for the conversation core."""

import json
import logging
import logging.config
import os
from datetime import datetime, timezone
from pathlib import Path

from .config import resolve_log_path

# Record attributes lifted to top-level keys when passed via `extra`.
CORRELATION_FIELDS = ("thread_id", "message_id", "task_id", "actor_id")

# Client libraries that log every request at INFO.
NOISY_LOGGERS = ("httpx", "httpcore", "aiohttp")


class JSONFormatter(logging.Formatter):
    """One JSON object per record, with thread/message correlation ids."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "function": record.funcName,
            "line": record.lineno,
        }
        for field in CORRELATION_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                log_data[field] = value

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if hasattr(record, "context"):
            log_data["context"] = record.context

        return json.dumps(log_data, default=str, ensure_ascii=False)


def setup_logging(
    log_level: str | None = None,
    log_file: str | None = None,
    console: bool = True,
) -> None:
    """
    Configure root logging: a rotating JSON file plus optional stdout.

    Args:
        log_level: Defaults to LOG_LEVEL env var or INFO.
        log_file: Defaults to LOG_FILE env var or 04_logs/app.log.
        console: Also write records to stdout.
    """
    level = (log_level or os.getenv("LOG_LEVEL", "INFO")).upper()
    log_path = Path(log_file) if log_file else resolve_log_path(os.getenv("LOG_FILE"))
    log_path.parent.mkdir(parents=True, exist_ok=True)

    handlers = {
        "file": {
            "class": "logging.handlers.RotatingFileHandler",
            "filename": str(log_path),
            "maxBytes": 10 * 1024 * 1024,
            "backupCount": 5,
            "formatter": "json",
            "encoding": "utf-8",
        },
    }
    if console:
        handlers["console"] = {
            "class": "logging.StreamHandler",
            "formatter": "json",
            "stream": "ext://sys.stdout",
        }

    logging.config.dictConfig({
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {"json": {"()": "inbox_sync.logging_config.JSONFormatter"}},
        "handlers": handlers,
        "loggers": {name: {"level": "WARNING"} for name in NOISY_LOGGERS},
        "root": {"level": level, "handlers": list(handlers)},
    })


def get_logger(name: str) -> logging.Logger:
    """Module logger; call with __name__."""
    return logging.getLogger(name)
