from __future__ import annotations

import datetime as dt
import json
import logging
import os
import sys
import uuid
from typing import Any

UTC = dt.UTC

# Standard LogRecord attributes that never belong in the "extra" payload
_STANDARD_FIELDS = {
    "args",
    "msg",
    "name",
    "levelno",
    "levelname",
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
    "getMessage",
    "message",
}

_PERFORMANCE_FIELDS = {
    "latency_ms",
    "duration_ms",
    "delay_seconds",
    "attempt",
    "attempts",
}

_SYNC_FIELDS = {
    "packing_list_id",
    "entity",
    "operation",
    "pending_operations",
    "query_keys",
}


class EnhancedJsonFormatter(logging.Formatter):
    """JSON formatter that groups structured ``extra`` fields by concern."""

    def __init__(self, include_location: bool = True, include_process_info: bool = False):
        super().__init__()
        self.include_location = include_location
        self.include_process_info = include_process_info
        self.hostname = os.uname().nodename if hasattr(os, "uname") else "unknown"

    def format(self, record: logging.LogRecord) -> str:
        base: dict[str, Any] = {
            "timestamp": dt.datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "hostname": self.hostname,
        }

        if self.include_location:
            base.update(
                {
                    "module": record.module,
                    "function": record.funcName,
                    "line": record.lineno,
                }
            )

        if self.include_process_info:
            base.update(
                {
                    "process": record.process,
                    "thread_name": getattr(record, "threadName", "MainThread"),
                }
            )

        if record.exc_info:
            base["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "traceback": self.formatException(record.exc_info),
            }

        if record.stack_info:
            base["stack_trace"] = record.stack_info

        extra_fields: dict[str, Any] = {}
        performance_fields: dict[str, Any] = {}
        sync_fields: dict[str, Any] = {}

        for key, value in record.__dict__.items():
            if key.startswith("_") or key in _STANDARD_FIELDS or key in base:
                continue
            if key == "correlation_id":
                continue
            if key in _PERFORMANCE_FIELDS:
                performance_fields[key] = value
            elif key in _SYNC_FIELDS:
                sync_fields[key] = value
            else:
                extra_fields[key] = value

        if performance_fields:
            base["performance"] = performance_fields
        if sync_fields:
            base["sync"] = sync_fields
        if extra_fields:
            base["extra"] = extra_fields

        if hasattr(record, "correlation_id"):
            base["correlation_id"] = record.correlation_id

        return json.dumps(
            base, ensure_ascii=False, default=self._json_serializer, separators=(",", ":")
        )

    def _json_serializer(self, obj: Any) -> str:
        if isinstance(obj, set | frozenset):
            return str(sorted(str(item) for item in obj))
        if hasattr(obj, "__dict__"):
            return f"<{obj.__class__.__name__}>"
        return str(obj)


def setup_json_logging(
    level: str = "INFO",
    include_location: bool = True,
    include_process_info: bool = False,
    log_file: str | None = None,
) -> None:
    """Configure JSON logging on the root logger.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        include_location: Include module/function/line in every record
        include_process_info: Include process and thread information
        log_file: Optional path for a rotating log file
    """
    lvl = getattr(logging, level.upper(), logging.INFO)
    formatter = EnhancedJsonFormatter(
        include_location=include_location, include_process_info=include_process_info
    )

    root = logging.getLogger()
    root.setLevel(lvl)
    root.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    root.addHandler(console_handler)

    if log_file:
        from logging.handlers import RotatingFileHandler

        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=20 * 1024 * 1024,
            backupCount=3,
        )
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("peewee").setLevel(logging.INFO)

    logging.getLogger(__name__).info(
        "json_logging_initialized",
        extra={"setup_config": {"level": level, "log_file": log_file}},
    )


def generate_correlation_id() -> str:
    """Generate a short correlation ID for tracing one operation across log records."""
    return uuid.uuid4().hex[:12]


__all__ = [
    "EnhancedJsonFormatter",
    "generate_correlation_id",
    "setup_json_logging",
]
