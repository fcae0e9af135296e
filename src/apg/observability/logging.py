"""Structured logging: JSON formatter, handler setup and LoggingHook."""

from __future__ import annotations

import json
import logging
import sys
import time
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, TextIO

from apg.tasks.hooks import TaskHook

if TYPE_CHECKING:
    from apg.context import Context
    from apg.tasks.task import Task

__all__ = ["JsonFormatter", "LoggingHook", "configure_logging"]

_REDACTED = "***REDACTED***"

# Attributes every LogRecord carries; anything else came in through ``extra``.
_RESERVED = set(logging.LogRecord("", 0, "", 0, "", (), None).__dict__) | {
    "message",
    "asctime",
}

_TEXT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


class JsonFormatter(logging.Formatter):
    """Render records as one JSON object per line.

    Fields: timestamp, level, message, logger, trace_id, task and extra.
    Extra keys starting with ``_secret_`` are redacted.
    """

    def format(self, record: logging.LogRecord) -> str:
        extra = {
            k: (_REDACTED if k.startswith("_secret_") else v)
            for k, v in record.__dict__.items()
            if k not in _RESERVED and k not in ("trace_id", "task")
        }
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(
                record.created, timezone.utc
            ).isoformat(),
            "level": record.levelname.lower(),
            "message": record.getMessage(),
            "logger": record.name,
            "trace_id": getattr(record, "trace_id", None),
            "task": getattr(record, "task", None),
            "extra": extra or None,
        }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def configure_logging(
    level: str = "warning", format: str = "text", stream: TextIO | None = None
) -> logging.Handler:
    """Install a single stderr handler on the ``apg`` logger and return it."""
    handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
    if format == "json":
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter(_TEXT_FORMAT))

    root = logging.getLogger("apg")
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(level.upper())
    root.propagate = False
    return handler


class LoggingHook(TaskHook):
    """Log task start, completion (with duration) and failure."""

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._logger = logger or logging.getLogger("apg.tasks")

    def before(self, task: Task, context: Context) -> None:
        context.data["_logging_hook_start"] = time.time()
        self._logger.debug(
            f"[{context.trace_id}] START {task}",
            extra={"trace_id": context.trace_id, "task": str(task)},
        )

    def after(self, task: Task, context: Context) -> None:
        start_time = context.data.get("_logging_hook_start", time.time())
        duration_ms = (time.time() - start_time) * 1000
        self._logger.info(
            f"[{context.trace_id}] END {task} ({duration_ms:.2f}ms)",
            extra={
                "trace_id": context.trace_id,
                "task": str(task),
                "duration_ms": duration_ms,
            },
        )

    def on_error(self, task: Task, error: Exception, context: Context) -> None:
        start_time = context.data.get("_logging_hook_start", time.time())
        duration_ms = (time.time() - start_time) * 1000
        self._logger.debug(
            f"[{context.trace_id}] ERROR {task}: {error}",
            extra={
                "trace_id": context.trace_id,
                "task": str(task),
                "duration_ms": duration_ms,
                "error_type": type(error).__name__,
            },
            exc_info=error,
        )
