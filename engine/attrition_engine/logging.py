"""
Logging for the attrition engine.

Every record carries the id of the attrition run that emitted it, so a kill
in the log can be traced back to its run. Recent records are also kept in
memory for the /logs endpoint.
"""

import logging
import sys
from collections import deque
from contextvars import ContextVar
from datetime import UTC, datetime
from typing import Any

current_run_id: ContextVar[str | None] = ContextVar("current_run_id", default=None)

LOG_FORMAT = "%(timestamp)s | %(levelname)-8s | %(name)s | %(run_id)s%(message)s"


class AttritionFormatter(logging.Formatter):
    """Adds an ISO timestamp and a `[run_id] ` prefix to each record."""

    def format(self, record: logging.LogRecord) -> str:
        record.timestamp = datetime.now(UTC).isoformat()
        run_id = current_run_id.get()
        record.run_id = f"[{run_id}] " if run_id else ""
        return super().format(record)


class InMemoryHandler(logging.Handler):
    """Ring buffer of recent records as dicts."""

    def __init__(self, capacity: int = 1000):
        super().__init__()
        self.logs: deque[dict[str, Any]] = deque(maxlen=capacity)

    def emit(self, record: logging.LogRecord) -> None:
        try:
            self.logs.append(
                {
                    "timestamp": getattr(record, "timestamp", datetime.now(UTC).isoformat()),
                    "level": record.levelname,
                    "level_no": record.levelno,
                    "logger": record.name,
                    "run_id": current_run_id.get(),
                    "message": record.getMessage(),
                }
            )
        except Exception:
            self.handleError(record)


_in_memory_handler = InMemoryHandler()


def setup_logging(level: str = "INFO") -> logging.Logger:
    """
    Route all logging to stdout and the in-memory buffer.

    Args:
        level: Logging level name

    Returns:
        Configured root logger
    """
    root = logging.getLogger()
    root.handlers.clear()

    numeric_level = getattr(logging, level.upper(), logging.INFO)
    root.setLevel(numeric_level)
    formatter = AttritionFormatter(LOG_FORMAT)

    stream = logging.StreamHandler(sys.stdout)
    for handler in (stream, _in_memory_handler):
        handler.setLevel(numeric_level)
        handler.setFormatter(formatter)
        root.addHandler(handler)

    # Reboot delivery would otherwise log every request
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

    return root


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def get_in_memory_logs(level: str = "INFO", limit: int = 50) -> list[dict[str, Any]]:
    """Buffered records at or above `level`, newest last."""
    numeric_level = getattr(logging, level.upper(), logging.INFO)
    filtered = [log for log in _in_memory_handler.logs if log["level_no"] >= numeric_level]
    return filtered[-limit:]


def set_run_id(run_id: str) -> None:
    current_run_id.set(run_id)


def clear_run_id() -> None:
    current_run_id.set(None)
