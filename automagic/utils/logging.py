# automagic/utils/logging.py
"""Logging setup with per-task correlation.

Each scheduler loop runs in its own asyncio task, and so in its own copy
of the context. The loop stores its task name in a ContextVar, and
TaskContextFilter copies it onto every record as ``record.task``, so
lines from concurrent loops (and the HTTP API, which has no task) can be
told apart in both the plain and the JSON output.
"""

import json
import logging
from contextvars import ContextVar
from typing import Any

NO_TASK = "-"

_task_name: ContextVar[str] = ContextVar("task_name", default=NO_TASK)

PLAIN_FORMAT = "%(asctime)s %(levelname)s [%(task)s] %(name)s: %(message)s"


def set_task_name(task_name: str) -> None:
    """Tag everything logged from the current context with task_name."""
    _task_name.set(task_name)


def get_task_name() -> str:
    return _task_name.get()


class TaskContextFilter(logging.Filter):
    """Adds the current task name to every record as ``task``."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "task"):
            record.task = get_task_name()
        return True


class StructuredFormatter(logging.Formatter):
    """One JSON object per line.

    The ``task`` key is only present for records logged inside a
    scheduler loop.
    """

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        task = getattr(record, "task", NO_TASK)
        if task != NO_TASK:
            payload["task"] = task
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload)


_handler: logging.Handler | None = None


def configure_logging(level: int | str = logging.INFO, json_output: bool = False) -> None:
    """Install the daemon's log handler on the root logger.

    Calling it again replaces the handler installed by the previous call.

    Args:
        level: Root logger level.
        json_output: Use StructuredFormatter instead of the plain format.
    """
    global _handler
    if _handler is not None:
        logging.root.removeHandler(_handler)

    _handler = logging.StreamHandler()
    _handler.addFilter(TaskContextFilter())
    _handler.setFormatter(
        StructuredFormatter() if json_output else logging.Formatter(PLAIN_FORMAT)
    )
    logging.root.addHandler(_handler)
    logging.root.setLevel(level)
