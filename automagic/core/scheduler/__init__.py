"""Scheduler module for recurring background tasks.

Provides task scheduling capabilities:
- Chunked sleep that survives arbitrarily long waits
- Outcome signals and sequential result combinators
- asyncio-based recurring task loops with pluggable notifications
"""

from automagic.core.scheduler.clock import MAX_SLEEP_SECONDS, sleep_until, utc_now
from automagic.core.scheduler.manager import TaskScheduler, get_task_scheduler
from automagic.core.scheduler.models import ScheduledTask, TaskState
from automagic.core.scheduler.notification import (
    LogNotifier,
    NotificationProtocol,
    NotifySendNotifier,
    create_notifier,
)
from automagic.core.scheduler.outcome import (
    Err,
    Ok,
    Outcome,
    Result,
    combine_sequentially,
)

__all__ = [
    "MAX_SLEEP_SECONDS",
    "Err",
    "LogNotifier",
    "NotificationProtocol",
    "NotifySendNotifier",
    "Ok",
    "Outcome",
    "Result",
    "ScheduledTask",
    "TaskScheduler",
    "TaskState",
    "combine_sequentially",
    "create_notifier",
    "get_task_scheduler",
    "sleep_until",
    "utc_now",
]
