# automagic/core/scheduler/models.py
"""Data models for the scheduler module."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from automagic.core.scheduler.outcome import Outcome


class TaskState(str, Enum):
    """Lifecycle state of a registered recurring task."""

    WAITING = "waiting"
    RUNNING = "running"
    TERMINATED = "terminated"


@dataclass
class ScheduledTask:
    """A recurring task owned by one scheduler loop.

    Attributes:
        name: Human-readable task name, used in logs and notifications.
        get_next_fire_time: Returns when the task should next run. Called
            fresh before every wait, so it may depend on current state.
        action: Coroutine function run on every tick. Returns an Outcome;
            returning None is treated as Outcome.CONTINUE.
        run_immediately: Skip the first wait and run straight away.
        state: Current loop state.
        run_count: Number of completed runs (successful or not).
        last_run_at: When the last run started.
        next_run_at: When the loop is currently waiting for.
    """

    name: str
    get_next_fire_time: Callable[[], datetime]
    action: Callable[[], Awaitable[Outcome | None]]
    run_immediately: bool = False
    state: TaskState = TaskState.WAITING
    run_count: int = 0
    last_run_at: datetime | None = None
    next_run_at: datetime | None = field(default=None)

    def to_dict(self) -> dict:
        """Convert to dictionary for status reporting.

        Returns:
            Dictionary representation of the task.
        """
        return {
            "name": self.name,
            "state": self.state.value,
            "run_immediately": self.run_immediately,
            "run_count": self.run_count,
            "last_run_at": self.last_run_at.isoformat() if self.last_run_at else None,
            "next_run_at": self.next_run_at.isoformat() if self.next_run_at else None,
        }
