"""Recurring task scheduler built on asyncio.

Every registered task gets its own asyncio.Task running an explicit
wait -> run -> decide loop. The next fire time is recomputed after each
run, and a failing run never stops the loop.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import datetime

from automagic.core.scheduler.clock import (
    MAX_SLEEP_SECONDS,
    Clock,
    Sleeper,
    sleep_until,
    utc_now,
)
from automagic.core.scheduler.models import ScheduledTask, TaskState
from automagic.core.scheduler.notification import NotificationProtocol
from automagic.core.scheduler.outcome import Outcome
from automagic.utils.logging import set_task_name

logger = logging.getLogger(__name__)


class TaskScheduler:
    """Runs recurring tasks as independent background loops.

    Manages scheduled tasks with:
    - One asyncio.Task per registration, no shared state between loops
    - Chunked sleeps so multi-week waits are safe
    - Optional notifier for task failures
    """

    def __init__(
        self,
        notifier: NotificationProtocol | None = None,
        *,
        clock: Clock = utc_now,
        sleep: Sleeper = asyncio.sleep,
        max_sleep: float = MAX_SLEEP_SECONDS,
    ) -> None:
        """Initialize the scheduler.

        Args:
            notifier: Receives a notification whenever a task run fails.
            clock: Source of the current time.
            sleep: Sleep primitive used between chunks.
            max_sleep: Longest single sleep in seconds.
        """
        self._notifier = notifier
        self._clock = clock
        self._sleep = sleep
        self._max_sleep = max_sleep
        self._tasks: list[ScheduledTask] = []
        self._handles: set[asyncio.Task] = set()

    def set_notifier(self, notifier: NotificationProtocol) -> None:
        """Set the notifier used to report task failures.

        Args:
            notifier: Implementation of NotificationProtocol.
        """
        self._notifier = notifier
        logger.info("Notifier set for scheduler notifications")

    def add_scheduled_task(
        self,
        name: str,
        get_next_fire_time: Callable[[], datetime],
        action: Callable[[], Awaitable[Outcome | None]],
        run_immediately: bool = False,
    ) -> asyncio.Task:
        """Register a recurring task and start its loop in the background.

        Returns as soon as the loop is created; no iteration is awaited.
        Must be called from a running event loop.

        Args:
            name: Task name for logs and notifications.
            get_next_fire_time: Returns the next time the task should run.
            action: Coroutine function run on each tick.
            run_immediately: Run once right away before the first wait.

        Returns:
            The asyncio.Task driving the loop. It completes when the task
            returns Outcome.STOP.
        """
        task = ScheduledTask(
            name=name,
            get_next_fire_time=get_next_fire_time,
            action=action,
            run_immediately=run_immediately,
        )
        handle = asyncio.get_running_loop().create_task(
            self._run_loop(task), name=f"scheduled:{name}"
        )
        self._tasks.append(task)
        self._handles.add(handle)
        handle.add_done_callback(self._on_loop_done)

        logger.info(
            "Task scheduled: name=%s, run_immediately=%s", name, run_immediately
        )
        return handle

    def get_tasks(self) -> list[ScheduledTask]:
        """Get all tasks registered with this scheduler.

        Returns:
            List of ScheduledTask descriptors, terminated ones included.
        """
        return list(self._tasks)

    def get_task(self, name: str) -> ScheduledTask | None:
        """Get the first registered task with the given name.

        Args:
            name: Task name to look up.

        Returns:
            ScheduledTask or None if not found.
        """
        return next((t for t in self._tasks if t.name == name), None)

    async def _run_loop(self, task: ScheduledTask) -> None:
        set_task_name(task.name)
        skip_wait = task.run_immediately

        while True:
            if not skip_wait:
                task.state = TaskState.WAITING
                try:
                    task.next_run_at = task.get_next_fire_time()
                except Exception as e:
                    logger.exception("Task %s could not compute its next run", task.name)
                    await self._notify_failure(task, e)
                    task.state = TaskState.TERMINATED
                    return
                await sleep_until(
                    task.next_run_at,
                    clock=self._clock,
                    sleep=self._sleep,
                    max_chunk=self._max_sleep,
                )
            skip_wait = False

            task.state = TaskState.RUNNING
            outcome = await self._run_once(task)

            if outcome is Outcome.STOP:
                task.state = TaskState.TERMINATED
                logger.info("Task %s stopped after %d runs", task.name, task.run_count)
                return

            # Hand control back to the event loop between cycles
            await asyncio.sleep(0)

    async def _run_once(self, task: ScheduledTask) -> Outcome:
        task.last_run_at = self._clock()
        try:
            outcome = await task.action()
        except Exception as e:
            logger.exception("Task %s failed", task.name)
            await self._notify_failure(task, e)
            outcome = Outcome.CONTINUE
        else:
            logger.debug("Task %s completed with %s", task.name, outcome)
        finally:
            task.run_count += 1

        return Outcome.STOP if outcome is Outcome.STOP else Outcome.CONTINUE

    async def _notify_failure(self, task: ScheduledTask, error: Exception) -> None:
        if self._notifier is None:
            return
        try:
            await self._notifier.notify(f"Task {task.name} failed", str(error))
        except Exception:
            logger.exception("Notifier failed while reporting task %s", task.name)

    def _on_loop_done(self, handle: asyncio.Task) -> None:
        self._handles.discard(handle)
        if handle.cancelled():
            return
        error = handle.exception()
        if error is not None:
            logger.error("Scheduler loop %s crashed: %s", handle.get_name(), error)

    def shutdown(self) -> None:
        """Cancel every running loop.

        In-flight runs are interrupted at their next suspension point.
        """
        for handle in list(self._handles):
            handle.cancel()
        for task in self._tasks:
            task.state = TaskState.TERMINATED
        logger.info("Scheduler shutdown (%d loops cancelled)", len(self._handles))

    @property
    def is_running(self) -> bool:
        """Check if any loop is still alive.

        Returns:
            True if at least one registered task has not terminated.
        """
        return any(not handle.done() for handle in self._handles)


_scheduler: TaskScheduler | None = None


def get_task_scheduler() -> TaskScheduler:
    """Get the process-wide TaskScheduler instance.

    Returns:
        TaskScheduler singleton instance.
    """
    global _scheduler
    if _scheduler is None:
        _scheduler = TaskScheduler()
    return _scheduler


def reset_task_scheduler() -> None:
    """Drop the process-wide scheduler (for testing)."""
    global _scheduler
    _scheduler = None
