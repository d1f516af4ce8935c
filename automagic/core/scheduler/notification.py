"""Notification protocol for scheduler.

Provides an abstraction layer for surfacing task and delivery events to the
user, allowing different notification backends (log file, desktop, etc.).
Notifiers are fire-and-forget: they never raise into the caller.
"""

import asyncio
import logging
import shutil
from typing import Protocol

logger = logging.getLogger(__name__)


class NotificationProtocol(Protocol):
    """Protocol for sending user-facing notifications.

    This protocol defines the interface that notification backends must implement.
    It decouples the scheduler and the dispatch pipeline from how the user
    is actually told about events.
    """

    async def notify(self, title: str, detail: str | None = None) -> None:
        """Send a notification.

        Implementations must swallow their own failures.

        Args:
            title: Short summary line.
            detail: Optional longer description (e.g. an error cause).
        """
        ...


def format_notification(title: str, detail: str | None = None) -> str:
    """Join title and optional detail into a single line."""
    return f"{title}: {detail}" if detail else title


class LogNotifier:
    """Notifier that writes notifications to the application log."""

    def __init__(self, log: logging.Logger | None = None) -> None:
        self._log = log or logging.getLogger("automagic.notifications")

    async def notify(self, title: str, detail: str | None = None) -> None:
        self._log.info("%s", format_notification(title, detail))


class NotifySendNotifier:
    """Desktop notifier that spawns ``notify-send``.

    The process is started detached and reaped by a background task, so a
    slow or missing notification daemon cannot block the caller.
    """

    def __init__(self, executable: str = "notify-send") -> None:
        """Initialize with the notify-send executable.

        Args:
            executable: Name or path of the notify-send binary.
        """
        self._executable = executable
        self._reapers: set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        """Number of notify-send processes not reaped yet."""
        return len(self._reapers)

    async def notify(self, title: str, detail: str | None = None) -> None:
        """Spawn notify-send with the title and optional body.

        Args:
            title: Notification summary.
            detail: Notification body.
        """
        args = [title] if detail is None else [title, detail]
        try:
            proc = await asyncio.create_subprocess_exec(
                self._executable,
                *args,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.DEVNULL,
                start_new_session=True,
            )
        except Exception as e:
            logger.warning(
                "notify-send failed (%s): %s", e, format_notification(title, detail)
            )
            return

        reaper = asyncio.create_task(proc.wait())
        self._reapers.add(reaper)
        reaper.add_done_callback(self._on_reaped)

    def _on_reaped(self, task: asyncio.Task) -> None:
        self._reapers.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.warning("Could not reap notify-send: %s", error)
        elif task.result() != 0:
            logger.debug("notify-send exited with code %s", task.result())


def create_notifier(strategy: str) -> NotificationProtocol:
    """Build the notifier for a configured strategy.

    Falls back to LogNotifier when notify-send is requested but not
    installed.

    Args:
        strategy: "notify-send" for desktop notifications, anything else logs.

    Returns:
        NotificationProtocol implementation.
    """
    if strategy.strip().lower() == "notify-send":
        if shutil.which("notify-send"):
            return NotifySendNotifier()
        logger.warning("notify-send not found on PATH, notifications will be logged")
    return LogNotifier()
