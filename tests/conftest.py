"""Shared pytest fixtures for all test modules.

Provides common fixtures for:
- Singleton reset (TaskScheduler, MessageRepository, LifecycleManager)
- Temporary database paths and repositories
- Controllable clock, recording sender and notifier
"""

import os
import tempfile
from collections.abc import Generator
from datetime import datetime, timedelta, timezone

import pytest

from automagic.core.errors import SenderError
from automagic.core.messages.repository import MessageRepository


class FakeClock:
    """Clock whose time only moves when told to."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class RecordingSender:
    """Sender that records calls and fails for selected phone numbers."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, str]] = []
        self.failing_numbers: set[str] = set()

    async def send(self, phone_number: str, message: str) -> None:
        self.calls.append((phone_number, message))
        if phone_number in self.failing_numbers:
            raise SenderError(f"mudslide exited with code 1 for {phone_number}")


class RecordingNotifier:
    """Notifier that keeps every notification in memory."""

    def __init__(self) -> None:
        self.notifications: list[tuple[str, str | None]] = []

    async def notify(self, title: str, detail: str | None = None) -> None:
        self.notifications.append((title, detail))

    @property
    def titles(self) -> list[str]:
        return [title for title, _ in self.notifications]


@pytest.fixture
def temp_db() -> Generator[str, None, None]:
    """Create a temporary database file path.

    Yields:
        Path to temporary SQLite database file.
    """
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        db_path = f.name

    yield db_path

    # Cleanup, WAL mode leaves side files behind
    for suffix in ("", "-wal", "-shm"):
        if os.path.exists(db_path + suffix):
            os.unlink(db_path + suffix)


@pytest.fixture
def repository(temp_db: str) -> MessageRepository:
    """MessageRepository on a fresh temporary database."""
    return MessageRepository(db_path=temp_db)


@pytest.fixture
def clock() -> FakeClock:
    """Fake clock fixed at 2024-01-15 12:00 UTC."""
    return FakeClock(datetime(2024, 1, 15, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def sender() -> RecordingSender:
    return RecordingSender()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture(autouse=True)
def reset_singletons() -> Generator[None, None, None]:
    """Reset process-wide singletons before and after each test."""
    from automagic.core.lifecycle import reset_lifecycle_manager
    from automagic.core.messages.repository import reset_repository
    from automagic.core.scheduler.manager import reset_task_scheduler

    reset_task_scheduler()
    reset_repository()
    reset_lifecycle_manager()

    yield

    reset_task_scheduler()
    reset_repository()
    reset_lifecycle_manager()


@pytest.fixture
def temp_data_dir() -> Generator[str, None, None]:
    """Create a temporary data directory.

    Yields:
        Path to temporary directory.
    """
    with tempfile.TemporaryDirectory() as tmpdir:
        yield tmpdir
