"""Wall clock and chunked sleep helpers for the scheduler."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone

logger = logging.getLogger(__name__)

# Longest single sleep we ask for. Matches the ceiling of a signed 32-bit
# millisecond timer (~24.8 days).
MAX_SLEEP_SECONDS = 2_147_400.0

Clock = Callable[[], datetime]
Sleeper = Callable[[float], Awaitable[None]]


def utc_now() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def seconds_until(target: datetime, clock: Clock = utc_now) -> float:
    """Seconds remaining until target (negative if it already passed)."""
    return (target - clock()).total_seconds()


async def sleep_until(
    target: datetime,
    *,
    clock: Clock = utc_now,
    sleep: Sleeper = asyncio.sleep,
    max_chunk: float = MAX_SLEEP_SECONDS,
) -> None:
    """Suspend until clock() reaches target.

    Sleeps in chunks of at most max_chunk seconds and recomputes the
    remaining time from the clock after every chunk, so long waits and
    clock drift are both handled.

    Args:
        target: Aware datetime to wake up at.
        clock: Source of the current time.
        sleep: Awaitable sleep primitive taking seconds.
        max_chunk: Upper bound for a single call to sleep.
    """
    remaining = seconds_until(target, clock)
    while remaining > 0:
        chunk = min(remaining, max_chunk)
        logger.debug("Sleeping %.3fs (%.3fs remaining)", chunk, remaining)
        await sleep(chunk)
        remaining = seconds_until(target, clock)
