"""Process-wide single instance lock.

The lock is a listening unix socket in the Linux abstract namespace, so it
disappears with the process and never leaves stale files behind. Starting
a second daemon hands over: the newcomer connects to the running
instance, which shuts itself down, and then binds the socket itself.

The message store relies on this to stay single-writer.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable

from automagic.core.errors import AlreadyRunningError

logger = logging.getLogger(__name__)

TakeoverCallback = Callable[[], Awaitable[None] | None]


class SingleInstanceLock:
    """Holds the abstract socket that marks the running daemon."""

    def __init__(
        self,
        name: str = "automagic_server_lock",
        on_takeover: TakeoverCallback | None = None,
        bind_attempts: int = 20,
        retry_delay: float = 0.1,
    ) -> None:
        """Initialize the lock.

        Args:
            name: Socket name inside the abstract namespace.
            on_takeover: Called after another instance asked us to stop.
            bind_attempts: How often to retry binding while the previous
                instance releases the socket.
            retry_delay: Seconds between bind attempts.
        """
        self._address = "\0" + name
        self._on_takeover = on_takeover
        self._bind_attempts = bind_attempts
        self._retry_delay = retry_delay
        self._server: asyncio.AbstractServer | None = None

    @property
    def is_held(self) -> bool:
        return self._server is not None

    async def acquire(self) -> None:
        """Take the lock, asking any running instance to stop first.

        Raises:
            AlreadyRunningError: If the socket is still bound after all
                attempts.
        """
        await self._signal_running_instance()

        for attempt in range(1, self._bind_attempts + 1):
            try:
                self._server = await asyncio.start_unix_server(
                    self._on_connection, path=self._address
                )
            except OSError as e:
                logger.debug("Lock bind attempt %d failed: %s", attempt, e)
                await asyncio.sleep(self._retry_delay)
                continue
            logger.info("Single instance lock acquired")
            return

        raise AlreadyRunningError("Another automagic instance is still running")

    async def _signal_running_instance(self) -> None:
        try:
            _, writer = await asyncio.open_unix_connection(self._address)
        except OSError:
            logger.debug("No running instance found")
            return
        logger.info("Running instance found, asking it to shut down")
        writer.close()
        await writer.wait_closed()

    async def _on_connection(
        self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter
    ) -> None:
        logger.info("New connection received. Closing lock server")
        writer.close()
        # Close without waiting, this connection is still open
        self.shutdown()
        if self._on_takeover is not None:
            result = self._on_takeover()
            if asyncio.iscoroutine(result):
                await result

    def shutdown(self) -> None:
        """Stop listening so another instance can take the lock."""
        if self._server is None:
            return
        self._server.close()
        self._server = None
        logger.info("Single instance lock released")
