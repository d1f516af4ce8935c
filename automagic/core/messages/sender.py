"""WhatsApp delivery through the mudslide CLI.

The sender is an opaque, potentially slow external process. Any way the
process can fail (cannot start, times out, exits non-zero) is reported as
a SenderError carrying a readable cause.
"""

import asyncio
import logging
import shlex
from typing import Protocol

from automagic.core.errors import SenderError

logger = logging.getLogger(__name__)


class MessageSender(Protocol):
    """Protocol for delivering a message to a phone number."""

    async def send(self, phone_number: str, message: str) -> None:
        """Deliver message to phone_number.

        Raises:
            SenderError: If delivery failed.
        """
        ...


class MudslideSender:
    """Sends WhatsApp messages by running ``mudslide send``."""

    def __init__(
        self,
        command: str = "npx mudslide@latest",
        timeout: float | None = 120.0,
    ) -> None:
        """Initialize the sender.

        Args:
            command: Command line that invokes mudslide.
            timeout: Seconds to wait for the process before giving up.
        """
        self._command = shlex.split(command)
        self._timeout = timeout

    def build_args(self, phone_number: str, message: str) -> list[str]:
        """Build the full argument vector for one send."""
        return [*self._command, "send", phone_number, message]

    async def send(self, phone_number: str, message: str) -> None:
        """Run mudslide and wait for it to exit.

        Args:
            phone_number: Recipient phone number.
            message: Text to deliver.

        Raises:
            SenderError: If the process cannot start, times out or exits
                with a non-zero code.
        """
        args = self.build_args(phone_number, message)
        try:
            proc = await asyncio.create_subprocess_exec(
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except (OSError, ValueError) as e:
            # ValueError: an argument holds a NUL byte
            raise SenderError(f"Could not start {args[0]}: {e}") from e

        try:
            stdout, stderr = await asyncio.wait_for(
                proc.communicate(), timeout=self._timeout
            )
        except asyncio.TimeoutError as e:
            proc.kill()
            await proc.wait()
            raise SenderError(f"mudslide timed out after {self._timeout}s") from e

        if stdout:
            logger.info("mudslide: %s", stdout.decode(errors="replace").strip())
        if stderr:
            logger.warning("mudslide error: %s", stderr.decode(errors="replace").strip())

        logger.info("mudslide exited with code %s", proc.returncode)
        if proc.returncode != 0:
            detail = stderr.decode(errors="replace").strip() if stderr else ""
            cause = f"mudslide exited with code {proc.returncode}"
            raise SenderError(f"{cause}: {detail}" if detail else cause)
