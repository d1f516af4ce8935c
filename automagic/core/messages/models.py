# automagic/core/messages/models.py
"""Data models for recipients and scheduled messages."""

from dataclasses import dataclass, replace
from datetime import datetime, timezone
from enum import Enum


def to_epoch_millis(value: datetime) -> int:
    """Convert an aware datetime to integer epoch milliseconds."""
    return int(value.timestamp() * 1000)


def from_epoch_millis(value: int) -> datetime:
    """Convert epoch milliseconds to an aware UTC datetime."""
    return datetime.fromtimestamp(value / 1000, tz=timezone.utc)


@dataclass(frozen=True)
class Recipient:
    """Someone scheduled messages can be sent to.

    Attributes:
        id: Identifier assigned by the database.
        name: Unique display name.
        phone_number: Unique WhatsApp phone number.
    """

    id: int
    name: str
    phone_number: str

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "phoneNumber": self.phone_number}


class DispatchDecision(str, Enum):
    """What a dispatch tick should do with a message."""

    DUE = "due"
    SKIP = "skip"


@dataclass(frozen=True)
class ScheduledMessage:
    """A message waiting to be delivered at a given time.

    Once failed_to_send is set the message is never attempted again
    automatically.

    Attributes:
        id: Identifier assigned by the database.
        recipient: Who the message goes to.
        message: Text to deliver.
        scheduled_date: Aware datetime after which the message is due.
        failed_to_send: Terminal failure flag.
    """

    id: int
    recipient: Recipient
    message: str
    scheduled_date: datetime
    failed_to_send: bool = False

    def decide(self, now: datetime) -> DispatchDecision:
        """Decide whether this message should be delivered at now.

        Args:
            now: Current aware datetime.

        Returns:
            DispatchDecision.DUE if due and not failed, SKIP otherwise.
        """
        if self.failed_to_send or self.scheduled_date > now:
            return DispatchDecision.SKIP
        return DispatchDecision.DUE

    def mark_failed(self) -> "ScheduledMessage":
        """Return a copy flagged as failed."""
        return replace(self, failed_to_send=True)

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization.

        Returns:
            Dictionary representation with the date as epoch milliseconds.
        """
        return {
            "id": self.id,
            "recipient": self.recipient.to_dict(),
            "message": self.message,
            "scheduledDate": to_epoch_millis(self.scheduled_date),
            "failedToSend": self.failed_to_send,
        }
