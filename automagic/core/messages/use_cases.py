"""Use cases for managing recipients and scheduled messages.

These validate user input before touching the store. Validation failures
raise ValidationError with a specific ValidationCode; storage failures
propagate as StoreError.
"""

import logging
from datetime import datetime
from typing import TypeVar

from automagic.core.errors import ValidationCode, ValidationError
from automagic.core.messages.models import Recipient, ScheduledMessage
from automagic.core.messages.repository import MessageRepository
from automagic.core.scheduler.clock import Clock, utc_now
from automagic.core.scheduler.outcome import Result, error_if, expect_defined

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _validated(result: Result[T, ValidationCode]) -> T:
    if result.is_err():
        raise ValidationError(result.error)
    return result.value


class MessageUseCases:
    """Create, list and delete recipients and scheduled messages."""

    def __init__(self, store: MessageRepository, clock: Clock = utc_now) -> None:
        self._store = store
        self._clock = clock

    async def create_recipient(
        self, name: str | None, phone_number: str | None
    ) -> Recipient:
        """Create a recipient with a unique name and phone number.

        Args:
            name: Recipient name.
            phone_number: Recipient phone number.

        Returns:
            The created Recipient.

        Raises:
            ValidationError: If a field is missing or already taken.
        """
        name = _validated(expect_defined(name, ValidationCode.NO_NAME_PROVIDED))
        phone_number = _validated(
            expect_defined(phone_number, ValidationCode.NO_PHONE_NUMBER_PROVIDED)
        )

        existing = await self._store.find_recipient_by_name(name)
        _validated(error_if(existing is not None, ValidationCode.RECIPIENT_NAME_TAKEN))
        existing = await self._store.find_recipient_by_phone_number(phone_number)
        _validated(error_if(existing is not None, ValidationCode.PHONE_NUMBER_TAKEN))

        recipient = await self._store.create_recipient(name, phone_number)
        logger.info("Recipient created: id=%s, name=%s", recipient.id, recipient.name)
        return recipient

    async def list_recipients(self, name: str | None = None) -> list[Recipient]:
        """List all recipients, or only the one with the given name."""
        if name:
            recipient = await self._store.find_recipient_by_name(name)
            return [recipient] if recipient else []
        return await self._store.list_recipients()

    async def create_scheduled_message(
        self,
        message: str | None,
        scheduled_date: datetime | None,
        recipient_id: int | None = None,
        name: str | None = None,
        phone_number: str | None = None,
    ) -> ScheduledMessage:
        """Schedule a message for an existing or a new recipient.

        When recipient_id is given the recipient must exist; otherwise a new
        recipient is created from name and phone_number. The date is
        checked before any recipient is created.

        Args:
            message: Text to deliver.
            scheduled_date: Aware datetime to deliver at.
            recipient_id: ID of an existing recipient.
            name: Name for a new recipient.
            phone_number: Phone number for a new recipient.

        Returns:
            The stored ScheduledMessage.

        Raises:
            ValidationError: If input is missing or invalid.
        """
        message = _validated(expect_defined(message, ValidationCode.NO_MESSAGE_PROVIDED))
        scheduled_date = _validated(
            expect_defined(scheduled_date, ValidationCode.NO_SCHEDULED_DATE_PROVIDED)
        )
        _validated(
            error_if(scheduled_date < self._clock(), ValidationCode.SCHEDULED_DATE_IN_PAST)
        )

        if recipient_id is not None:
            recipient = _validated(
                expect_defined(
                    await self._store.find_recipient_by_id(recipient_id),
                    ValidationCode.RECIPIENT_NOT_FOUND,
                )
            )
        else:
            recipient = await self.create_recipient(name, phone_number)

        scheduled = await self._store.create_scheduled_message(
            message, scheduled_date, recipient.id
        )
        logger.info(
            "Message scheduled: id=%s, recipient=%s, at=%s",
            scheduled.id,
            recipient.name,
            scheduled.scheduled_date.isoformat(),
        )
        return scheduled

    async def list_scheduled_messages(self) -> list[ScheduledMessage]:
        return await self._store.find_all_scheduled_messages()

    async def delete_scheduled_message(self, message_id: int) -> bool:
        return await self._store.delete_scheduled_message(message_id)

    async def list_failed_messages(self) -> list[ScheduledMessage]:
        return await self._store.find_failed_messages()
