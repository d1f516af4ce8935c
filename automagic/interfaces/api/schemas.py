# automagic/interfaces/api/schemas.py
"""Pydantic models for FastAPI request/response validation.

Request fields are optional on purpose: missing values are reported by the
use cases with a specific error code rather than a generic 422.
"""

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field, field_validator

from automagic.core.messages.models import (
    Recipient,
    ScheduledMessage,
    from_epoch_millis,
)


class RecipientCreate(BaseModel):
    """Request body for POST /recipients.

    Attributes:
        name: Unique recipient name.
        phone_number: Unique WhatsApp phone number.
    """

    model_config = ConfigDict(populate_by_name=True)

    name: str | None = Field(None, description="Recipient name")
    phone_number: str | None = Field(
        None, alias="phoneNumber", description="WhatsApp phone number"
    )


class RecipientResponse(BaseModel):
    """Response body for recipient endpoints."""

    model_config = ConfigDict(populate_by_name=True)

    id: int = Field(..., description="Recipient ID")
    name: str = Field(..., description="Recipient name")
    phone_number: str = Field(..., alias="phoneNumber", description="Phone number")

    @classmethod
    def from_recipient(cls, recipient: Recipient) -> "RecipientResponse":
        return cls.model_validate(recipient.to_dict())


class ScheduledMessageCreate(BaseModel):
    """Request body for POST /scheduled-messages.

    Either recipient_id refers to an existing recipient, or name and
    phone_number describe a new one.

    Attributes:
        message: Text to deliver.
        scheduled_date: ISO-8601 string or epoch milliseconds. Naive
            datetimes are taken as UTC.
        recipient_id: Existing recipient ID.
        name: New recipient name.
        phone_number: New recipient phone number.
    """

    model_config = ConfigDict(populate_by_name=True)

    message: str | None = Field(None, description="Message text")
    scheduled_date: datetime | None = Field(
        None, alias="scheduledDate", description="When to send (ISO-8601 or epoch ms)"
    )
    recipient_id: int | None = Field(None, alias="recipientId")
    name: str | None = Field(None, description="Name for a new recipient")
    phone_number: str | None = Field(None, alias="phoneNumber")

    @field_validator("scheduled_date", mode="before")
    @classmethod
    def parse_epoch_millis(cls, value: object) -> object:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            try:
                return from_epoch_millis(int(value))
            except (OverflowError, OSError, ValueError) as e:
                raise ValueError("scheduledDate is out of range") from e
        return value

    @field_validator("scheduled_date")
    @classmethod
    def assume_utc(cls, value: datetime | None) -> datetime | None:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


class ScheduledMessageResponse(BaseModel):
    """Response body for scheduled message endpoints.

    Attributes:
        id: Message ID.
        recipient: Recipient the message goes to.
        message: Message text.
        scheduled_date: Epoch milliseconds.
        failed_to_send: Whether delivery failed permanently.
    """

    model_config = ConfigDict(populate_by_name=True)

    id: int
    recipient: RecipientResponse
    message: str
    scheduled_date: int = Field(..., alias="scheduledDate")
    failed_to_send: bool = Field(..., alias="failedToSend")

    @classmethod
    def from_message(cls, msg: ScheduledMessage) -> "ScheduledMessageResponse":
        return cls.model_validate(msg.to_dict())
