# automagic/core/errors.py
"""Typed error kinds for each layer of the daemon.

Call sites branch on the exception class (or on ValidationError.code)
instead of matching error strings.
"""

from enum import Enum


class AutomagicError(Exception):
    """Base class for all errors raised by automagic."""


class StoreError(AutomagicError):
    """A storage operation failed (connection, query or integrity)."""


class SenderError(AutomagicError):
    """Delivering a message through the external sender failed.

    Attributes:
        cause: Human-readable description of why delivery failed.
    """

    def __init__(self, cause: str) -> None:
        super().__init__(cause)
        self.cause = cause


class ValidationCode(str, Enum):
    """Reasons a use case can reject its input."""

    NO_NAME_PROVIDED = "NoNameProvided"
    NO_PHONE_NUMBER_PROVIDED = "NoPhoneNumberProvided"
    RECIPIENT_NAME_TAKEN = "RecipientNameTaken"
    PHONE_NUMBER_TAKEN = "PhoneNumberTaken"
    NO_MESSAGE_PROVIDED = "NoMessageProvided"
    NO_SCHEDULED_DATE_PROVIDED = "NoScheduledDateProvided"
    SCHEDULED_DATE_IN_PAST = "ScheduledDateInPast"
    RECIPIENT_NOT_FOUND = "RecipientNotFound"


class ValidationError(AutomagicError):
    """Use case input was rejected.

    Attributes:
        code: Which validation rule failed.
    """

    def __init__(self, code: ValidationCode) -> None:
        super().__init__(code.value)
        self.code = code


class AlreadyRunningError(AutomagicError):
    """Another daemon instance holds the single-instance lock."""
