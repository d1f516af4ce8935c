"""Scheduled WhatsApp messages.

Provides:
- Recipient and ScheduledMessage models
- SQLite persistence
- mudslide-based delivery
- The recurring dispatch pipeline and the creation use cases
"""

from automagic.core.messages.dispatch import (
    DISPATCH_TASK_NAME,
    DeliveryResult,
    register_dispatch_pipeline,
    run_scheduled_messages_task,
)
from automagic.core.messages.models import DispatchDecision, Recipient, ScheduledMessage
from automagic.core.messages.repository import (
    MessageRepository,
    ScheduledMessageStore,
    get_repository,
)
from automagic.core.messages.sender import MessageSender, MudslideSender
from automagic.core.messages.use_cases import MessageUseCases

__all__ = [
    "DISPATCH_TASK_NAME",
    "DeliveryResult",
    "DispatchDecision",
    "MessageRepository",
    "MessageSender",
    "MessageUseCases",
    "MudslideSender",
    "Recipient",
    "ScheduledMessage",
    "ScheduledMessageStore",
    "get_repository",
    "register_dispatch_pipeline",
    "run_scheduled_messages_task",
]
