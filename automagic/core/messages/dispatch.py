"""Scheduled message dispatch pipeline.

Once per tick the pipeline loads every stored message and walks them in
store order, one at a time. Due messages are handed to the sender: a
successful send deletes the message, a failed send flags it as
permanently failed. Future-dated and already failed messages are left
untouched.

Delivery is at-least-once: if the process dies between a successful send
and the delete, the message goes out again on the next tick.
"""

import asyncio
import logging
from datetime import timedelta
from enum import Enum

from automagic.core.errors import SenderError, StoreError
from automagic.core.messages.models import DispatchDecision, ScheduledMessage
from automagic.core.messages.repository import ScheduledMessageStore
from automagic.core.messages.sender import MessageSender
from automagic.core.scheduler.clock import Clock, utc_now
from automagic.core.scheduler.manager import TaskScheduler
from automagic.core.scheduler.notification import NotificationProtocol
from automagic.core.scheduler.outcome import (
    Ok,
    Outcome,
    Result,
    combine_sequentially,
    from_awaitable,
)

logger = logging.getLogger(__name__)

DISPATCH_TASK_NAME = "ScheduledMessages"
DEFAULT_DISPATCH_INTERVAL = timedelta(seconds=60)


class DeliveryResult(str, Enum):
    """What happened to one message during a tick."""

    SKIPPED = "skipped"
    SENT = "sent"
    FAILED = "failed"


def _as_store_error(error: Exception) -> StoreError:
    if isinstance(error, StoreError):
        return error
    return StoreError(str(error))


async def _notify(notifier: NotificationProtocol, title: str, detail: str | None) -> None:
    try:
        await notifier.notify(title, detail)
    except Exception:
        logger.exception("Notifier failed for %r", title)


async def process_scheduled_message(
    msg: ScheduledMessage,
    store: ScheduledMessageStore,
    sender: MessageSender,
    notifier: NotificationProtocol,
    clock: Clock = utc_now,
) -> Result[DeliveryResult, StoreError]:
    """Deliver a single message if it is due.

    Args:
        msg: Message to consider.
        store: Store used to delete or flag the message.
        sender: Delivers the message.
        notifier: Told about every delivery attempt.
        clock: Source of the current time.

    Returns:
        Ok with what happened, or Err if the store mutation failed.
    """
    if msg.decide(clock()) is DispatchDecision.SKIP:
        logger.debug(
            "Skipping message %s - either in the future or already failed", msg.id
        )
        return Ok(DeliveryResult.SKIPPED)

    logger.info("Sending message %s to %s", msg.id, msg.recipient.phone_number)
    try:
        await sender.send(msg.recipient.phone_number, msg.message)
    except Exception as e:
        cause = e.cause if isinstance(e, SenderError) else f"{type(e).__name__}: {e}"
        logger.warning("Failed to send message %s: %s", msg.id, cause)
        result = await from_awaitable(
            store.mark_scheduled_message_failed(msg.id), _as_store_error
        )
        await _notify(
            notifier,
            "Failed to send scheduled message",
            f"To: {msg.recipient.name} - {msg.message} ({cause})",
        )
        return result.map(lambda _: DeliveryResult.FAILED)

    result = await from_awaitable(
        store.delete_scheduled_message(msg.id), _as_store_error
    )
    await _notify(
        notifier,
        "Sent scheduled message",
        f"To: {msg.recipient.name} - {msg.message}",
    )
    return result.map(lambda _: DeliveryResult.SENT)


async def run_scheduled_messages_task(
    store: ScheduledMessageStore,
    sender: MessageSender,
    notifier: NotificationProtocol,
    clock: Clock = utc_now,
) -> Result[list[DeliveryResult], StoreError]:
    """Run one dispatch tick over every stored message.

    Messages are processed strictly one after another; a store failure
    stops the tick and is returned as Err.

    Args:
        store: Message store.
        sender: Delivers due messages.
        notifier: Told about every delivery attempt.
        clock: Source of the current time.

    Returns:
        Ok with one DeliveryResult per message, or the first StoreError.
    """
    loaded = await from_awaitable(store.find_all_scheduled_messages(), _as_store_error)
    if loaded.is_err():
        return loaded

    messages = loaded.value
    logger.info("Running scheduled messages task for %d messages", len(messages))
    return await combine_sequentially(
        [
            lambda msg=msg: process_scheduled_message(msg, store, sender, notifier, clock)
            for msg in messages
        ]
    )


def create_dispatch_action(
    store: ScheduledMessageStore,
    sender: MessageSender,
    notifier: NotificationProtocol,
    clock: Clock = utc_now,
):
    """Build the scheduler action for the dispatch pipeline.

    The action always returns Outcome.CONTINUE; a failed tick is logged and
    reported, and the next tick starts again from a fresh read.
    """

    async def action() -> Outcome:
        result = await run_scheduled_messages_task(store, sender, notifier, clock)
        if result.is_err():
            logger.error("Failed to run scheduled messages task: %s", result.error)
            await _notify(
                notifier, "Failed to run scheduled messages task", str(result.error)
            )
            return Outcome.CONTINUE

        sent = result.value.count(DeliveryResult.SENT)
        failed = result.value.count(DeliveryResult.FAILED)
        if sent or failed:
            logger.info("Scheduled messages tick: %d sent, %d failed", sent, failed)
        return Outcome.CONTINUE

    return action


def register_dispatch_pipeline(
    scheduler: TaskScheduler,
    store: ScheduledMessageStore,
    sender: MessageSender,
    notifier: NotificationProtocol,
    *,
    interval: timedelta = DEFAULT_DISPATCH_INTERVAL,
    clock: Clock = utc_now,
) -> asyncio.Task:
    """Register the dispatch pipeline as a recurring task.

    Runs immediately, then every interval measured from the end of the
    previous tick.

    Args:
        scheduler: Scheduler to register with.
        store: Message store.
        sender: Delivers due messages.
        notifier: Told about every delivery attempt.
        interval: Time between ticks.
        clock: Source of the current time.

    Returns:
        The asyncio.Task running the pipeline loop.
    """
    return scheduler.add_scheduled_task(
        name=DISPATCH_TASK_NAME,
        get_next_fire_time=lambda: clock() + interval,
        action=create_dispatch_action(store, sender, notifier, clock),
        run_immediately=True,
    )
