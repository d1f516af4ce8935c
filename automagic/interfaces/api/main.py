# automagic/interfaces/api/main.py
"""FastAPI application for recipients and scheduled messages.

The app's lifespan also runs the daemon: it takes the single instance
lock, starts the recurring dispatch pipeline and stops both on shutdown.
"""

import logging
import os
import signal
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import Any

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException, Request, Response, status
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

# Load environment variables from .env file
load_dotenv()

from automagic.config import settings  # noqa: E402
from automagic.core.errors import StoreError, ValidationError  # noqa: E402
from automagic.core.lifecycle import get_lifecycle_manager  # noqa: E402
from automagic.core.messages.dispatch import register_dispatch_pipeline  # noqa: E402
from automagic.core.messages.repository import get_repository  # noqa: E402
from automagic.core.messages.sender import MudslideSender  # noqa: E402
from automagic.core.scheduler.manager import get_task_scheduler  # noqa: E402
from automagic.core.scheduler.notification import create_notifier  # noqa: E402
from automagic.core.single_instance import SingleInstanceLock  # noqa: E402
from automagic.interfaces.api.dependencies import (  # noqa: E402
    ApiKey,
    UseCases,
    get_rate_limit_string,
    limiter,
)
from automagic.interfaces.api.schemas import (  # noqa: E402
    RecipientCreate,
    RecipientResponse,
    ScheduledMessageCreate,
    ScheduledMessageResponse,
)

logger = logging.getLogger(__name__)


def _request_shutdown() -> None:
    """Ask uvicorn to stop after another instance took over."""
    logger.info("Shutting down app")
    os.kill(os.getpid(), signal.SIGTERM)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup/shutdown."""
    notifier = create_notifier(settings.notify_strategy)
    lifecycle = get_lifecycle_manager()

    lock = SingleInstanceLock(
        settings.single_instance_socket, on_takeover=_request_shutdown
    )
    await lock.acquire()
    lifecycle.register("single_instance_lock", lock)
    await lifecycle.startup()

    try:
        repository = get_repository(settings.database_path)
        scheduler = get_task_scheduler()
        scheduler.set_notifier(notifier)
        lifecycle.register("scheduler", scheduler)
        await lifecycle.startup()

        register_dispatch_pipeline(
            scheduler,
            repository,
            MudslideSender(settings.mudslide_command, settings.sender_timeout_seconds),
            notifier,
            interval=timedelta(seconds=settings.dispatch_interval_seconds),
        )
    except Exception:
        logger.exception("Daemon startup failed, releasing the lock")
        await lifecycle.shutdown()
        raise
    await notifier.notify("Daemon Started")

    yield

    await lifecycle.shutdown()
    await notifier.notify("Daemon Stopped")
    logger.info("Shutting down...")


app = FastAPI(
    title="Automagic API",
    description="Schedule WhatsApp messages for later delivery",
    version="1.0.0",
    lifespan=lifespan,
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


def _store_failure(e: StoreError) -> HTTPException:
    logger.error("Store error: %s", e)
    return HTTPException(status_code=500, detail=str(e))


@app.post("/recipients", status_code=201, response_model=RecipientResponse)
@limiter.limit(get_rate_limit_string)
async def create_recipient(
    request: Request, body: RecipientCreate, use_cases: UseCases, _api_key: ApiKey
) -> RecipientResponse:
    """Create a recipient with a unique name and phone number."""
    try:
        recipient = await use_cases.create_recipient(body.name, body.phone_number)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=e.code.value) from e
    except StoreError as e:
        raise _store_failure(e) from e
    return RecipientResponse.from_recipient(recipient)


@app.get("/recipients", response_model=list[RecipientResponse])
@limiter.limit(get_rate_limit_string)
async def list_recipients(
    request: Request, use_cases: UseCases, _api_key: ApiKey, name: str | None = None
) -> list[RecipientResponse]:
    """List recipients, optionally only the one with a given name."""
    try:
        recipients = await use_cases.list_recipients(name)
    except StoreError as e:
        raise _store_failure(e) from e
    return [RecipientResponse.from_recipient(r) for r in recipients]


@app.post(
    "/scheduled-messages", status_code=201, response_model=ScheduledMessageResponse
)
@limiter.limit(get_rate_limit_string)
async def create_scheduled_message(
    request: Request,
    body: ScheduledMessageCreate,
    use_cases: UseCases,
    _api_key: ApiKey,
) -> ScheduledMessageResponse:
    """Schedule a message for an existing or a new recipient."""
    try:
        msg = await use_cases.create_scheduled_message(
            message=body.message,
            scheduled_date=body.scheduled_date,
            recipient_id=body.recipient_id,
            name=body.name,
            phone_number=body.phone_number,
        )
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=e.code.value) from e
    except StoreError as e:
        raise _store_failure(e) from e
    return ScheduledMessageResponse.from_message(msg)


@app.get("/scheduled-messages", response_model=list[ScheduledMessageResponse])
@limiter.limit(get_rate_limit_string)
async def list_scheduled_messages(
    request: Request, use_cases: UseCases, _api_key: ApiKey
) -> list[ScheduledMessageResponse]:
    """List every scheduled message, failed ones included."""
    try:
        messages = await use_cases.list_scheduled_messages()
    except StoreError as e:
        raise _store_failure(e) from e
    return [ScheduledMessageResponse.from_message(m) for m in messages]


@app.get("/scheduled-messages/failed", response_model=list[ScheduledMessageResponse])
@limiter.limit(get_rate_limit_string)
async def list_failed_messages(
    request: Request, use_cases: UseCases, _api_key: ApiKey
) -> list[ScheduledMessageResponse]:
    """List messages that failed to send and will not be retried."""
    try:
        messages = await use_cases.list_failed_messages()
    except StoreError as e:
        raise _store_failure(e) from e
    return [ScheduledMessageResponse.from_message(m) for m in messages]


@app.delete("/scheduled-messages/{message_id}", status_code=204)
@limiter.limit(get_rate_limit_string)
async def delete_scheduled_message(
    request: Request, message_id: int, use_cases: UseCases, _api_key: ApiKey
) -> Response:
    """Delete a scheduled message (also the way to retry a failed one)."""
    try:
        deleted = await use_cases.delete_scheduled_message(message_id)
    except StoreError as e:
        raise _store_failure(e) from e
    if not deleted:
        raise HTTPException(
            status_code=404, detail=f"Scheduled message {message_id} not found"
        )
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@app.get("/health")
@limiter.limit(get_rate_limit_string)
async def health_check(request: Request) -> dict[str, Any]:
    """Health check endpoint.

    Returns:
        Dictionary with health status and the state of every recurring task.
    """
    scheduler = get_task_scheduler()
    return {
        "status": "healthy",
        "scheduler_running": scheduler.is_running,
        "tasks": [task.to_dict() for task in scheduler.get_tasks()],
    }
