# automagic/interfaces/cli.py
"""Command line client for a running automagic daemon.

Talks to the HTTP API on ``settings.api_host:settings.api_port`` and sends
the X-API-Key header when an auth key is configured. Every command prints
a one-line result and exits with code 1 on failure.

Example:
    $ automagic-client add-recipient Mom +27820000000
    $ automagic-client schedule Mom 24/12-09:00 "Merry Christmas"
    $ automagic-client list
"""

import calendar
import logging
import re
from datetime import datetime
from typing import Any, NoReturn

import httpx
import typer

from automagic.config import settings
from automagic.core.messages.models import from_epoch_millis, to_epoch_millis

logger = logging.getLogger(__name__)

app = typer.Typer(
    name="automagic-client",
    help="Schedule WhatsApp messages through a running automagic daemon.",
    no_args_is_help=True,
)

# dd/mm-hh:mm or hh:mm
TIME_SPECIFIER = re.compile(r"^(?:(\d{1,2})/(\d{1,2})-)?(\d{1,2}):(\d{2})$")
THIRTY_DAY_MONTHS = {4, 6, 9, 11}
REQUEST_TIMEOUT = 20.0


class ClientError(Exception):
    """A client command could not be completed."""


def _verify_date_parts(year: int, month: int, day: int, hour: int, minute: int) -> None:
    if not 1 <= month <= 12:
        raise ClientError("Invalid month: must be between 1 (January) and 12 (December)")
    if not 1 <= day <= 31:
        raise ClientError("Invalid day: must be between 1 and 31")
    if day > 30 and month in THIRTY_DAY_MONTHS:
        raise ClientError("Invalid day: month has only 30 days")
    if month == 2:
        leap = calendar.isleap(year)
        limit = 29 if leap else 28
        if day > limit:
            kind = "a leap" if leap else "a non-leap"
            raise ClientError(f"Invalid day: February has only {limit} days in {kind} year")
    if not 0 <= hour <= 23:
        raise ClientError("Invalid hour: must be between 0 and 23")
    if not 0 <= minute <= 59:
        raise ClientError("Invalid minute: must be between 0 and 59")


def parse_time_specifier(spec: str, now: datetime | None = None) -> datetime:
    """Turn ``hh:mm`` or ``dd/mm-hh:mm`` into a datetime in the current year.

    Day and month default to today. The result is in now's timezone, or in
    local time when now is naive.

    Args:
        spec: Time specifier typed by the user.
        now: Reference time, defaults to the local clock.

    Returns:
        Aware datetime of the requested minute.

    Raises:
        ClientError: If the format or a date part is invalid, or the time
            has already passed.
    """
    now = now or datetime.now()
    match = TIME_SPECIFIER.match(spec.strip())
    if match is None:
        raise ClientError("Invalid time specifier format, expected hh:mm or dd/mm-hh:mm")

    day = int(match[1]) if match[1] else now.day
    month = int(match[2]) if match[2] else now.month
    hour, minute = int(match[3]), int(match[4])
    _verify_date_parts(now.year, month, day, hour, minute)

    scheduled = datetime(now.year, month, day, hour, minute, tzinfo=now.tzinfo)
    if scheduled < now:
        raise ClientError("Scheduled date cannot be in the past")
    return scheduled if scheduled.tzinfo else scheduled.astimezone()


def _client() -> httpx.Client:
    headers = {"X-API-Key": settings.api_auth_key} if settings.api_auth_key else {}
    return httpx.Client(
        base_url=f"http://{settings.api_host}:{settings.api_port}",
        headers=headers,
        timeout=REQUEST_TIMEOUT,
    )


def _describe(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        body = None
    detail = body.get("detail") if isinstance(body, dict) else None
    return f"{response.status_code} {detail or response.reason_phrase}"


def _request(method: str, url: str, **kwargs: Any) -> httpx.Response:
    """Send one request to the daemon.

    Raises:
        ClientError: If the daemon is unreachable or answers with an error.
    """
    logger.debug("%s %s", method, url)
    try:
        with _client() as client:
            response = client.request(method, url, **kwargs)
            response.raise_for_status()
    except httpx.HTTPStatusError as e:
        raise ClientError(
            f"Failed to make request to {url}: {_describe(e.response)}"
        ) from e
    except httpx.HTTPError as e:
        raise ClientError(f"Failed to make request to {url}: {e}") from e
    return response


def _fail(message: str) -> NoReturn:
    typer.echo(message, err=True)
    raise typer.Exit(code=1)


def _find_recipient_id(name: str) -> int:
    recipients = _request("GET", "/recipients", params={"name": name}).json()
    recipient = recipients[0] if recipients else None
    typer.echo(f"Found recipient: {recipient['name'] if recipient else 'not found'}")
    if recipient is None:
        raise ClientError("Recipient not found")
    return recipient["id"]


def format_message(msg: dict[str, Any]) -> str:
    """One listing line for a scheduled message from the API."""
    scheduled = from_epoch_millis(msg["scheduledDate"]).isoformat()
    return (
        f"ID: {msg['id']}, Recipient: {msg['recipient']['name']}, "
        f"Scheduled Date: {scheduled}, Message: {msg['message']}"
    )


@app.command("schedule")
def schedule_message(
    recipient: str = typer.Argument(..., help="Name of an existing recipient"),
    when: str = typer.Argument(..., help="hh:mm or dd/mm-hh:mm, local time"),
    message: str = typer.Argument(..., help="Message text"),
) -> None:
    """Schedule a message for a recipient."""
    try:
        if not message:
            raise ClientError("No message provided")
        scheduled = parse_time_specifier(when)
        typer.echo(f"Scheduled date: {scheduled.isoformat()}")
        recipient_id = _find_recipient_id(recipient)
        created = _request(
            "POST",
            "/scheduled-messages",
            json={
                "recipientId": recipient_id,
                "scheduledDate": to_epoch_millis(scheduled),
                "message": message,
            },
        ).json()
    except ClientError as e:
        _fail(f"Failed to schedule message: {e}")
    typer.echo(f"Message scheduled successfully: {created['id']}")


@app.command("list")
def list_messages(
    failed: bool = typer.Option(False, "--failed", help="Only messages that failed to send"),
) -> None:
    """List scheduled messages."""
    url = "/scheduled-messages/failed" if failed else "/scheduled-messages"
    try:
        messages = _request("GET", url).json()
    except ClientError as e:
        _fail(f"Failed to list scheduled messages: {e}")
    typer.echo("Failed messages:" if failed else "Scheduled messages:")
    for msg in messages:
        typer.echo(format_message(msg))


@app.command("delete")
def delete_message(
    message_id: int = typer.Argument(..., help="Scheduled message ID"),
) -> None:
    """Delete a scheduled message, failed or not."""
    try:
        _request("DELETE", f"/scheduled-messages/{message_id}")
    except ClientError as e:
        _fail(f"Failed to delete scheduled message: {e}")
    typer.echo(f"Scheduled message with ID {message_id} deleted successfully")


@app.command("add-recipient")
def add_recipient(
    name: str = typer.Argument(..., help="Unique recipient name"),
    phone_number: str = typer.Argument(..., help="WhatsApp phone number"),
) -> None:
    """Add a recipient."""
    try:
        created = _request(
            "POST", "/recipients", json={"name": name, "phoneNumber": phone_number}
        ).json()
    except ClientError as e:
        _fail(f"Failed to add recipient: {e}")
    typer.echo(f"Recipient added successfully: {created['name']} ({created['phoneNumber']})")
