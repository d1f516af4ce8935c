# automagic/core/messages/repository.py
"""SQLite repository for recipients and scheduled messages.

This module provides the storage operations the dispatch pipeline and the
use cases rely on, using direct sqlite3. Blocking calls run in a worker
thread so they never stall the event loop. Every sqlite3 failure is
surfaced as a StoreError.
"""

import asyncio
import logging
import os
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from typing import Protocol

from automagic.core.errors import StoreError
from automagic.core.messages.models import (
    Recipient,
    ScheduledMessage,
    from_epoch_millis,
    to_epoch_millis,
)

logger = logging.getLogger(__name__)

SELECT_SCHEDULED_MESSAGE_WITH_RECIPIENT = """
    SELECT sm.id, sm.message, sm.scheduled_date, sm.failed_to_send,
           r.id, r.name, r.phone_number
    FROM scheduled_message sm
    JOIN recipient r ON sm.recipient_id = r.id
"""


class ScheduledMessageStore(Protocol):
    """Storage operations needed by the dispatch pipeline."""

    async def find_all_scheduled_messages(self) -> list[ScheduledMessage]: ...

    async def delete_scheduled_message(self, message_id: int) -> bool: ...

    async def mark_scheduled_message_failed(
        self, message_id: int
    ) -> ScheduledMessage: ...


class MessageRepository:
    """Repository for recipients and scheduled messages in SQLite.

    The repository auto-creates the database directory and tables on
    initialization. It assumes it is the only writer: the daemon's
    single-instance lock guarantees that.

    Attributes:
        db_path: Path to the SQLite database file.

    Example:
        >>> repo = MessageRepository(db_path="data/automagic.db")
        >>> recipient = await repo.create_recipient("Mom", "+27820000000")
        >>> await repo.create_scheduled_message("Hi", when, recipient.id)
    """

    def __init__(self, db_path: str = "data/automagic.db") -> None:
        """Initialize the MessageRepository.

        Creates the database directory and tables if they don't exist.

        Args:
            db_path: Path to the SQLite database file.

        Raises:
            StoreError: If the schema cannot be created.
        """
        self.db_path = db_path

        # Create directory if it doesn't exist
        db_dir = os.path.dirname(db_path)
        if db_dir:
            os.makedirs(db_dir, exist_ok=True)

        self._init_db()

    @contextmanager
    def _connect(self, action: str) -> Iterator[sqlite3.Connection]:
        try:
            conn = sqlite3.connect(self.db_path)
        except sqlite3.Error as e:
            raise StoreError(f"Failed to {action}: {e}") from e
        try:
            conn.execute("PRAGMA foreign_keys=ON")
            yield conn
            conn.commit()
        except sqlite3.Error as e:
            raise StoreError(f"Failed to {action}: {e}") from e
        finally:
            conn.close()

    def _init_db(self) -> None:
        """Initialize the database schema and enable WAL mode."""
        with self._connect("initialise database") as conn:
            conn.execute("PRAGMA journal_mode=WAL")
            conn.execute("""
                CREATE TABLE IF NOT EXISTS recipient (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name VARCHAR(100) NOT NULL UNIQUE,
                    phone_number VARCHAR(20) NOT NULL UNIQUE
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS scheduled_message (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    recipient_id INTEGER NOT NULL,
                    message TEXT NOT NULL,
                    scheduled_date BIGINT NOT NULL,
                    failed_to_send BOOLEAN DEFAULT 0,
                    FOREIGN KEY (recipient_id) REFERENCES recipient(id)
                )
            """)

    @staticmethod
    def _row_to_recipient(row: tuple) -> Recipient:
        return Recipient(id=row[0], name=row[1], phone_number=row[2])

    @staticmethod
    def _row_to_message(row: tuple) -> ScheduledMessage:
        """Convert a joined database row to a ScheduledMessage.

        Args:
            row: Tuple of (id, message, scheduled_date, failed_to_send,
                 recipient id, recipient name, recipient phone number).

        Returns:
            ScheduledMessage populated from the row data.
        """
        return ScheduledMessage(
            id=row[0],
            message=row[1],
            scheduled_date=from_epoch_millis(row[2]),
            failed_to_send=bool(row[3]),
            recipient=Recipient(id=row[4], name=row[5], phone_number=row[6]),
        )

    # Recipients

    def _list_recipients(self) -> list[Recipient]:
        with self._connect("list recipients") as conn:
            rows = conn.execute(
                "SELECT id, name, phone_number FROM recipient ORDER BY id"
            ).fetchall()
        return [self._row_to_recipient(row) for row in rows]

    def _find_recipient(self, column: str, value: object) -> Recipient | None:
        with self._connect(f"find recipient by {column}") as conn:
            row = conn.execute(
                f"SELECT id, name, phone_number FROM recipient WHERE {column} = ?",
                (value,),
            ).fetchone()
        return self._row_to_recipient(row) if row else None

    def _create_recipient(self, name: str, phone_number: str) -> Recipient:
        with self._connect("create recipient") as conn:
            cursor = conn.execute(
                "INSERT INTO recipient (name, phone_number) VALUES (?, ?)",
                (name, phone_number),
            )
            recipient_id = cursor.lastrowid
        if recipient_id is None:
            raise StoreError("Failed to get last ID")
        return Recipient(id=recipient_id, name=name, phone_number=phone_number)

    async def list_recipients(self) -> list[Recipient]:
        """List all recipients.

        Returns:
            Recipients in creation order.
        """
        return await asyncio.to_thread(self._list_recipients)

    async def find_recipient_by_id(self, recipient_id: int) -> Recipient | None:
        return await asyncio.to_thread(self._find_recipient, "id", recipient_id)

    async def find_recipient_by_name(self, name: str) -> Recipient | None:
        return await asyncio.to_thread(self._find_recipient, "name", name)

    async def find_recipient_by_phone_number(self, phone_number: str) -> Recipient | None:
        return await asyncio.to_thread(
            self._find_recipient, "phone_number", phone_number
        )

    async def create_recipient(self, name: str, phone_number: str) -> Recipient:
        """Create a new recipient.

        Args:
            name: Unique recipient name.
            phone_number: Unique phone number.

        Returns:
            Recipient with the database-assigned ID.

        Raises:
            StoreError: If the insert fails (including uniqueness violations).
        """
        return await asyncio.to_thread(self._create_recipient, name, phone_number)

    # Scheduled messages

    def _query_messages(self, where: str = "", params: tuple = ()) -> list[ScheduledMessage]:
        with self._connect("list scheduled messages") as conn:
            rows = conn.execute(
                f"{SELECT_SCHEDULED_MESSAGE_WITH_RECIPIENT} {where} ORDER BY sm.id",
                params,
            ).fetchall()
        return [self._row_to_message(row) for row in rows]

    def _find_message(self, message_id: int) -> ScheduledMessage | None:
        messages = self._query_messages("WHERE sm.id = ?", (message_id,))
        return messages[0] if messages else None

    def _create_message(
        self, message: str, scheduled_date: datetime, recipient_id: int
    ) -> ScheduledMessage:
        with self._connect("create scheduled message") as conn:
            cursor = conn.execute(
                """
                INSERT INTO scheduled_message (message, scheduled_date, recipient_id)
                VALUES (?, ?, ?)
                """,
                (message, to_epoch_millis(scheduled_date), recipient_id),
            )
            message_id = cursor.lastrowid
        if message_id is None:
            raise StoreError("Failed to get last ID")
        created = self._find_message(message_id)
        if created is None:
            raise StoreError("Failed to find created scheduled message")
        return created

    def _delete_message(self, message_id: int) -> bool:
        with self._connect("delete scheduled message") as conn:
            cursor = conn.execute(
                "DELETE FROM scheduled_message WHERE id = ?", (message_id,)
            )
            return cursor.rowcount > 0

    def _mark_failed(self, message_id: int) -> ScheduledMessage:
        with self._connect("mark message as failed") as conn:
            conn.execute(
                "UPDATE scheduled_message SET failed_to_send = 1 WHERE id = ?",
                (message_id,),
            )
        updated = self._find_message(message_id)
        if updated is None:
            raise StoreError(f"Failed to find updated scheduled message {message_id}")
        return updated

    async def find_all_scheduled_messages(self) -> list[ScheduledMessage]:
        """List every scheduled message, failed ones included.

        Returns:
            Messages ordered by ID.
        """
        return await asyncio.to_thread(self._query_messages)

    async def find_scheduled_message(self, message_id: int) -> ScheduledMessage | None:
        return await asyncio.to_thread(self._find_message, message_id)

    async def find_failed_messages(self) -> list[ScheduledMessage]:
        return await asyncio.to_thread(
            self._query_messages, "WHERE sm.failed_to_send = 1"
        )

    async def create_scheduled_message(
        self, message: str, scheduled_date: datetime, recipient_id: int
    ) -> ScheduledMessage:
        """Create a scheduled message for an existing recipient.

        Args:
            message: Text to deliver.
            scheduled_date: When the message becomes due.
            recipient_id: ID of an existing recipient.

        Returns:
            The stored ScheduledMessage with its recipient.

        Raises:
            StoreError: If the insert fails or the recipient does not exist.
        """
        return await asyncio.to_thread(
            self._create_message, message, scheduled_date, recipient_id
        )

    async def delete_scheduled_message(self, message_id: int) -> bool:
        """Delete a scheduled message.

        Args:
            message_id: ID of the message to delete.

        Returns:
            True if the message was deleted, False if it didn't exist.
        """
        return await asyncio.to_thread(self._delete_message, message_id)

    async def mark_scheduled_message_failed(self, message_id: int) -> ScheduledMessage:
        """Flag a scheduled message as permanently failed.

        Args:
            message_id: ID of the message to flag.

        Returns:
            The updated ScheduledMessage.

        Raises:
            StoreError: If the update fails or the message no longer exists.
        """
        return await asyncio.to_thread(self._mark_failed, message_id)


_repository: MessageRepository | None = None


def get_repository(db_path: str | None = None) -> MessageRepository:
    """Get the singleton MessageRepository instance.

    Args:
        db_path: Path to SQLite database (only used on first call).
            Defaults to the configured database path.

    Returns:
        MessageRepository singleton instance.
    """
    global _repository
    if _repository is None:
        if db_path is None:
            from automagic.config import settings

            db_path = settings.database_path
        _repository = MessageRepository(db_path=db_path)
    return _repository


def reset_repository() -> None:
    """Drop the singleton repository (for testing)."""
    global _repository
    _repository = None
