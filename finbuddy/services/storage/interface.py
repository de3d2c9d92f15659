"""
Abstract Storage Interface

DESIGN DECISION: Stores, advisors and the assistant only see these
abstract classes. The Google Sheets backend serves hosted runs and the
in-memory backend serves tests and local Streamlit sessions.

The interface is intentionally generic: rows are plain JSON-compatible
dicts keyed by column name, and every call carries the owner's user id.
Rows owned by someone else are invisible to reads and immune to writes.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional

from finbuddy.models.audit import AuditEvent
from finbuddy.services.realtime import ChangeEvent, ChangeFeed, ChangeType


class RecordStorageInterface(ABC):
    """
    Abstract interface for row-scoped record storage.

    Any storage implementation must implement these methods. Successful
    writes are published to the attached ChangeFeed, if any.
    """

    def __init__(self, feed: Optional[ChangeFeed] = None):
        self._feed = feed

    @property
    def feed(self) -> Optional[ChangeFeed]:
        return self._feed

    def _publish(
        self,
        table: str,
        event_type: ChangeType,
        user_id: str,
        new: Optional[dict] = None,
        old: Optional[dict] = None,
    ) -> None:
        if self._feed is not None:
            self._feed.publish(ChangeEvent(
                table=table,
                event_type=event_type,
                user_id=user_id,
                new=new,
                old=old,
            ))

    @abstractmethod
    async def insert(self, table: str, user_id: str, values: dict[str, Any]) -> dict:
        """
        Insert a row owned by `user_id`.

        The stored row's user_id is always forced to the caller's.

        Returns:
            The stored row

        Raises:
            StorageError: If the write fails
            DuplicateError: If a row with the same id exists
        """
        pass

    @abstractmethod
    async def get(self, table: str, user_id: str, record_id: str) -> Optional[dict]:
        """
        Retrieve one row by id.

        Returns:
            The row if found and owned by `user_id`, None otherwise
        """
        pass

    @abstractmethod
    async def update(
        self,
        table: str,
        user_id: str,
        record_id: str,
        changes: dict[str, Any],
    ) -> dict:
        """
        Apply `changes` to one row.

        `id` and `user_id` cannot be changed; `updated_at` is refreshed.

        Returns:
            The row after the change

        Raises:
            NotFoundError: If no such row is owned by `user_id`
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def delete(self, table: str, user_id: str, record_id: str) -> bool:
        """
        Delete one row.

        Returns:
            True if a row was deleted, False if none matched
        """
        pass

    @abstractmethod
    async def list(
        self,
        table: str,
        user_id: str,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> list[dict]:
        """
        List the rows of one user.

        Args:
            table: Table name
            user_id: Owner of the rows
            order_by: Column to sort by (rows missing it count as lowest)
            descending: Reverse the sort
            limit: Maximum number of rows after sorting

        Returns:
            List of rows
        """
        pass


class AuditStorageInterface(ABC):
    """
    Append-only sink for audit events.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Persist one event.

        Returns:
            False if the backend refused the write
        """
        pass


def sort_rows(
    rows: list[dict],
    order_by: Optional[str],
    descending: bool,
    limit: Optional[int],
) -> list[dict]:
    """Shared ordering/limit semantics for every backend."""
    if order_by:
        present = [r for r in rows if r.get(order_by) is not None]
        missing = [r for r in rows if r.get(order_by) is None]
        present.sort(key=lambda r: r[order_by], reverse=descending)
        rows = missing + present if not descending else present + missing
    if limit is not None:
        rows = rows[:limit]
    return rows


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
