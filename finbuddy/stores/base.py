"""
Record Store Base

A store is the UI's view of one table for the signed-in user:
1. fetch() loads the rows into a local cache
2. add/update/remove write through storage and patch the cache at once
3. start() follows the change feed so writes from elsewhere show up
4. Every failure becomes a notification, never an exception

DESIGN DECISION: The cache is "last write observed wins". A change event
for a row we already hold replaces it; there is no conflict resolution.
"""

import threading
from typing import Any, Generic, Optional, TypeVar

import structlog

from finbuddy.audit import AuditLogger
from finbuddy.models.records import Record
from finbuddy.services.realtime import ChangeEvent, ChangeType, Subscription
from finbuddy.services.storage import RecordStorageInterface, StorageError
from finbuddy.stores.notifications import Notification, NotificationCenter, Notifier

logger = structlog.get_logger(__name__)

R = TypeVar("R", bound=Record)


class RecordStore(Generic[R]):
    """
    Cached, user-scoped access to one table.

    Subclasses set `model`, the cache ordering and the failure messages.
    """

    model: type[R]
    order_by: str = "created_at"
    descending: bool = True
    load_error: Optional[str] = None

    def __init__(
        self,
        storage: RecordStorageInterface,
        user_id: str,
        notifier: Optional[Notifier] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = storage
        self.user_id = user_id
        self._notifier = notifier or NotificationCenter()
        self._audit = audit_logger or AuditLogger()
        self._subscription: Optional[Subscription] = None
        # Change events can arrive from other sessions' threads
        self._cache_lock = threading.RLock()
        self.items: list[R] = []
        self.loading = False

    @property
    def table(self) -> str:
        return self.model.TABLE.value

    # -------------------------------------------------------------------------
    # Cache
    # -------------------------------------------------------------------------

    def _sort(self) -> None:
        key = self.order_by
        present = [r for r in self.items if getattr(r, key, None) is not None]
        missing = [r for r in self.items if getattr(r, key, None) is None]
        present.sort(key=lambda r: getattr(r, key), reverse=self.descending)
        self.items = present + missing if self.descending else missing + present

    def _upsert(self, record: R) -> None:
        with self._cache_lock:
            items = list(self.items)
            for idx, existing in enumerate(items):
                if existing.id == record.id:
                    items[idx] = record
                    break
            else:
                items.append(record)
            self.items = items
            self._sort()

    def _discard(self, record_id: Any) -> None:
        with self._cache_lock:
            self.items = [r for r in self.items if str(r.id) != str(record_id)]

    def find(self, record_id: Any) -> Optional[R]:
        for record in self.items:
            if str(record.id) == str(record_id):
                return record
        return None

    # -------------------------------------------------------------------------
    # Notifications
    # -------------------------------------------------------------------------

    def notify(self, notification: Notification) -> None:
        self._notifier.notify(notification)

    async def report_failure(self, operation: str, error: Exception, message: Optional[str]) -> None:
        logger.error(
            "store_operation_failed",
            table=self.table,
            operation=operation,
            user_id=self.user_id,
            error=str(error),
        )
        await self._audit.log_write_failed(self.user_id, self.table, operation, str(error))
        if message:
            self.notify(Notification.failure(message))

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    async def load(self) -> list[R]:
        """
        Replace the cache with the user's rows.

        Raises:
            StorageError: If the read fails (the cache is left untouched)
        """
        rows = await self._storage.list(
            self.table,
            self.user_id,
            order_by=self.order_by,
            descending=self.descending,
        )
        self.items = [self.model.model_validate(row) for row in rows]
        return self.items

    async def fetch(self) -> list[R]:
        """load(), reporting failure as a notification."""
        self.loading = True
        try:
            await self.load()
        except StorageError as e:
            await self.report_failure("load", e, self.load_error)
        finally:
            self.loading = False
        return self.items

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    async def _insert(
        self,
        record: R,
        success: Optional[Notification],
        failure: Optional[str],
    ) -> Optional[R]:
        try:
            row = await self._storage.insert(self.table, self.user_id, record.to_row())
        except StorageError as e:
            await self.report_failure("add", e, failure)
            return None

        stored = self.model.model_validate(row)
        self._upsert(stored)
        await self._audit.log_record_created(self.user_id, self.table, str(stored.id))
        if success:
            self.notify(success)
        return stored

    async def _update(
        self,
        record_id: Any,
        changes: dict[str, Any],
        success: Optional[Notification],
        failure: Optional[str],
    ) -> Optional[R]:
        try:
            row = await self._storage.update(self.table, self.user_id, str(record_id), changes)
        except StorageError as e:
            await self.report_failure("update", e, failure)
            return None

        stored = self.model.model_validate(row)
        self._upsert(stored)
        await self._audit.log_record_updated(
            self.user_id, self.table, str(record_id), sorted(changes)
        )
        if success:
            self.notify(success)
        return stored

    async def _delete(
        self,
        record_id: Any,
        success: Optional[Notification],
        failure: Optional[str],
    ) -> bool:
        try:
            deleted = await self._storage.delete(self.table, self.user_id, str(record_id))
        except StorageError as e:
            await self.report_failure("remove", e, failure)
            return False

        self._discard(record_id)
        if deleted:
            await self._audit.log_record_deleted(self.user_id, self.table, str(record_id))
        if success:
            self.notify(success)
        return deleted

    # -------------------------------------------------------------------------
    # Realtime
    # -------------------------------------------------------------------------

    def start(self) -> Optional[Subscription]:
        """Follow changes to this table for our user."""
        feed = self._storage.feed
        if feed is None or self._subscription is not None:
            return self._subscription
        self._subscription = feed.subscribe(self.table, self.user_id, self.apply_change)
        return self._subscription

    def close(self) -> None:
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None

    def apply_change(self, event: ChangeEvent) -> None:
        """Patch the cache from a change event."""
        if event.event_type == ChangeType.DELETE:
            if event.record_id:
                self._discard(event.record_id)
            return
        if event.new is None:
            return
        self._upsert(self.model.model_validate(event.new))
