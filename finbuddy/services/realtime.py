"""
Row-Change Feed

Stands in for the hosted backend's realtime channel: every successful
write to storage is published here, and any store that cares about a
table subscribes for the rows of one user.

DESIGN DECISION: Delivery is synchronous and in-process. A subscriber
that raises is logged and skipped so one broken listener cannot starve
the others. There is no ordering guarantee across tables.
"""

import inspect
import threading
import weakref
from enum import Enum
from typing import Any, Callable, Optional
from uuid import UUID, uuid4

import structlog
from pydantic import BaseModel, Field

logger = structlog.get_logger(__name__)


class ChangeType(str, Enum):
    """Kind of row change."""
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


class ChangeEvent(BaseModel):
    """A single row change in one table."""

    table: str
    event_type: ChangeType
    user_id: str
    new: Optional[dict[str, Any]] = Field(
        default=None,
        description="Row after the change (None for DELETE)"
    )
    old: Optional[dict[str, Any]] = Field(
        default=None,
        description="Row before the change (None for INSERT)"
    )

    @property
    def record_id(self) -> Optional[str]:
        row = self.new if self.new is not None else self.old
        return str(row["id"]) if row and "id" in row else None


ChangeCallback = Callable[[ChangeEvent], None]


class Subscription:
    """
    Handle returned by ChangeFeed.subscribe.

    Call unsubscribe() (or leave the `with` block) to stop receiving
    events. Unsubscribing twice is harmless.

    A bound-method callback is held weakly: once its owner is garbage
    collected the subscription lapses and the feed drops it.
    """

    def __init__(self, feed: "ChangeFeed", table: str, user_id: str, callback: ChangeCallback):
        self.id: UUID = uuid4()
        self.table = table
        self.user_id = user_id
        if inspect.ismethod(callback):
            self._callback = weakref.WeakMethod(callback)
        else:
            self._callback = lambda: callback
        self._feed = feed
        self._active = True

    @property
    def callback(self) -> Optional[ChangeCallback]:
        """The callback, or None once its owner is gone."""
        return self._callback()

    @property
    def active(self) -> bool:
        return self._active and self.callback is not None

    def unsubscribe(self) -> None:
        if self._active:
            self._active = False
            self._feed._remove(self)

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.unsubscribe()


class ChangeFeed:
    """In-process publish/subscribe hub for row changes."""

    def __init__(self):
        self._subscriptions: dict[UUID, Subscription] = {}
        self._lock = threading.Lock()

    def subscribe(self, table: str, user_id: str, callback: ChangeCallback) -> Subscription:
        """Receive every change to `table` rows owned by `user_id`."""
        subscription = Subscription(self, table, user_id, callback)
        with self._lock:
            self._prune()
            self._subscriptions[subscription.id] = subscription
        logger.debug("realtime_subscribed", table=table, user_id=user_id)
        return subscription

    def _remove(self, subscription: Subscription) -> None:
        with self._lock:
            self._subscriptions.pop(subscription.id, None)
        logger.debug(
            "realtime_unsubscribed",
            table=subscription.table,
            user_id=subscription.user_id,
        )

    def _prune(self) -> None:
        """Drop lapsed subscriptions. Caller holds the lock."""
        lapsed = [s for s in self._subscriptions.values() if s.callback is None]
        for subscription in lapsed:
            subscription._active = False
            del self._subscriptions[subscription.id]
        if lapsed:
            logger.debug("realtime_pruned", count=len(lapsed))

    def publish(self, event: ChangeEvent) -> int:
        """
        Deliver an event to matching subscribers.

        Returns the number of subscribers that handled it without error.
        """
        with self._lock:
            self._prune()
            targets = [
                s for s in self._subscriptions.values()
                if s.table == event.table and s.user_id == event.user_id
            ]

        delivered = 0
        for subscription in targets:
            callback = subscription.callback
            if callback is None:
                continue
            try:
                callback(event)
                delivered += 1
            except Exception as e:
                logger.error(
                    "realtime_callback_failed",
                    table=event.table,
                    event_type=event.event_type.value,
                    error=str(e),
                )
        return delivered

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            self._prune()
            return len(self._subscriptions)
