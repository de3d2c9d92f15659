"""
User-Facing Notifications

Stores never raise storage errors at the UI. They report the outcome of
every write here, and the presentation layer decides how to show it
(Streamlit toasts, in our case).
"""

import threading
from abc import ABC, abstractmethod
from enum import Enum

from pydantic import BaseModel


class NotificationVariant(str, Enum):
    DEFAULT = "default"
    DESTRUCTIVE = "destructive"
    CELEBRATION = "celebration"


class Notification(BaseModel):
    """One toast-sized message."""

    title: str
    message: str
    variant: NotificationVariant = NotificationVariant.DEFAULT

    @classmethod
    def success(cls, title: str, message: str) -> "Notification":
        return cls(title=title, message=message)

    @classmethod
    def failure(cls, message: str, title: str = "Error") -> "Notification":
        return cls(title=title, message=message, variant=NotificationVariant.DESTRUCTIVE)

    @classmethod
    def celebration(cls, title: str, message: str) -> "Notification":
        return cls(title=title, message=message, variant=NotificationVariant.CELEBRATION)

    @property
    def is_error(self) -> bool:
        return self.variant == NotificationVariant.DESTRUCTIVE


class Notifier(ABC):
    """Where stores send their notifications."""

    @abstractmethod
    def notify(self, notification: Notification) -> None:
        pass


class NotificationCenter(Notifier):
    """Collects notifications until the UI drains them."""

    def __init__(self):
        self._pending: list[Notification] = []
        self._lock = threading.Lock()

    def notify(self, notification: Notification) -> None:
        with self._lock:
            self._pending.append(notification)

    def drain(self) -> list[Notification]:
        """Return and forget every pending notification."""
        with self._lock:
            pending, self._pending = self._pending, []
        return pending

    def peek(self) -> list[Notification]:
        with self._lock:
            return list(self._pending)
