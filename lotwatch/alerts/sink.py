"""Notification sinks.

The sink is the outbound boundary: it receives a rendered notification
and either accepts it or raises. Transport mechanics live behind it.
"""

import logging
import threading
from abc import ABC, abstractmethod
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timezone

logger = logging.getLogger(__name__)


class NotificationSink(ABC):
    """Delivery contract for triggered alerts."""

    @abstractmethod
    def notify(self, owner_id: str, title: str, body: str, category: str) -> None:
        """Deliver a notification.

        Raises:
            Exception: Any failure; the caller records it as a sink failure.
        """


@dataclass
class Notification:
    """A notification accepted by the in-memory sink."""
    owner_id: str
    title: str
    body: str
    category: str
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    is_read: bool = False

    def to_dict(self) -> dict:
        return {
            "owner_id": self.owner_id,
            "title": self.title,
            "body": self.body,
            "category": self.category,
            "created_at": self.created_at.isoformat(),
            "is_read": self.is_read,
        }


class InMemorySink(NotificationSink):
    """Stores notifications in memory, organized by owner_id."""

    def __init__(self, max_per_owner: int = 100) -> None:
        self.max_per_owner = max_per_owner
        self._lock = threading.Lock()
        self._notifications: dict[str, list[Notification]] = defaultdict(list)

    def notify(self, owner_id: str, title: str, body: str, category: str) -> None:
        with self._lock:
            notes = self._notifications[owner_id]
            notes.append(Notification(owner_id, title, body, category))
            if len(notes) > self.max_per_owner:
                del notes[:-self.max_per_owner]
        logger.debug("Notification stored for owner %s: %s", owner_id, title)

    def get_all(self, owner_id: str) -> list[Notification]:
        with self._lock:
            return list(self._notifications.get(owner_id, []))

    def get_unread(self, owner_id: str) -> list[Notification]:
        return [n for n in self.get_all(owner_id) if not n.is_read]

    def mark_all_read(self, owner_id: str) -> int:
        count = 0
        with self._lock:
            for n in self._notifications.get(owner_id, []):
                if not n.is_read:
                    n.is_read = True
                    count += 1
        return count

    @property
    def total(self) -> int:
        with self._lock:
            return sum(len(v) for v in self._notifications.values())

    def all_notifications(self) -> list[Notification]:
        with self._lock:
            return [n for notes in self._notifications.values() for n in notes]
