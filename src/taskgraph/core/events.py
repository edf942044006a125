# src/taskgraph/core/events.py

"""
In-process notification bus.

Delivery is synchronous and follows registration order. A subscriber that raises
is logged and skipped; it never stops delivery to the next one and never fails
the mutation that triggered the event.
"""

from __future__ import annotations

import itertools
import logging
import threading
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from .ports import EventCallback

logger = logging.getLogger(__name__)


class TaskEvent(StrEnum):
    TASK_CREATED = "task_created"
    TASK_UPDATED = "task_updated"
    TASK_DELETED = "task_deleted"
    TASKS_UPDATED = "tasks_updated"
    TASKS_DELETED = "tasks_deleted"
    TASKS_IMPORTED = "tasks_imported"
    LIST_CREATED = "list_created"
    CURRENT_LIST_CHANGED = "current_list_changed"


@dataclass(slots=True, frozen=True)
class Subscription:
    """Handle returned by subscribe(); pass it to unsubscribe() or call cancel()."""

    id: int
    callback: EventCallback
    bus: NotificationBus

    def cancel(self) -> None:
        self.bus.unsubscribe(self)


class NotificationBus:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._ids = itertools.count(1)
        self._subs: list[Subscription] = []

    def subscribe(self, callback: EventCallback) -> Subscription:
        if not callable(callback):
            raise TypeError("callback must be callable")
        with self._lock:
            sub = Subscription(id=next(self._ids), callback=callback, bus=self)
            self._subs.append(sub)
        logger.debug("Subscriber added id=%s total=%s", sub.id, len(self._subs))
        return sub

    def unsubscribe(self, handle: Subscription | EventCallback) -> bool:
        """
        Remove a subscription by handle, or every subscription of a bare callback.
        Returns True if anything was removed.
        """
        with self._lock:
            before = len(self._subs)
            if isinstance(handle, Subscription):
                self._subs = [s for s in self._subs if s.id != handle.id]
            else:
                self._subs = [s for s in self._subs if s.callback != handle]
            removed = len(self._subs) != before
        return removed

    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subs)

    def publish(self, event: TaskEvent | str, payload: Any) -> None:
        # Snapshot so a subscriber may (un)subscribe while being notified.
        with self._lock:
            subs = list(self._subs)

        name = str(event)
        for sub in subs:
            try:
                sub.callback(name, payload)
            except Exception:
                logger.exception("Subscriber %s failed on event=%s", sub.id, name)
