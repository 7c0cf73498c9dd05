"""
Unread count aggregation.

Counts are recomputed from the store on every relevant event instead of
being incremented or decremented, so duplicate or out-of-order events can
never drift them.
"""

from __future__ import annotations

import threading
from typing import Any, Optional

import structlog
from sqlalchemy.engine import Engine

from guest_messaging.db.readers.unread import VIEWERS, get_unread_counts
from guest_messaging.events import (
    DeliveryStatusChanged,
    EventBus,
    MessageDispatched,
    MessageReceived,
    MessagesMarkedRead,
    UnreadCountChanged,
)
from guest_messaging.metrics import unread_total

logger = structlog.get_logger(__name__)


def get_unread_summary(engine: Engine, viewer: str = "host") -> dict[str, Any]:
    """
    Per-thread and global unread counts for a viewer.

    Returns:
        dict: {"viewer": ..., "total": int, "threads": {thread_id: count}}
    """
    with engine.connect() as conn:
        counts = get_unread_counts(conn, viewer)
    return {"viewer": viewer, "total": sum(counts.values()), "threads": counts}


class UnreadAggregator:
    """
    Keeps unread counts current and announces changes on the bus.

    Subscribes to message and delivery events; for each one it recomputes
    the affected thread's count and the global total, then publishes an
    UnreadCountChanged event per viewer whose numbers moved.
    """

    TRIGGERS = (MessageReceived, MessageDispatched, DeliveryStatusChanged, MessagesMarkedRead)

    def __init__(self, engine: Engine, bus: EventBus) -> None:
        self.engine = engine
        self.bus = bus
        self._lock = threading.Lock()
        self._snapshot: dict[str, dict[int, int]] = {viewer: {} for viewer in VIEWERS}

    def start(self) -> "UnreadAggregator":
        for event_type in self.TRIGGERS:
            self.bus.subscribe(event_type, self.handle)
        return self

    def stop(self) -> None:
        for event_type in self.TRIGGERS:
            self.bus.unsubscribe(event_type, self.handle)

    def handle(self, event: Any) -> None:
        self.recompute(event.thread_id)

    def totals(self) -> dict[str, int]:
        with self._lock:
            return {viewer: sum(counts.values()) for viewer, counts in self._snapshot.items()}

    def recompute(self, thread_id: Optional[int] = None) -> list[UnreadCountChanged]:
        """
        Recompute counts from durable state and publish what changed.

        Returns:
            list[UnreadCountChanged]: Events published by this call
        """
        changes: list[UnreadCountChanged] = []
        with self.engine.connect() as conn:
            fresh = {viewer: get_unread_counts(conn, viewer) for viewer in VIEWERS}

        with self._lock:
            for viewer, counts in fresh.items():
                previous = self._snapshot[viewer]
                total = sum(counts.values())
                thread_count = counts.get(thread_id, 0) if thread_id is not None else 0
                moved = total != sum(previous.values()) or (
                    thread_id is not None and thread_count != previous.get(thread_id, 0)
                )
                self._snapshot[viewer] = counts
                unread_total.labels(viewer=viewer).set(total)
                if moved:
                    changes.append(
                        UnreadCountChanged(
                            viewer=viewer,
                            thread_id=thread_id,
                            thread_unread=thread_count,
                            total_unread=total,
                        )
                    )

        for change in changes:
            logger.debug(
                "unread_count_changed",
                viewer=change.viewer,
                thread_id=change.thread_id,
                thread_unread=change.thread_unread,
                total_unread=change.total_unread,
            )
            self.bus.publish(change)
        return changes
