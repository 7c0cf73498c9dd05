"""
Typed in-process event bus.

Publishers emit frozen dataclass events after their transaction commits;
subscribers register per event class. A failing subscriber is logged and
does not stop delivery to the others.
"""

from __future__ import annotations

import threading
from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Callable, Optional, TypeVar

import structlog

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class MessageReceived:
    thread_id: int
    message_id: int
    channel: str


@dataclass(frozen=True)
class MessageDispatched:
    thread_id: int
    message_id: int
    delivery_id: int
    channel: str
    status: str


@dataclass(frozen=True)
class DeliveryStatusChanged:
    delivery_id: int
    message_id: int
    thread_id: int
    channel: str
    status: str


@dataclass(frozen=True)
class MessagesMarkedRead:
    thread_id: int
    message_ids: tuple[int, ...]


@dataclass(frozen=True)
class UnreadCountChanged:
    viewer: str
    thread_id: Optional[int]
    thread_unread: int
    total_unread: int


E = TypeVar("E")
Handler = Callable[[Any], None]


class EventBus:
    """Synchronous publish/subscribe keyed by event class."""

    def __init__(self) -> None:
        self._subscribers: dict[type, list[Handler]] = defaultdict(list)
        self._lock = threading.Lock()

    def subscribe(self, event_type: type[E], handler: Callable[[E], None]) -> None:
        with self._lock:
            self._subscribers[event_type].append(handler)

    def unsubscribe(self, event_type: type[E], handler: Callable[[E], None]) -> None:
        with self._lock:
            handlers = self._subscribers.get(event_type, [])
            if handler in handlers:
                handlers.remove(handler)

    def publish(self, event: object) -> int:
        """
        Deliver ``event`` to every subscriber of its class.

        Returns:
            Number of handlers that completed without raising
        """
        with self._lock:
            handlers = list(self._subscribers.get(type(event), []))

        delivered = 0
        for handler in handlers:
            try:
                handler(event)
                delivered += 1
            except Exception:
                logger.exception(
                    "event_subscriber_failed",
                    event_type=type(event).__name__,
                    handler=getattr(handler, "__qualname__", repr(handler)),
                )
        return delivered
