"""Unit tests for the in-process event bus."""

from __future__ import annotations

from typing import Any

import pytest

from guest_messaging.events import EventBus, MessageReceived, MessagesMarkedRead


@pytest.mark.unit
def test_publish_reaches_subscribers_of_the_event_class_only() -> None:
    bus = EventBus()
    received: list[Any] = []
    bus.subscribe(MessageReceived, received.append)

    event = MessageReceived(thread_id=1, message_id=2, channel="sms")
    delivered = bus.publish(event)
    bus.publish(MessagesMarkedRead(thread_id=1, message_ids=(2,)))

    assert delivered == 1
    assert received == [event]


@pytest.mark.unit
def test_failing_subscriber_does_not_stop_others() -> None:
    bus = EventBus()
    received: list[Any] = []

    def broken(_: Any) -> None:
        raise RuntimeError("boom")

    bus.subscribe(MessageReceived, broken)
    bus.subscribe(MessageReceived, received.append)

    delivered = bus.publish(MessageReceived(thread_id=1, message_id=2, channel="sms"))

    assert delivered == 1
    assert len(received) == 1


@pytest.mark.unit
def test_unsubscribe() -> None:
    bus = EventBus()
    received: list[Any] = []
    bus.subscribe(MessageReceived, received.append)
    bus.unsubscribe(MessageReceived, received.append)

    assert bus.publish(MessageReceived(thread_id=1, message_id=2, channel="sms")) == 0
    assert received == []
