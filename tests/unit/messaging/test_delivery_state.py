"""Unit tests for the delivery status state machine."""

from __future__ import annotations

import pytest

from guest_messaging.messaging.delivery_state import (
    DeliveryStatus,
    allowed_sources,
    can_transition,
)


@pytest.mark.unit
@pytest.mark.parametrize(
    "current,target",
    [
        ("queued", "sent"),
        ("sent", "delivered"),
        ("delivered", "read"),
        ("queued", "delivered"),
        ("sent", "read"),
        ("queued", "failed"),
        ("sent", "failed"),
    ],
)
def test_forward_transitions_are_allowed(current: str, target: str) -> None:
    assert can_transition(current, target)


@pytest.mark.unit
@pytest.mark.parametrize(
    "current,target",
    [
        ("read", "delivered"),
        ("delivered", "sent"),
        ("read", "failed"),
        ("failed", "sent"),
        ("delivered", "failed"),
        ("sent", "sent"),
    ],
)
def test_backward_terminal_and_repeated_transitions_are_rejected(
    current: str, target: str
) -> None:
    assert not can_transition(current, target)


@pytest.mark.unit
def test_allowed_sources_for_read_and_failed() -> None:
    assert allowed_sources("read") == {
        DeliveryStatus.QUEUED,
        DeliveryStatus.SENT,
        DeliveryStatus.DELIVERED,
    }
    assert allowed_sources(DeliveryStatus.FAILED) == {DeliveryStatus.QUEUED, DeliveryStatus.SENT}
