"""
Delivery status state machine.

    queued -> sent -> delivered -> read
       \\        \\
        +--------+--> failed

Forward jumps are allowed (a provider may report "delivered" before we ever
saw "sent"). Nothing moves backward, read and failed are terminal, and a
transition to the current state is a no-op.
"""

from __future__ import annotations

from enum import Enum


class DeliveryStatus(str, Enum):
    QUEUED = "queued"
    SENT = "sent"
    DELIVERED = "delivered"
    READ = "read"
    FAILED = "failed"


_RANK = {
    DeliveryStatus.QUEUED: 0,
    DeliveryStatus.SENT: 1,
    DeliveryStatus.DELIVERED: 2,
    DeliveryStatus.READ: 3,
}

TERMINAL_STATES = frozenset({DeliveryStatus.READ, DeliveryStatus.FAILED})

FAILABLE_STATES = frozenset({DeliveryStatus.QUEUED, DeliveryStatus.SENT})

# Column stamped when a row enters each state
TIMESTAMP_COLUMNS = {
    DeliveryStatus.QUEUED: "queued_at",
    DeliveryStatus.SENT: "sent_at",
    DeliveryStatus.DELIVERED: "delivered_at",
    DeliveryStatus.READ: "read_at",
    DeliveryStatus.FAILED: "failed_at",
}


def can_transition(current: DeliveryStatus | str, target: DeliveryStatus | str) -> bool:
    """
    Whether a delivery in ``current`` may move to ``target``.

    Example:
        >>> can_transition("read", "delivered")
        False
        >>> can_transition("queued", "delivered")
        True
    """
    current = DeliveryStatus(current)
    target = DeliveryStatus(target)
    if current in TERMINAL_STATES:
        return False
    if target is DeliveryStatus.FAILED:
        return current in FAILABLE_STATES
    return _RANK[target] > _RANK[current]


def allowed_sources(target: DeliveryStatus | str) -> frozenset[DeliveryStatus]:
    """States from which ``target`` is reachable; used as a compare-and-set guard."""
    target = DeliveryStatus(target)
    return frozenset(s for s in DeliveryStatus if can_transition(s, target))
