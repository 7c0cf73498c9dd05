"""
Domain exceptions.

Routes translate these into HTTP responses; the dispatch sweep records
ChannelError outcomes on the affected rows instead of propagating them.
"""

from __future__ import annotations


class GuestMessagingError(Exception):
    """Base class for all domain errors."""


class NotFoundError(GuestMessagingError):
    """A referenced record does not exist."""


class RuleValidationError(GuestMessagingError):
    """An automation rule or template definition is malformed."""


class DeliveryStateError(GuestMessagingError):
    """An operation is not valid for the current delivery state."""


class WebhookPayloadError(GuestMessagingError):
    """An inbound webhook body does not match any known event shape."""


class ChannelError(GuestMessagingError):
    """
    A channel sender rejected or could not complete a send.

    Attributes:
        channel: Channel name (whatsapp, sms, email, ota, inapp)
        transient: True for timeouts, rate limits and provider 5xx responses
    """

    transient = False

    def __init__(self, channel: str, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.channel = channel
        self.status_code = status_code

    def __str__(self) -> str:
        base = super().__str__()
        if self.status_code is not None:
            return f"[{self.channel}] HTTP {self.status_code}: {base}"
        return f"[{self.channel}] {base}"


class TransientChannelError(ChannelError):
    """Provider timeout, rate limit or 5xx. Not retried automatically."""

    transient = True


class PermanentChannelError(ChannelError):
    """Invalid recipient, rejected payload or channel not configured."""
