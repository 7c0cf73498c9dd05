from __future__ import annotations

from typing import Optional

import structlog

from guest_messaging import config
from guest_messaging.channels.base import Channel, ChannelSender
from guest_messaging.channels.email import EmailSender
from guest_messaging.channels.inapp import InAppSender
from guest_messaging.channels.ota import OtaSender
from guest_messaging.channels.sms import SmsSender
from guest_messaging.channels.whatsapp import WhatsAppSender
from guest_messaging.errors import PermanentChannelError

logger = structlog.get_logger(__name__)


class ChannelRegistry:
    """Configured senders keyed by channel name."""

    def __init__(self, senders: Optional[dict[str, ChannelSender]] = None) -> None:
        self._senders: dict[str, ChannelSender] = dict(senders or {})

    def register(self, sender: ChannelSender) -> None:
        self._senders[sender.channel] = sender

    def get(self, channel: str) -> ChannelSender:
        """
        Sender for a channel.

        Raises:
            PermanentChannelError: If the channel is not configured
        """
        sender = self._senders.get(channel)
        if sender is None:
            raise PermanentChannelError(channel, "channel not configured")
        return sender

    def configured_channels(self) -> list[str]:
        return sorted(self._senders)


def build_channel_registry() -> ChannelRegistry:
    """Registry with in-app always on and every provider that has credentials."""
    registry = ChannelRegistry()
    registry.register(InAppSender())

    if config.WHATSAPP_ACCESS_TOKEN and config.WHATSAPP_PHONE_NUMBER_ID:
        registry.register(
            WhatsAppSender(
                config.WHATSAPP_ACCESS_TOKEN,
                config.WHATSAPP_PHONE_NUMBER_ID,
                config.WHATSAPP_API_VERSION,
            )
        )
    if config.TWILIO_ACCOUNT_SID and config.TWILIO_AUTH_TOKEN and config.TWILIO_FROM_NUMBER:
        registry.register(
            SmsSender(config.TWILIO_ACCOUNT_SID, config.TWILIO_AUTH_TOKEN, config.TWILIO_FROM_NUMBER)
        )
    if config.RESEND_API_KEY and config.EMAIL_FROM_ADDRESS:
        registry.register(EmailSender(config.RESEND_API_KEY, config.EMAIL_FROM_ADDRESS))
    if config.OTA_API_TOKEN:
        registry.register(OtaSender(config.OTA_API_TOKEN, config.OTA_API_BASE_URL))

    logger.info("channels_configured", channels=registry.configured_channels())
    return registry


def resolve_recipient(channel: str, reservation: dict, thread_id: int) -> str:
    """
    Address a channel expects for this reservation's guest.

    Raises:
        PermanentChannelError: If the reservation lacks the needed contact detail
    """
    if channel == Channel.INAPP.value:
        return str(thread_id)
    field = {
        Channel.WHATSAPP.value: "guest_phone",
        Channel.SMS.value: "guest_phone",
        Channel.EMAIL.value: "guest_email",
        Channel.OTA.value: "external_booking_id",
    }.get(channel)
    if field is None:
        raise PermanentChannelError(channel, "unknown channel")
    recipient = reservation.get(field)
    if not recipient:
        raise PermanentChannelError(channel, f"reservation has no {field}")
    return str(recipient)
