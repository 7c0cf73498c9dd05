from typing import Optional

import structlog

from guest_messaging.channels.base import Channel, SendResult, provider_request
from guest_messaging.errors import PermanentChannelError

logger = structlog.get_logger(__name__)


class OtaSender:
    """
    Booking-platform messaging through the channel manager API (Beds24 v2).

    The recipient is the channel manager's booking id; the platform relays the
    message to the guest's OTA inbox.
    """

    channel = Channel.OTA.value

    def __init__(self, api_token: str, base_url: str = "https://beds24.com/api/v2") -> None:
        self.api_token = api_token
        self.base_url = base_url.rstrip("/")

    def send(self, recipient: str, content: str, subject: Optional[str] = None) -> SendResult:
        if not recipient.isdigit():
            raise PermanentChannelError(self.channel, f"invalid booking id: {recipient!r}")

        body = provider_request(
            self.channel,
            "POST",
            f"{self.base_url}/bookings/messages",
            headers={"token": self.api_token},
            json=[{"bookingId": int(recipient), "message": content}],
            expected=(list, dict),
        )
        result = body[0] if isinstance(body, list) and body else body
        if not isinstance(result, dict) or not result.get("success", False):
            errors = result.get("errors") if isinstance(result, dict) else None
            raise PermanentChannelError(self.channel, f"message rejected: {errors or body}")

        provider_id = (result.get("new") or {}).get("id")
        logger.info("ota_message_sent", booking_id=recipient, provider_message_id=provider_id)
        return SendResult(provider_message_id=str(provider_id) if provider_id else None)
