from typing import Optional

import structlog

from guest_messaging.channels.base import Channel, SendResult, provider_request
from guest_messaging.errors import PermanentChannelError

logger = structlog.get_logger(__name__)

GRAPH_API_URL = "https://graph.facebook.com"


class WhatsAppSender:
    """Text messages through the WhatsApp Cloud API."""

    channel = Channel.WHATSAPP.value

    def __init__(self, access_token: str, phone_number_id: str, api_version: str = "v19.0") -> None:
        self.access_token = access_token
        self.phone_number_id = phone_number_id
        self.api_version = api_version

    def send(self, recipient: str, content: str, subject: Optional[str] = None) -> SendResult:
        to = recipient.lstrip("+").replace(" ", "").replace("-", "")
        if not to.isdigit():
            raise PermanentChannelError(self.channel, f"invalid WhatsApp number: {recipient!r}")

        body = provider_request(
            self.channel,
            "POST",
            f"{GRAPH_API_URL}/{self.api_version}/{self.phone_number_id}/messages",
            headers={"Authorization": f"Bearer {self.access_token}"},
            json={
                "messaging_product": "whatsapp",
                "to": to,
                "type": "text",
                "text": {"body": content},
            },
        )
        messages = body.get("messages") or []
        provider_id = messages[0].get("id") if messages else None
        logger.info("whatsapp_message_sent", provider_message_id=provider_id)
        return SendResult(provider_message_id=provider_id)
