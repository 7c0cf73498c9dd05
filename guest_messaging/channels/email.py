from typing import Optional

import structlog

from guest_messaging.channels.base import Channel, SendResult, provider_request
from guest_messaging.errors import PermanentChannelError

logger = structlog.get_logger(__name__)

RESEND_API_URL = "https://api.resend.com/emails"
DEFAULT_SUBJECT = "A message about your stay"


class EmailSender:
    """Plain-text email through the Resend API."""

    channel = Channel.EMAIL.value

    def __init__(self, api_key: str, from_address: str) -> None:
        self.api_key = api_key
        self.from_address = from_address

    def send(self, recipient: str, content: str, subject: Optional[str] = None) -> SendResult:
        if "@" not in recipient:
            raise PermanentChannelError(self.channel, f"invalid email address: {recipient!r}")

        body = provider_request(
            self.channel,
            "POST",
            RESEND_API_URL,
            headers={"Authorization": f"Bearer {self.api_key}"},
            json={
                "from": self.from_address,
                "to": [recipient],
                "subject": subject or DEFAULT_SUBJECT,
                "text": content,
            },
        )
        logger.info("email_message_sent", provider_message_id=body.get("id"))
        return SendResult(provider_message_id=body.get("id"))
