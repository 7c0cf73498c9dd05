from typing import Optional

import structlog

from guest_messaging.channels.base import Channel, SendResult, provider_request

logger = structlog.get_logger(__name__)

TWILIO_API_URL = "https://api.twilio.com/2010-04-01"


class SmsSender:
    """SMS through the Twilio Messages REST resource."""

    channel = Channel.SMS.value

    def __init__(self, account_sid: str, auth_token: str, from_number: str) -> None:
        self.account_sid = account_sid
        self.auth_token = auth_token
        self.from_number = from_number

    def send(self, recipient: str, content: str, subject: Optional[str] = None) -> SendResult:
        body = provider_request(
            self.channel,
            "POST",
            f"{TWILIO_API_URL}/Accounts/{self.account_sid}/Messages.json",
            auth=(self.account_sid, self.auth_token),
            data={"To": recipient, "From": self.from_number, "Body": content},
        )
        logger.info("sms_message_sent", provider_message_id=body.get("sid"))
        return SendResult(provider_message_id=body.get("sid"))
