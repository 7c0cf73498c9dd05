from typing import Optional

from guest_messaging.channels.base import Channel, SendResult


class InAppSender:
    """
    In-app channel: the message row is the transport.

    Persisting the message already made it visible to the guest, so a send
    is delivered immediately and carries no provider id.
    """

    channel = Channel.INAPP.value

    def send(self, recipient: str, content: str, subject: Optional[str] = None) -> SendResult:
        return SendResult(provider_message_id=None, delivered=True)
