"""
Inbound webhook envelope.

The provider posts ``{"eventId": ..., "event": ..., "data": {...}}``; the
``event`` tag selects exactly one payload shape. Anything that does not
validate against one of the variants is rejected at the boundary.
"""

from __future__ import annotations

from datetime import date, datetime, time
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from guest_messaging.errors import WebhookPayloadError


class _Payload(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class BookingData(_Payload):
    booking_id: str = Field(..., alias="bookingId", min_length=1)
    property_id: int = Field(..., alias="propertyId")
    guest_name: Optional[str] = Field(None, alias="guestName")
    guest_first_name: Optional[str] = Field(None, alias="guestFirstName")
    guest_last_name: Optional[str] = Field(None, alias="guestLastName")
    guest_email: Optional[str] = Field(None, alias="guestEmail")
    guest_phone: Optional[str] = Field(None, alias="guestPhone")
    booking_source: Optional[str] = Field(None, alias="bookingSource")
    num_guests: int = Field(1, alias="numGuests", ge=1)
    check_in_date: date = Field(..., alias="checkIn")
    check_out_date: date = Field(..., alias="checkOut")
    check_in_time: Optional[time] = Field(None, alias="checkInTime")
    check_out_time: Optional[time] = Field(None, alias="checkOutTime")
    status: str = "confirmed"
    group_master_booking_id: Optional[str] = Field(None, alias="masterBookingId")
    is_group_master: bool = Field(False, alias="isGroupMaster")


class BookingRef(_Payload):
    booking_id: str = Field(..., alias="bookingId", min_length=1)


class InboundMessageData(_Payload):
    booking_id: str = Field(..., alias="bookingId", min_length=1)
    channel: Literal["whatsapp", "sms", "email", "ota", "inapp"]
    provider_message_id: str = Field(..., alias="messageId", min_length=1)
    body: str = ""
    is_incoming: bool = Field(True, alias="isIncoming")
    attachments: list[str] = Field(default_factory=list)
    sent_at: Optional[datetime] = Field(None, alias="sentAt")


class DeliveryReceiptData(_Payload):
    channel: Literal["whatsapp", "sms", "email", "ota", "inapp"]
    provider_message_id: str = Field(..., alias="messageId", min_length=1)
    status: Literal["sent", "delivered", "read", "failed"]
    error: Optional[str] = None


class _Envelope(_Payload):
    event_id: str = Field(..., alias="eventId", min_length=1)


class BookingCreatedEvent(_Envelope):
    event: Literal["booking.created"]
    data: BookingData


class BookingUpdatedEvent(_Envelope):
    event: Literal["booking.updated"]
    data: BookingData


class BookingCancelledEvent(_Envelope):
    event: Literal["booking.cancelled"]
    data: BookingRef


class MessageReceivedEvent(_Envelope):
    event: Literal["message.received"]
    data: InboundMessageData


class MessageStatusEvent(_Envelope):
    event: Literal["message.status"]
    data: DeliveryReceiptData


WebhookEvent = Annotated[
    Union[
        BookingCreatedEvent,
        BookingUpdatedEvent,
        BookingCancelledEvent,
        MessageReceivedEvent,
        MessageStatusEvent,
    ],
    Field(discriminator="event"),
]

_webhook_adapter: TypeAdapter[Any] = TypeAdapter(WebhookEvent)


def parse_webhook_event(payload: Any) -> Any:
    """
    Validate a decoded webhook body into its event variant.

    Raises:
        WebhookPayloadError: Unknown event tag or malformed payload
    """
    try:
        return _webhook_adapter.validate_python(payload)
    except ValidationError as e:
        first = e.errors()[0] if e.errors() else {}
        location = ".".join(str(part) for part in first.get("loc", ()))
        message = first.get("msg", "invalid payload")
        raise WebhookPayloadError(f"{location}: {message}" if location else message) from e
