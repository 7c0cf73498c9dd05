from typing import Literal, Optional

from pydantic import BaseModel, Field


class SendMessagePayload(BaseModel):
    """Schema for a manually written message on a thread."""

    content: str = Field(..., min_length=1)
    channel: Literal["inapp", "whatsapp", "sms", "email", "ota"] = "inapp"
    origin_role: Literal["host", "assistant"] = "host"
    parent_message_id: Optional[int] = None


class ThreadStatusPayload(BaseModel):
    status: Literal["open", "closed"]


class MarkThreadReadPayload(BaseModel):
    viewer: Literal["host", "guest"] = "host"
    up_to_message_id: Optional[int] = None
