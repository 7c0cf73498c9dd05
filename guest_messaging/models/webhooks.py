from sqlalchemy import Column, Integer, String
from sqlalchemy.sql import func

from guest_messaging.config import SCHEMA
from guest_messaging.models.base import Base, JSONType, UTCDateTime


class WebhookEvent(Base):
    """Processed inbound webhook events, keyed by the provider's event id."""

    __tablename__ = "webhook_events"
    __table_args__ = {"schema": SCHEMA}

    id = Column(Integer, primary_key=True, autoincrement=True)
    event_id = Column(String(128), nullable=False, unique=True)
    event_type = Column(String(64), nullable=False)
    payload = Column(JSONType, nullable=True)
    processed_at = Column(UTCDateTime, server_default=func.now(), nullable=False)
