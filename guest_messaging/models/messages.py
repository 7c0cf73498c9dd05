from sqlalchemy import (
    Boolean,
    Column,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.sql import func

from guest_messaging.config import SCHEMA
from guest_messaging.models.base import Base, JSONType, UTCDateTime


class Thread(Base):
    """
    Conversation scoped to one reservation.

    last_message_at and last_message_preview are denormalized from the most
    recent message; unread counts are always derived from deliveries.
    """

    __tablename__ = "threads"
    __table_args__ = {"schema": SCHEMA}

    id = Column(Integer, primary_key=True, autoincrement=True)
    reservation_id = Column(
        Integer,
        ForeignKey(f"{SCHEMA}.reservations.id", ondelete="CASCADE"),
        nullable=True,
        unique=True,
    )
    subject = Column(String(255), nullable=True)
    status = Column(String(16), nullable=False, default="open")
    last_message_at = Column(UTCDateTime, nullable=True)
    last_message_preview = Column(String(200), nullable=True)
    created_at = Column(UTCDateTime, server_default=func.now(), nullable=False)
    updated_at = Column(
        UTCDateTime, server_default=func.now(), onupdate=func.now(), nullable=False
    )


class Message(Base):
    """A single communication unit inside a thread."""

    __tablename__ = "messages"
    __table_args__ = {"schema": SCHEMA}

    id = Column(Integer, primary_key=True, autoincrement=True)
    thread_id = Column(
        Integer,
        ForeignKey(f"{SCHEMA}.threads.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    parent_message_id = Column(
        Integer, ForeignKey(f"{SCHEMA}.messages.id", ondelete="SET NULL"), nullable=True
    )
    origin_role = Column(String(16), nullable=False)  # guest, host, assistant, system
    direction = Column(String(16), nullable=False)  # incoming, outgoing
    channel = Column(String(16), nullable=False)
    content = Column(Text, nullable=False, default="")
    image_urls = Column(JSONType, nullable=True)
    is_unsent = Column(Boolean, nullable=False, default=False)
    created_at = Column(UTCDateTime, server_default=func.now(), nullable=False)


class MessageDelivery(Base):
    """
    One transport attempt of a message over one channel.

    status only moves forward: queued -> sent -> delivered -> read, with failed
    reachable from queued or sent. A retry is a new row with attempt + 1.
    """

    __tablename__ = "message_deliveries"
    __table_args__ = (
        UniqueConstraint("message_id", "channel", "attempt", name="uq_delivery_attempt"),
        UniqueConstraint("channel", "provider_message_id", name="uq_delivery_provider_id"),
        {"schema": SCHEMA},
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    message_id = Column(
        Integer,
        ForeignKey(f"{SCHEMA}.messages.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    channel = Column(String(16), nullable=False)
    attempt = Column(Integer, nullable=False, default=1)
    status = Column(String(16), nullable=False, default="queued")
    provider_message_id = Column(String(255), nullable=True)
    error_message = Column(Text, nullable=True)
    queued_at = Column(UTCDateTime, nullable=True)
    sent_at = Column(UTCDateTime, nullable=True)
    delivered_at = Column(UTCDateTime, nullable=True)
    read_at = Column(UTCDateTime, nullable=True)
    failed_at = Column(UTCDateTime, nullable=True)
    created_at = Column(UTCDateTime, server_default=func.now(), nullable=False)
