from sqlalchemy import Boolean, Column, ForeignKey, Index, Integer, String, Text, text
from sqlalchemy.sql import func

from guest_messaging.config import SCHEMA
from guest_messaging.models.base import Base, JSONType, UTCDateTime

# Rows in these states count as the live instance of a (reservation, rule) pair
LIVE_SCHEDULED_PREDICATE = "status IN ('pending', 'processing')"


class MessageTemplate(Base):
    """Message body with {{ variable }} placeholders."""

    __tablename__ = "message_templates"
    __table_args__ = {"schema": SCHEMA}

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    language = Column(String(8), nullable=False, default="en")
    subject = Column(String(255), nullable=True)
    content = Column(Text, nullable=False)
    enabled = Column(Boolean, nullable=False, default=True)
    created_at = Column(UTCDateTime, server_default=func.now(), nullable=False)


class AutomationRule(Base):
    """
    Named automation policy.

    timing_type names exactly one timing variant and timing_params holds only
    that variant's parameters. property_id NULL makes the rule global.
    """

    __tablename__ = "automation_rules"
    __table_args__ = {"schema": SCHEMA}

    id = Column(Integer, primary_key=True, autoincrement=True)
    property_id = Column(
        Integer,
        ForeignKey(f"{SCHEMA}.properties.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    name = Column(String(255), nullable=False)
    template_id = Column(
        Integer, ForeignKey(f"{SCHEMA}.message_templates.id", ondelete="CASCADE"), nullable=False
    )
    channel = Column(String(16), nullable=False)
    timing_type = Column(String(40), nullable=False)
    timing_params = Column(JSONType, nullable=False)
    backfill_policy = Column(String(20), nullable=False, default="skip_if_past")
    filters = Column(JSONType, nullable=True)
    enabled = Column(Boolean, nullable=False, default=True)
    created_at = Column(UTCDateTime, server_default=func.now(), nullable=False)


class ScheduledMessage(Base):
    """
    One rule instance bound to one reservation.

    Status flow: pending -> processing (claimed by a sweep worker) -> sent | failed,
    or pending -> cancelled. At most one pending/processing row exists per
    (reservation_id, rule_id).
    """

    __tablename__ = "scheduled_messages"
    __table_args__ = (
        Index(
            "uq_scheduled_messages_live_pair",
            "reservation_id",
            "rule_id",
            unique=True,
            postgresql_where=text(LIVE_SCHEDULED_PREDICATE),
            sqlite_where=text(LIVE_SCHEDULED_PREDICATE),
        ),
        Index("ix_scheduled_messages_status_fire_at", "status", "fire_at"),
        {"schema": SCHEMA},
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    reservation_id = Column(
        Integer,
        ForeignKey(f"{SCHEMA}.reservations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    rule_id = Column(
        Integer, ForeignKey(f"{SCHEMA}.automation_rules.id", ondelete="CASCADE"), nullable=False
    )
    template_id = Column(
        Integer, ForeignKey(f"{SCHEMA}.message_templates.id", ondelete="SET NULL"), nullable=True
    )
    channel = Column(String(16), nullable=False)
    fire_at = Column(UTCDateTime, nullable=False)
    status = Column(String(16), nullable=False, default="pending")
    payload = Column(JSONType, nullable=True)  # template variables captured at scheduling
    cancellation_reason = Column(String(255), nullable=True)
    last_error = Column(Text, nullable=True)
    claim_token = Column(String(64), nullable=True)
    claimed_at = Column(UTCDateTime, nullable=True)
    sent_at = Column(UTCDateTime, nullable=True)
    thread_id = Column(Integer, nullable=True)
    message_id = Column(Integer, nullable=True)
    created_at = Column(UTCDateTime, server_default=func.now(), nullable=False)
    updated_at = Column(
        UTCDateTime, server_default=func.now(), onupdate=func.now(), nullable=False
    )
