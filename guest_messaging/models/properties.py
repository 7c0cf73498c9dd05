from sqlalchemy import Boolean, Column, Date, Float, ForeignKey, Integer, String, Time
from sqlalchemy.sql import func

from guest_messaging.config import SCHEMA
from guest_messaging.models.base import Base, UTCDateTime


class Property(Base):
    """
    A rentable property and its local clock.

    timezone, check_in_time and check_out_time anchor every date-relative
    automation rule for reservations at this property.
    """

    __tablename__ = "properties"
    __table_args__ = {"schema": SCHEMA}

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    address = Column(String(500), nullable=True)
    timezone = Column(String(64), nullable=True)  # falls back to DEFAULT_TIMEZONE
    check_in_time = Column(Time, nullable=True)
    check_out_time = Column(Time, nullable=True)
    created_at = Column(UTCDateTime, server_default=func.now(), nullable=False)


class Season(Base):
    """Pricing season; recurring seasons match on month/day only."""

    __tablename__ = "seasons"
    __table_args__ = {"schema": SCHEMA}

    id = Column(Integer, primary_key=True, autoincrement=True)
    property_id = Column(
        Integer,
        ForeignKey(f"{SCHEMA}.properties.id", ondelete="CASCADE"),
        nullable=True,  # NULL = applies to every property
        index=True,
    )
    name = Column(String(255), nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    multiplier = Column(Float, nullable=False, default=1.0)
    recurring = Column(Boolean, nullable=False, default=True)
    display_order = Column(Integer, nullable=False, default=0)
