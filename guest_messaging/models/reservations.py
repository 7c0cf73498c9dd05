# models/reservations.py

from sqlalchemy import Boolean, Column, Date, ForeignKey, Integer, String, Time
from sqlalchemy.sql import func

from guest_messaging.config import SCHEMA
from guest_messaging.models.base import Base, UTCDateTime


class Reservation(Base):
    """
    ORM model for a guest stay.

    check_in_time/check_out_time are explicit overrides; when NULL the
    property's defaults apply. Group children point at their master through
    group_master_id and are never automated themselves.
    """

    __tablename__ = "reservations"
    __table_args__ = {"schema": SCHEMA}

    id = Column(Integer, primary_key=True, autoincrement=True)
    external_booking_id = Column(String(64), nullable=True, unique=True)
    property_id = Column(
        Integer, ForeignKey(f"{SCHEMA}.properties.id", ondelete="CASCADE"), nullable=False
    )
    guest_name = Column(String(255), nullable=True)
    guest_first_name = Column(String(255), nullable=True)
    guest_last_name = Column(String(255), nullable=True)
    guest_email = Column(String(255), nullable=True)
    guest_phone = Column(String(64), nullable=True)
    booking_source = Column(String(64), nullable=True)
    num_guests = Column(Integer, nullable=False, default=1)
    check_in_date = Column(Date, nullable=False, index=True)
    check_out_date = Column(Date, nullable=False)
    check_in_time = Column(Time, nullable=True)
    check_out_time = Column(Time, nullable=True)
    status = Column(String(32), nullable=False, default="confirmed")
    group_master_id = Column(
        Integer, ForeignKey(f"{SCHEMA}.reservations.id", ondelete="SET NULL"), nullable=True
    )
    is_group_master = Column(Boolean, nullable=False, default=False)
    automation_enabled = Column(Boolean, nullable=False, default=True)
    created_at = Column(UTCDateTime, server_default=func.now(), nullable=False)
    updated_at = Column(
        UTCDateTime, server_default=func.now(), onupdate=func.now(), nullable=False
    )
