from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from app.db.base import Base
from app.utils.timezone import utc_now


class Booking(Base):
    """
    A reservation of a nanny for a date/time window.
    Owned by the booking service.
    """
    __tablename__ = "bookings"
    __table_args__ = {'extend_existing': True}

    id = Column(Integer, primary_key=True, autoincrement=True)
    nanny_id = Column(Integer, ForeignKey("nannies.id"), nullable=True, index=True)
    nanny_name = Column(String(255), nullable=False, default="")

    # Schedule
    date = Column(Date, nullable=False, index=True)
    end_date = Column(Date, nullable=True)
    start_time = Column(String(20), nullable=False)
    end_time = Column(String(20), nullable=False, default="")

    # Commercial
    plan = Column(String(20), nullable=False, default="hourly")  # hourly | half-day | full-day
    total_price = Column(Integer, nullable=False, default=0)

    # Client metadata (opaque to scheduling except children_count)
    client_name = Column(String(255), nullable=False, default="")
    client_email = Column(String(255), nullable=False, default="")
    client_phone = Column(String(50), nullable=False, default="")
    hotel = Column(String(255), nullable=False, default="")
    children_count = Column(Integer, nullable=False, default=1)
    children_ages = Column(String(255), nullable=False, default="")
    notes = Column(Text, nullable=False, default="")
    locale = Column(String(5), nullable=False, default="en")

    status = Column(String(20), nullable=False, default="pending", index=True)  # pending | confirmed | completed | cancelled

    # Shift tracking
    clock_in = Column(DateTime, nullable=True)
    clock_out = Column(DateTime, nullable=True)

    # Audit
    created_by = Column(String(20), nullable=False, default="parent")  # parent | admin | nanny
    created_by_name = Column(String(255), nullable=False, default="")
    created_at = Column(DateTime, default=utc_now, nullable=False)
    updated_at = Column(DateTime, default=utc_now, onupdate=utc_now, nullable=False)
    cancelled_at = Column(DateTime, nullable=True)
    cancelled_by = Column(String(20), nullable=False, default="")
    cancellation_reason = Column(Text, nullable=False, default="")
    deleted_at = Column(DateTime, nullable=True)
    deleted_by = Column(String(255), nullable=False, default="")
    collected_at = Column(DateTime, nullable=True)
    collected_by = Column(String(255), nullable=False, default="")
    payment_method = Column(String(50), nullable=False, default="")


class Nanny(Base):
    """
    Nannies table - managed by the admin back-office.
    Read-only here apart from booking assignment linkage.
    """
    __tablename__ = "nannies"
    __table_args__ = {'extend_existing': True}

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=False, default="")
    rate = Column(Float, nullable=False, default=10)  # customer-facing hourly price
    status = Column(String(20), nullable=False, default="active")  # active | blocked | invited
    available = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=utc_now, nullable=False)


class NannyBlockedDate(Base):
    """Days a nanny has marked as unavailable."""
    __tablename__ = "nanny_blocked_dates"
    __table_args__ = (
        UniqueConstraint("nanny_id", "date", name="uq_nanny_blocked_date"),
        {'extend_existing': True},
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    nanny_id = Column(Integer, ForeignKey("nannies.id"), nullable=False, index=True)
    date = Column(Date, nullable=False)
    reason = Column(Text, nullable=False, default="")
    created_at = Column(DateTime, default=utc_now, nullable=False)
