import uuid
from datetime import datetime

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import declarative_base, relationship


Base = declarative_base()

Money = Numeric(12, 2, asdecimal=True)

BOOKING_STATUSES = ("pending", "confirmed", "cancelled", "completed")
ACTIVE_BOOKING_STATUSES = ("pending", "confirmed")
VERIFICATION_STATUSES = ("pending", "approved", "rejected")
FOOD_PREFERENCES = ("veg", "non-veg", "both")


def default_id() -> str:
    return str(uuid.uuid4())


class Profile(Base):
    __tablename__ = "profiles"

    # Provider-issued opaque id, not generated locally
    id = Column(String(128), primary_key=True)
    full_name = Column(String(128), nullable=True)
    phone = Column(String(32), nullable=True)
    phone_verified = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)


class Property(Base):
    __tablename__ = "properties"

    id = Column(String(36), primary_key=True, default=default_id)
    name = Column(String(128), nullable=False)
    description = Column(Text, nullable=True)
    location = Column(String(256), nullable=False)
    city = Column(String(64), nullable=True, index=True)
    state = Column(String(64), nullable=True)
    zip_code = Column(String(16), nullable=True)
    base_price_per_night = Column(Money, nullable=False)
    per_head_price = Column(Money, nullable=False, default=0)
    cleaning_fee = Column(Money, nullable=False, default=0)
    service_fee = Column(Money, nullable=False, default=0)
    max_guests = Column(Integer, nullable=False, default=1)
    facilities = Column(JSON, nullable=False, default=list)
    images = Column(JSON, nullable=False, default=list)
    videos = Column(JSON, nullable=False, default=list)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    bookings = relationship("Booking", back_populates="property")
    blackouts = relationship("PropertyBlackout", back_populates="property")


class PropertyBlackout(Base):
    __tablename__ = "property_blackouts"
    __table_args__ = (
        UniqueConstraint("property_id", "date", name="uq_property_blackouts_property_date"),
    )

    id = Column(String(36), primary_key=True, default=default_id)
    property_id = Column(String(36), ForeignKey("properties.id", ondelete="CASCADE"), nullable=False)
    date = Column(Date, nullable=False)
    reason = Column(String(256), nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    property = relationship("Property", back_populates="blackouts")


_ACTIVE_DAY = text("status IN ('pending', 'confirmed')")


class Booking(Base):
    __tablename__ = "bookings"
    __table_args__ = (
        # One live day-use booking per property and date
        Index(
            "uq_bookings_active_property_day",
            "property_id",
            "check_in_date",
            unique=True,
            postgresql_where=_ACTIVE_DAY,
            sqlite_where=_ACTIVE_DAY,
        ),
    )

    id = Column(String(36), primary_key=True, default=default_id)
    property_id = Column(String(36), ForeignKey("properties.id"), nullable=False, index=True)
    customer_id = Column(String(128), nullable=False, index=True)
    check_in_date = Column(Date, nullable=False)
    check_out_date = Column(Date, nullable=False)
    num_guests = Column(Integer, nullable=False)
    base_amount = Column(Money, nullable=False)
    guest_charges = Column(Money, nullable=False, default=0)
    extra_fees = Column(Money, nullable=False, default=0)
    total_amount = Column(Money, nullable=False)
    advance_amount = Column(Money, nullable=False, default=0)
    advance_paid = Column(Money, nullable=False, default=0)
    status = Column(String(16), nullable=False, default="pending")  # pending|confirmed|cancelled|completed
    verification_status = Column(String(16), nullable=False, default="pending")  # pending|approved|rejected
    id_proofs = Column(JSON, nullable=False, default=list)
    payment_method = Column(String(16), nullable=False, default="manual")
    manual_reference = Column(String(128), nullable=True)
    payment_screenshot_url = Column(String(1024), nullable=True)
    food_required = Column(Boolean, nullable=False, default=False)
    food_preference = Column(String(16), nullable=True)  # veg|non-veg|both
    allergies = Column(Text, nullable=True)
    special_requests = Column(Text, nullable=True)
    cancellation_reason = Column(String(512), nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    property = relationship("Property", back_populates="bookings")
