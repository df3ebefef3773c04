"""Rules deciding whether a requested stay may become a booking.

Checks run in a fixed order and the first failure wins, so callers always
see the same reason for the same request.
"""

from __future__ import annotations

import logging
from datetime import date

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .auth import Identity
from .config import settings
from .errors import AdmissionError, CollaboratorError, DateConflict, ValidationError
from .models import ACTIVE_BOOKING_STATUSES, Booking, Profile, Property, PropertyBlackout
from .utils.phone import mask_phone


logger = logging.getLogger("staybook.admission")

ALREADY_BOOKED = "Property is already booked for these dates"


def find_conflicts(db: Session, property_id: str, check_in: date, check_out: date) -> list[Booking]:
    """Live bookings whose inclusive date range overlaps [check_in, check_out]."""
    q = db.query(Booking).filter(
        Booking.property_id == property_id,
        Booking.status.in_(ACTIVE_BOOKING_STATUSES),
        Booking.check_in_date <= check_out,
        Booking.check_out_date >= check_in,
    )
    return q.all()


def find_blackouts(db: Session, property_id: str, check_in: date, check_out: date) -> list[PropertyBlackout]:
    return (
        db.query(PropertyBlackout)
        .filter(
            PropertyBlackout.property_id == property_id,
            PropertyBlackout.date >= check_in,
            PropertyBlackout.date <= check_out,
        )
        .order_by(PropertyBlackout.date.asc())
        .all()
    )


def check_stay(
    db: Session,
    prop: Property | None,
    check_in: date,
    check_out: date,
    num_guests: int,
    *,
    today: date | None = None,
) -> Property:
    """Run the identity-independent admission checks; return the property on success."""
    if prop is None or not prop.is_active:
        raise AdmissionError("Property is not available for booking", code="property_unavailable")
    if num_guests < 1:
        raise ValidationError("Number of guests must be at least 1", field="num_guests")
    if num_guests > prop.max_guests:
        raise ValidationError(f"Maximum {prop.max_guests} guests allowed", code="capacity_exceeded", field="num_guests")
    if check_in != check_out:
        raise AdmissionError("Same-day bookings only.", code="invalid_stay_shape")
    if check_in < (today or date.today()):
        raise AdmissionError("Check-in date cannot be in the past", code="past_date")
    if find_conflicts(db, prop.id, check_in, check_out):
        raise DateConflict(ALREADY_BOOKED)
    if find_blackouts(db, prop.id, check_in, check_out):
        raise AdmissionError("Property is not available on the selected date", code="blackout")
    return prop


def check_phone_on_file(db: Session, identity: Identity) -> None:
    """Reject identities with no phone number from either the provider or their profile.

    A failing profile lookup is let through when PHONE_CHECK_FAIL_OPEN is set.
    """
    if identity.phone and not settings.REQUIRE_PHONE_VERIFIED:
        return
    try:
        # A failed lookup must not abort the enclosing booking transaction
        with db.begin_nested():
            profile = db.get(Profile, identity.id)
    except SQLAlchemyError as exc:
        if settings.PHONE_CHECK_FAIL_OPEN:
            logger.warning("phone lookup failed for %s, allowing booking: %s", identity.id, exc)
            return
        raise CollaboratorError("Could not verify phone number")
    has_profile_phone = bool(profile and profile.phone)
    if not identity.phone and not has_profile_phone:
        raise AdmissionError(
            "Phone number required. Please add your phone number in your profile before making a booking.",
            code="phone_required",
        )
    if settings.REQUIRE_PHONE_VERIFIED:
        verified = bool(identity.phone) or bool(profile and profile.phone_verified)
        if not verified:
            phone = identity.phone or (profile.phone if profile else None)
            logger.info("unverified phone %s for %s", mask_phone(phone), identity.id)
            raise AdmissionError("Phone number verification required", code="phone_unverified")


def availability(db: Session, prop: Property | None, check_in: date, check_out: date, num_guests: int = 1, *, today: date | None = None) -> tuple[bool, str | None]:
    try:
        check_stay(db, prop, check_in, check_out, num_guests, today=today)
    except (AdmissionError, ValidationError) as exc:
        return False, exc.message
    return True, None
