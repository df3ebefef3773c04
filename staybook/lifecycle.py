"""Booking lifecycle: creation, identity verification, manual payment, confirmation.

Every operation takes an explicit ``Identity`` and a SQLAlchemy session, re-reads
the booking under a row lock, runs all guards, and only then mutates the row.
A failed guard therefore leaves the record untouched; the surrounding request
transaction is the unit of atomicity.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, InvalidOperation

from prometheus_client import Counter
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .admission import ALREADY_BOOKED, check_phone_on_file, check_stay
from .auth import Identity
from .config import settings
from .errors import AuthorizationError, DateConflict, GuardError, NotFoundError, ValidationError
from .models import FOOD_PREFERENCES, VERIFICATION_STATUSES, Booking, Property
from .pricing import PriceBreakdown, quote_for_property
from .storage import BlobStore, check_upload, object_path


logger = logging.getLogger("staybook.bookings")

TRANSITIONS = Counter("staybook_booking_transitions_total", "Booking lifecycle transitions", ["transition"])


class BookingStage(str, enum.Enum):
    AWAITING_ID_PROOFS = "awaiting_id_proofs"
    AWAITING_ID_APPROVAL = "awaiting_id_approval"
    ID_REJECTED = "id_rejected"
    AWAITING_PAYMENT = "awaiting_payment"
    AWAITING_CONFIRMATION = "awaiting_confirmation"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


@dataclass
class UploadedFile:
    filename: str | None
    content_type: str | None
    data: bytes


@dataclass
class AddOns:
    food_required: bool = False
    food_preference: str | None = None
    allergies: str | None = None
    special_requests: str | None = None


def stage_of(b: Booking) -> BookingStage:
    if b.status == "cancelled":
        return BookingStage.CANCELLED
    if b.status == "completed":
        return BookingStage.COMPLETED
    if b.status == "confirmed":
        return BookingStage.CONFIRMED
    if b.verification_status == "rejected":
        return BookingStage.ID_REJECTED
    if b.verification_status != "approved":
        if len(b.id_proofs or []) < settings.MIN_ID_PROOFS:
            return BookingStage.AWAITING_ID_PROOFS
        return BookingStage.AWAITING_ID_APPROVAL
    if b.manual_reference or b.payment_screenshot_url:
        return BookingStage.AWAITING_CONFIRMATION
    return BookingStage.AWAITING_PAYMENT


def can_act(identity: Identity, b: Booking) -> bool:
    return identity.is_admin or b.customer_id == identity.id


def _record(transition: str, b: Booking, identity: Identity) -> None:
    TRANSITIONS.labels(transition).inc()
    logger.info(
        "booking %s %s by %s(%s): status=%s verification=%s",
        b.id, transition, identity.id, identity.role, b.status, b.verification_status,
    )


def _locked(db: Session, booking_id: str) -> Booking:
    b = db.execute(select(Booking).where(Booking.id == booking_id).with_for_update()).scalars().first()
    if b is None:
        raise NotFoundError("Booking not found")
    return b


def _owned(db: Session, identity: Identity, booking_id: str, action: str) -> Booking:
    b = _locked(db, booking_id)
    if not can_act(identity, b):
        raise AuthorizationError(f"Not authorized to {action} this booking")
    return b


def _admin_only(identity: Identity) -> None:
    if not identity.is_admin:
        raise AuthorizationError("Admin access required")


def get_booking_for(db: Session, identity: Identity, booking_id: str) -> Booking:
    b = db.get(Booking, booking_id)
    # Other customers' bookings are reported as missing, not forbidden
    if b is None or not can_act(identity, b):
        raise NotFoundError("Booking not found")
    return b


def compute_quote(db: Session, property_id: str, check_in: date, check_out: date, num_guests: int, food_required: bool = False) -> PriceBreakdown:
    prop = db.get(Property, property_id)
    if prop is None:
        raise NotFoundError("Property not found")
    return quote_for_property(prop, check_in, check_out, num_guests, food_required)


def create_booking(
    db: Session,
    identity: Identity,
    property_id: str,
    check_in: date,
    check_out: date,
    num_guests: int,
    addons: AddOns | None = None,
    *,
    today: date | None = None,
) -> Booking:
    addons = addons or AddOns()
    if addons.food_preference is not None and addons.food_preference not in FOOD_PREFERENCES:
        raise ValidationError("Invalid food preference", field="food_preference")
    # Lock the property row so concurrent requests for it queue behind this one
    prop = db.execute(select(Property).where(Property.id == property_id).with_for_update()).scalars().first()
    check_stay(db, prop, check_in, check_out, num_guests, today=today)
    check_phone_on_file(db, identity)
    quote = quote_for_property(prop, check_in, check_out, num_guests, addons.food_required)

    b = Booking(
        property_id=prop.id,
        customer_id=identity.id,
        check_in_date=check_in,
        check_out_date=check_out,
        num_guests=num_guests,
        base_amount=quote.base_amount,
        guest_charges=quote.guest_charges,
        extra_fees=quote.extra_fees,
        total_amount=quote.total_amount,
        advance_amount=quote.advance_amount,
        advance_paid=Decimal(0),
        status="pending",
        verification_status="pending",
        id_proofs=[],
        payment_method="manual",
        food_required=bool(addons.food_required),
        food_preference=addons.food_preference if addons.food_required else None,
        allergies=(addons.allergies or "").strip() or None,
        special_requests=(addons.special_requests or "").strip() or None,
    )
    try:
        with db.begin_nested():
            db.add(b)
            db.flush()
    except IntegrityError:
        # Lost the race on the per-day unique index
        logger.info("double booking blocked for property %s on %s", prop.id, check_in)
        raise DateConflict(ALREADY_BOOKED)
    _record("create", b, identity)
    return b


def upload_identity_proofs(db: Session, store: BlobStore, identity: Identity, booking_id: str, files: list[UploadedFile]) -> Booking:
    b = _owned(db, identity, booking_id, "upload for")
    if len(files) < settings.MIN_ID_PROOFS:
        raise ValidationError(f"Please upload at least {settings.MIN_ID_PROOFS} ID proofs", field="files")
    if len(files) > settings.MAX_ID_PROOF_FILES:
        raise ValidationError(f"At most {settings.MAX_ID_PROOF_FILES} files per upload", field="files")
    checked = [(f, check_upload(f.content_type, f.data, allow_pdf=True)) for f in files]
    urls = [
        store.put(object_path("id_proofs", b.id, "idproof", f.filename, ctype), f.data, ctype)
        for f, ctype in checked
    ]
    b.id_proofs = list(b.id_proofs or []) + urls
    b.verification_status = "pending"
    db.flush()
    _record("upload_id_proofs", b, identity)
    return b


def set_verification(db: Session, identity: Identity, booking_id: str, decision: str) -> Booking:
    _admin_only(identity)
    if decision not in VERIFICATION_STATUSES:
        raise ValidationError("Invalid status", field="status")
    b = _locked(db, booking_id)
    b.verification_status = decision
    db.flush()
    _record(f"verify_{decision}", b, identity)
    return b


def _payable(b: Booking) -> None:
    if b.verification_status != "approved":
        raise GuardError("ID proof not approved yet. Please wait for admin approval.", code="id_not_approved")
    if b.status == "cancelled":
        raise GuardError("Cannot process payment for cancelled booking", code="booking_cancelled")


def outstanding_advance(b: Booking) -> Decimal:
    return max(Decimal(b.advance_amount or 0) - Decimal(b.advance_paid or 0), Decimal(0))


def payment_intent(db: Session, identity: Identity, booking_id: str) -> tuple[Booking, Decimal]:
    b = _owned(db, identity, booking_id, "pay for")
    _payable(b)
    amount = outstanding_advance(b)
    if amount <= 0:
        raise GuardError("Advance payment already completed", code="advance_settled")
    b.payment_method = "manual"
    db.flush()
    return b, amount


def _parse_amount(value) -> Decimal:
    if value is None or value == "":
        return Decimal(0)
    try:
        amount = Decimal(str(value))
    except InvalidOperation:
        raise ValidationError("Amount must be a number", field="amount")
    if not amount.is_finite() or amount < 0:
        raise ValidationError("Amount cannot be negative", field="amount")
    return amount


def submit_payment(
    db: Session,
    store: BlobStore,
    identity: Identity,
    booking_id: str,
    amount=None,
    reference: str | None = None,
    screenshot: UploadedFile | None = None,
) -> Booking:
    """Record a manual transfer; the booking stays pending until an admin confirms."""
    b = _owned(db, identity, booking_id, "pay for")
    _payable(b)
    paid = _parse_amount(amount)
    new_total = Decimal(b.advance_paid or 0) + paid
    if new_total > Decimal(b.total_amount):
        raise ValidationError("Payment exceeds the booking total", field="amount")
    reference = (reference or "").strip() or None
    screenshot_url = None
    if screenshot is not None:
        ctype = check_upload(screenshot.content_type, screenshot.data, field="payment_screenshot")
        path = object_path("payment_screenshots", b.id, "payment", screenshot.filename, ctype)
        screenshot_url = store.put(path, screenshot.data, ctype)
    b.advance_paid = new_total
    b.payment_method = "manual"
    if reference:
        b.manual_reference = reference[:128]
    if screenshot_url:
        b.payment_screenshot_url = screenshot_url
    db.flush()
    _record("submit_payment", b, identity)
    return b


def confirm_booking(db: Session, identity: Identity, booking_id: str) -> Booking:
    _admin_only(identity)
    b = _locked(db, booking_id)
    if b.status != "pending":
        raise GuardError("Booking is not in pending status")
    b.status = "confirmed"
    db.flush()
    _record("confirm", b, identity)
    return b


def cancel_booking(db: Session, identity: Identity, booking_id: str, reason: str | None = None) -> Booking:
    b = _owned(db, identity, booking_id, "cancel")
    if b.status in ("cancelled", "completed"):
        raise GuardError("Booking cannot be cancelled")
    b.status = "cancelled"
    if reason and reason.strip():
        b.cancellation_reason = reason.strip()[:512]
    db.flush()
    _record("cancel", b, identity)
    return b


def complete_booking(db: Session, identity: Identity, booking_id: str) -> Booking:
    _admin_only(identity)
    b = _locked(db, booking_id)
    if b.status != "confirmed":
        raise GuardError("Only confirmed bookings can be marked as completed")
    b.status = "completed"
    db.flush()
    _record("complete", b, identity)
    return b
