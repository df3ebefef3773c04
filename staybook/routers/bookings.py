import math
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Query, UploadFile
from sqlalchemy import and_, or_
from sqlalchemy.orm import Session

from .. import lifecycle
from ..auth import Identity, get_current_identity
from ..database import get_db
from ..lifecycle import AddOns, UploadedFile, stage_of
from ..models import Booking, Profile, Property
from ..schemas import BookingCreateIn, BookingOut, BookingsPageOut, CancelIn, VerifyIn
from ..storage import BlobStore, get_blob_store


router = APIRouter(prefix="/bookings", tags=["bookings"])


def booking_out(b: Booking, property_name: str | None = None, customer_name: str | None = None) -> BookingOut:
    return BookingOut(
        id=b.id, property_id=b.property_id, property_name=property_name, customer_id=b.customer_id,
        customer_name=customer_name, check_in_date=b.check_in_date, check_out_date=b.check_out_date,
        num_guests=b.num_guests, base_amount=b.base_amount, guest_charges=b.guest_charges,
        extra_fees=b.extra_fees, total_amount=b.total_amount, advance_amount=b.advance_amount,
        advance_paid=b.advance_paid, status=b.status, verification_status=b.verification_status,
        stage=stage_of(b).value, id_proofs=list(b.id_proofs or []), payment_method=b.payment_method,
        manual_reference=b.manual_reference, payment_screenshot_url=b.payment_screenshot_url,
        food_required=bool(b.food_required), food_preference=b.food_preference, allergies=b.allergies,
        special_requests=b.special_requests, cancellation_reason=b.cancellation_reason,
        created_at=b.created_at, updated_at=b.updated_at,
    )


@router.get("", response_model=BookingsPageOut)
def list_bookings(
    status: Optional[str] = None,
    verification: Optional[str] = None,
    property_id: Optional[str] = None,
    customer_id: Optional[str] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    q = db.query(Booking)
    if not identity.is_admin:
        q = q.filter(Booking.customer_id == identity.id)
    else:
        if property_id:
            q = q.filter(Booking.property_id == property_id)
        if customer_id:
            q = q.filter(Booking.customer_id == customer_id)
    if status:
        q = q.filter(Booking.status == status)
    if verification:
        q = q.filter(Booking.verification_status == verification)
    if start_date and end_date:
        q = q.filter(or_(
            and_(Booking.check_in_date >= start_date, Booking.check_in_date <= end_date),
            and_(Booking.check_out_date >= start_date, Booking.check_out_date <= end_date),
        ))
    total = q.count()
    rows = q.order_by(Booking.created_at.desc()).offset((page - 1) * limit).limit(limit).all()

    prop_ids = {b.property_id for b in rows}
    cust_ids = {b.customer_id for b in rows}
    prop_names = {pid: name for (pid, name) in db.query(Property.id, Property.name).filter(Property.id.in_(prop_ids)).all()} if prop_ids else {}
    cust_names = {cid: name for (cid, name) in db.query(Profile.id, Profile.full_name).filter(Profile.id.in_(cust_ids)).all()} if cust_ids else {}
    data = [booking_out(b, prop_names.get(b.property_id), cust_names.get(b.customer_id)) for b in rows]
    return BookingsPageOut(count=len(data), total=total, page=page, pages=math.ceil(total / limit), data=data)


@router.get("/{booking_id}", response_model=BookingOut)
def get_booking(booking_id: str, identity: Identity = Depends(get_current_identity), db: Session = Depends(get_db)):
    b = lifecycle.get_booking_for(db, identity, booking_id)
    prop = db.get(Property, b.property_id)
    return booking_out(b, prop.name if prop else None)


@router.post("", response_model=BookingOut)
def create_booking(payload: BookingCreateIn, identity: Identity = Depends(get_current_identity), db: Session = Depends(get_db)):
    addons = AddOns(
        food_required=payload.food_required,
        food_preference=payload.food_preference,
        allergies=payload.allergies,
        special_requests=payload.special_requests,
    )
    b = lifecycle.create_booking(db, identity, payload.property_id, payload.check_in, payload.check_out, payload.num_guests, addons)
    return booking_out(b, b.property.name if b.property else None)


@router.post("/{booking_id}/id-proofs", response_model=BookingOut)
def upload_id_proofs(
    booking_id: str,
    files: List[UploadFile] = File(...),
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
    store: BlobStore = Depends(get_blob_store),
):
    uploads = [UploadedFile(filename=f.filename, content_type=f.content_type, data=f.file.read()) for f in files]
    b = lifecycle.upload_identity_proofs(db, store, identity, booking_id, uploads)
    return booking_out(b)


@router.post("/{booking_id}/verify", response_model=BookingOut)
def verify_id_proofs(booking_id: str, payload: VerifyIn, identity: Identity = Depends(get_current_identity), db: Session = Depends(get_db)):
    return booking_out(lifecycle.set_verification(db, identity, booking_id, payload.status))


@router.post("/{booking_id}/confirm", response_model=BookingOut)
def confirm_booking(booking_id: str, identity: Identity = Depends(get_current_identity), db: Session = Depends(get_db)):
    return booking_out(lifecycle.confirm_booking(db, identity, booking_id))


@router.post("/{booking_id}/cancel", response_model=BookingOut)
def cancel_booking(booking_id: str, payload: CancelIn | None = None, identity: Identity = Depends(get_current_identity), db: Session = Depends(get_db)):
    reason = payload.reason if payload else None
    return booking_out(lifecycle.cancel_booking(db, identity, booking_id, reason))


@router.post("/{booking_id}/complete", response_model=BookingOut)
def complete_booking(booking_id: str, identity: Identity = Depends(get_current_identity), db: Session = Depends(get_db)):
    return booking_out(lifecycle.complete_booking(db, identity, booking_id))
