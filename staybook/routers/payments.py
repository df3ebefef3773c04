from typing import Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile
from sqlalchemy.orm import Session

from .. import lifecycle
from ..auth import Identity, get_current_identity
from ..config import settings
from ..database import get_db
from ..lifecycle import UploadedFile, stage_of
from ..schemas import BookingOut, PaymentDetailsOut, PaymentIntentIn, PaymentIntentOut
from ..storage import BlobStore, get_blob_store
from .bookings import booking_out


router = APIRouter(prefix="/payments", tags=["payments"])


@router.post("/intent", response_model=PaymentIntentOut)
def create_intent(payload: PaymentIntentIn, identity: Identity = Depends(get_current_identity), db: Session = Depends(get_db)):
    b, amount = lifecycle.payment_intent(db, identity, payload.booking_id)
    return PaymentIntentOut(booking_id=b.id, amount=amount, currency=settings.CURRENCY)


@router.post("/submit", response_model=BookingOut)
def submit_payment(
    booking_id: str = Form(...),
    amount: Optional[str] = Form(default=None),
    reference_id: Optional[str] = Form(default=None),
    payment_screenshot: Optional[UploadFile] = File(default=None),
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
    store: BlobStore = Depends(get_blob_store),
):
    screenshot = None
    if payment_screenshot is not None and payment_screenshot.filename:
        screenshot = UploadedFile(
            filename=payment_screenshot.filename,
            content_type=payment_screenshot.content_type,
            data=payment_screenshot.file.read(),
        )
    b = lifecycle.submit_payment(db, store, identity, booking_id, amount, reference_id, screenshot)
    return booking_out(b)


@router.get("/booking/{booking_id}", response_model=PaymentDetailsOut)
def payment_details(booking_id: str, identity: Identity = Depends(get_current_identity), db: Session = Depends(get_db)):
    b = lifecycle.get_booking_for(db, identity, booking_id)
    return PaymentDetailsOut(
        booking_id=b.id,
        total_amount=b.total_amount,
        advance_amount=b.advance_amount,
        advance_paid=b.advance_paid,
        remaining_amount=b.total_amount - b.advance_paid,
        payment_method=b.payment_method,
        manual_reference=b.manual_reference,
        payment_screenshot_url=b.payment_screenshot_url,
        status=b.status,
        stage=stage_of(b).value,
    )
