from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..auth import Identity, get_current_identity
from ..config import settings
from ..database import get_db
from ..models import Profile
from ..schemas import ProfileOut, ProfileUpdateIn
from ..utils.phone import normalize_phone_e164


router = APIRouter(prefix="/profile", tags=["profile"])


def _out(p: Profile) -> ProfileOut:
    return ProfileOut(id=p.id, full_name=p.full_name, phone=p.phone, phone_verified=bool(p.phone_verified))


def _provider_verified(identity: Identity, phone: str | None) -> bool:
    # Only the identity provider can vouch for a number; clients cannot set the flag
    if not phone or not identity.phone:
        return False
    cc = settings.DEFAULT_COUNTRY_CODE
    return normalize_phone_e164(identity.phone, cc) == normalize_phone_e164(phone, cc)


@router.get("", response_model=ProfileOut)
def get_profile(identity: Identity = Depends(get_current_identity), db: Session = Depends(get_db)):
    p = db.get(Profile, identity.id)
    if p is None:
        return ProfileOut(id=identity.id, full_name=identity.name, phone=identity.phone, phone_verified=bool(identity.phone))
    return _out(p)


@router.put("", response_model=ProfileOut)
def update_profile(payload: ProfileUpdateIn, identity: Identity = Depends(get_current_identity), db: Session = Depends(get_db)):
    p = db.get(Profile, identity.id)
    if p is None:
        p = Profile(id=identity.id, full_name=identity.name)
        db.add(p)
    if payload.full_name is not None:
        p.full_name = payload.full_name.strip() or None
    if payload.phone is not None:
        p.phone = normalize_phone_e164(payload.phone, settings.DEFAULT_COUNTRY_CODE) or None
    p.phone_verified = _provider_verified(identity, p.phone)
    db.flush()
    return _out(p)
