import math
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Query, Request, UploadFile
from sqlalchemy import String, cast, or_
from sqlalchemy.orm import Session

from ..admission import availability
from ..auth import Identity, require_admin, try_get_identity
from ..config import settings
from ..database import get_db
from ..errors import NotFoundError, ValidationError
from ..lifecycle import compute_quote
from ..models import Property, PropertyBlackout
from ..schemas import (
    AvailabilityOut,
    BlackoutOut,
    BlackoutsIn,
    BlackoutsRemoveIn,
    MediaRemoveIn,
    PropertiesPageOut,
    PropertyCreateIn,
    PropertyOut,
    PropertyUpdateIn,
    QuoteIn,
    QuoteOut,
)
from ..storage import BlobStore, check_upload, get_blob_store, object_path


router = APIRouter(prefix="/properties", tags=["properties"])


def property_out(p: Property) -> PropertyOut:
    return PropertyOut(
        id=p.id, name=p.name, description=p.description, location=p.location, city=p.city, state=p.state,
        zip_code=p.zip_code, base_price_per_night=p.base_price_per_night, per_head_price=p.per_head_price,
        cleaning_fee=p.cleaning_fee, service_fee=p.service_fee, max_guests=p.max_guests,
        facilities=list(p.facilities or []), images=list(p.images or []), videos=list(p.videos or []),
        is_active=bool(p.is_active), created_at=p.created_at,
    )


def _visible(db: Session, property_id: str, identity: Identity | None) -> Property:
    p = db.get(Property, property_id)
    if p is None or (not p.is_active and not (identity and identity.is_admin)):
        raise NotFoundError("Property not found")
    return p


def _clean_labels(values: List[str]) -> List[str]:
    out: List[str] = []
    for v in values:
        v = (v or "").strip()
        if v and v not in out:
            out.append(v[:64])
    return out


@router.get("", response_model=PropertiesPageOut)
def list_properties(
    request: Request,
    city: Optional[str] = None,
    state: Optional[str] = None,
    max_guests: Optional[int] = Query(default=None, ge=1),
    min_price: Optional[float] = Query(default=None, ge=0),
    max_price: Optional[float] = Query(default=None, ge=0),
    facilities: Optional[List[str]] = Query(default=None),
    search: Optional[str] = None,
    include_inactive: bool = False,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    db: Session = Depends(get_db),
):
    identity = try_get_identity(request)
    q = db.query(Property)
    if not (include_inactive and identity and identity.is_admin):
        q = q.filter(Property.is_active.is_(True))
    if city:
        q = q.filter(Property.city.ilike(f"%{city}%"))
    if state:
        q = q.filter(Property.state.ilike(f"%{state}%"))
    if max_guests:
        q = q.filter(Property.max_guests >= max_guests)
    if min_price is not None:
        q = q.filter(Property.base_price_per_night >= min_price)
    if max_price is not None:
        q = q.filter(Property.base_price_per_night <= max_price)
    if search:
        like = f"%{search.strip()}%"
        q = q.filter(or_(Property.name.ilike(like), Property.location.ilike(like), Property.description.ilike(like)))
    q = q.order_by(Property.created_at.desc())
    wanted = {f.strip().lower() for f in (facilities or []) if f.strip()}
    if not wanted:
        total = q.count()
        rows = q.offset((page - 1) * limit).limit(limit).all()
    else:
        # JSON escapes non-ASCII, so only ASCII labels narrow in SQL; labels match exactly below
        for label in (x for x in wanted if x.isascii()):
            q = q.filter(cast(Property.facilities, String).ilike(f"%{label}%"))
        matched = [p for p in q.all() if wanted <= {x.lower() for x in (p.facilities or [])}]
        total = len(matched)
        start = (page - 1) * limit
        rows = matched[start:start + limit]
    data = [property_out(p) for p in rows]
    return PropertiesPageOut(count=len(data), total=total, page=page, pages=math.ceil(total / limit), data=data)


@router.get("/{property_id}", response_model=PropertyOut)
def get_property(property_id: str, request: Request, db: Session = Depends(get_db)):
    return property_out(_visible(db, property_id, try_get_identity(request)))


@router.post("", response_model=PropertyOut)
def create_property(payload: PropertyCreateIn, admin: Identity = Depends(require_admin), db: Session = Depends(get_db)):
    data = payload.model_dump()
    data["facilities"] = _clean_labels(data["facilities"])
    p = Property(**data)
    db.add(p)
    db.flush()
    return property_out(p)


@router.patch("/{property_id}", response_model=PropertyOut)
def update_property(property_id: str, payload: PropertyUpdateIn, admin: Identity = Depends(require_admin), db: Session = Depends(get_db)):
    p = db.get(Property, property_id)
    if p is None:
        raise NotFoundError("Property not found")
    changes = payload.model_dump(exclude_unset=True)
    for key in ("name", "location"):
        if key in changes and changes[key] is None:
            raise ValidationError(f"{key} cannot be empty", field=key)
    if "facilities" in changes:
        changes["facilities"] = _clean_labels(changes["facilities"] or [])
    for key, value in changes.items():
        if value is None and key in ("base_price_per_night", "per_head_price", "cleaning_fee", "service_fee", "max_guests", "is_active"):
            continue
        setattr(p, key, value)
    db.flush()
    return property_out(p)


@router.delete("/{property_id}")
def deactivate_property(property_id: str, admin: Identity = Depends(require_admin), db: Session = Depends(get_db)):
    p = db.get(Property, property_id)
    if p is None:
        raise NotFoundError("Property not found")
    # Bookings reference the property, so it is only taken off the market
    p.is_active = False
    db.flush()
    return {"detail": "ok"}


@router.post("/{property_id}/media", response_model=PropertyOut)
def upload_media(
    property_id: str,
    files: List[UploadFile] = File(...),
    admin: Identity = Depends(require_admin),
    db: Session = Depends(get_db),
    store: BlobStore = Depends(get_blob_store),
):
    p = db.get(Property, property_id)
    if p is None:
        raise NotFoundError("Property not found")
    images, videos = list(p.images or []), list(p.videos or [])
    for f in files:
        data = f.file.read()
        ctype = check_upload(f.content_type, data, allow_video=True)
        url = store.put(object_path("properties", p.id, "media", f.filename, ctype), data, ctype)
        (videos if ctype.startswith("video/") else images).append(url)
    p.images, p.videos = images, videos
    db.flush()
    return property_out(p)


@router.delete("/{property_id}/media", response_model=PropertyOut)
def remove_media(property_id: str, payload: MediaRemoveIn, admin: Identity = Depends(require_admin), db: Session = Depends(get_db)):
    p = db.get(Property, property_id)
    if p is None:
        raise NotFoundError("Property not found")
    images = [u for u in (p.images or []) if u != payload.url]
    videos = [u for u in (p.videos or []) if u != payload.url]
    if len(images) == len(p.images or []) and len(videos) == len(p.videos or []):
        raise NotFoundError("Media not found")
    p.images, p.videos = images, videos
    db.flush()
    return property_out(p)


@router.get("/{property_id}/blackouts", response_model=list[BlackoutOut])
def list_blackouts(property_id: str, admin: Identity = Depends(require_admin), db: Session = Depends(get_db)):
    if db.get(Property, property_id) is None:
        raise NotFoundError("Property not found")
    rows = db.query(PropertyBlackout).filter(PropertyBlackout.property_id == property_id).order_by(PropertyBlackout.date.asc()).all()
    return [BlackoutOut(id=b.id, date=b.date, reason=b.reason) for b in rows]


@router.post("/{property_id}/blackouts", response_model=list[BlackoutOut])
def add_blackouts(property_id: str, payload: BlackoutsIn, admin: Identity = Depends(require_admin), db: Session = Depends(get_db)):
    if db.get(Property, property_id) is None:
        raise NotFoundError("Property not found")
    existing = {
        b.date: b
        for b in db.query(PropertyBlackout).filter(PropertyBlackout.property_id == property_id, PropertyBlackout.date.in_(payload.dates)).all()
    }
    out: list[BlackoutOut] = []
    for d in sorted(set(payload.dates)):
        b = existing.get(d)
        if b is None:
            b = PropertyBlackout(property_id=property_id, date=d, reason=payload.reason)
            db.add(b)
        elif payload.reason is not None:
            b.reason = payload.reason
        db.flush()
        out.append(BlackoutOut(id=b.id, date=b.date, reason=b.reason))
    return out


@router.delete("/{property_id}/blackouts")
def remove_blackouts(property_id: str, payload: BlackoutsRemoveIn, admin: Identity = Depends(require_admin), db: Session = Depends(get_db)):
    if db.get(Property, property_id) is None:
        raise NotFoundError("Property not found")
    removed = (
        db.query(PropertyBlackout)
        .filter(PropertyBlackout.property_id == property_id, PropertyBlackout.date.in_(payload.dates))
        .delete(synchronize_session=False)
    )
    return {"detail": "ok", "removed": removed}


@router.get("/{property_id}/availability", response_model=AvailabilityOut)
def check_availability(property_id: str, check_in: date, check_out: date, request: Request, guests: int = Query(default=1, ge=1), db: Session = Depends(get_db)):
    p = _visible(db, property_id, try_get_identity(request))
    ok, reason = availability(db, p, check_in, check_out, guests)
    return AvailabilityOut(available=ok, reason=reason)


@router.post("/{property_id}/quote", response_model=QuoteOut)
def quote(property_id: str, payload: QuoteIn, request: Request, db: Session = Depends(get_db)):
    _visible(db, property_id, try_get_identity(request))
    q = compute_quote(db, property_id, payload.check_in, payload.check_out, payload.num_guests, payload.food_required)
    return QuoteOut(property_id=property_id, currency=settings.CURRENCY, **q.as_dict())
