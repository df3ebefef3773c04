from datetime import date, datetime
from decimal import Decimal
from typing import List, Literal, Optional

from pydantic import BaseModel, Field


class IdentityOut(BaseModel):
    id: str
    role: str
    name: Optional[str] = None
    phone: Optional[str] = None


class ProfileOut(BaseModel):
    id: str
    full_name: Optional[str] = None
    phone: Optional[str] = None
    phone_verified: bool = False


class ProfileUpdateIn(BaseModel):
    full_name: Optional[str] = Field(default=None, max_length=128)
    phone: Optional[str] = Field(default=None, max_length=32)


class PropertyCreateIn(BaseModel):
    name: str = Field(min_length=1, max_length=128)
    description: Optional[str] = None
    location: str = Field(min_length=1, max_length=256)
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    base_price_per_night: Decimal = Field(ge=0, max_digits=12, decimal_places=2)
    per_head_price: Decimal = Field(default=Decimal(0), ge=0, max_digits=12, decimal_places=2)
    cleaning_fee: Decimal = Field(default=Decimal(0), ge=0, max_digits=12, decimal_places=2)
    service_fee: Decimal = Field(default=Decimal(0), ge=0, max_digits=12, decimal_places=2)
    max_guests: int = Field(default=1, ge=1, le=500)
    facilities: List[str] = []
    images: List[str] = []
    videos: List[str] = []
    is_active: bool = True


class PropertyUpdateIn(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=128)
    description: Optional[str] = None
    location: Optional[str] = Field(default=None, min_length=1, max_length=256)
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    base_price_per_night: Optional[Decimal] = Field(default=None, ge=0, max_digits=12, decimal_places=2)
    per_head_price: Optional[Decimal] = Field(default=None, ge=0, max_digits=12, decimal_places=2)
    cleaning_fee: Optional[Decimal] = Field(default=None, ge=0, max_digits=12, decimal_places=2)
    service_fee: Optional[Decimal] = Field(default=None, ge=0, max_digits=12, decimal_places=2)
    max_guests: Optional[int] = Field(default=None, ge=1, le=500)
    facilities: Optional[List[str]] = None
    images: Optional[List[str]] = None
    videos: Optional[List[str]] = None
    is_active: Optional[bool] = None


class PropertyOut(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    location: str
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    base_price_per_night: Decimal
    per_head_price: Decimal
    cleaning_fee: Decimal
    service_fee: Decimal
    max_guests: int
    facilities: List[str] = []
    images: List[str] = []
    videos: List[str] = []
    is_active: bool
    created_at: Optional[datetime] = None


class PropertiesPageOut(BaseModel):
    count: int
    total: int
    page: int
    pages: int
    data: List[PropertyOut]


class MediaRemoveIn(BaseModel):
    url: str


class BlackoutsIn(BaseModel):
    dates: List[date] = Field(min_length=1)
    reason: Optional[str] = Field(default=None, max_length=256)


class BlackoutsRemoveIn(BaseModel):
    dates: List[date] = Field(min_length=1)


class BlackoutOut(BaseModel):
    id: str
    date: date
    reason: Optional[str] = None


class AvailabilityOut(BaseModel):
    available: bool
    reason: Optional[str] = None


class QuoteIn(BaseModel):
    check_in: date
    check_out: date
    num_guests: int = Field(ge=1)
    food_required: bool = False


class QuoteOut(BaseModel):
    property_id: str
    currency: str
    nights: int
    num_guests: int
    base_price_per_night: Decimal
    per_head_price: Decimal
    food_rate: Decimal
    cleaning_fee: Decimal
    service_fee: Decimal
    base_amount: Decimal
    guest_charges: Decimal
    food_charges: Decimal
    extra_fees: Decimal
    total_amount: Decimal
    advance_fraction: Decimal
    advance_amount: Decimal
    remaining_amount: Decimal


class BookingCreateIn(BaseModel):
    property_id: str
    check_in: date
    check_out: date
    num_guests: int = Field(ge=1)
    food_required: bool = False
    food_preference: Optional[Literal["veg", "non-veg", "both"]] = None
    allergies: Optional[str] = Field(default=None, max_length=1000)
    special_requests: Optional[str] = Field(default=None, max_length=2000)


class BookingOut(BaseModel):
    id: str
    property_id: str
    property_name: Optional[str] = None
    customer_id: str
    customer_name: Optional[str] = None
    check_in_date: date
    check_out_date: date
    num_guests: int
    base_amount: Decimal
    guest_charges: Decimal
    extra_fees: Decimal
    total_amount: Decimal
    advance_amount: Decimal
    advance_paid: Decimal
    status: str
    verification_status: str
    stage: str
    id_proofs: List[str] = []
    payment_method: str
    manual_reference: Optional[str] = None
    payment_screenshot_url: Optional[str] = None
    food_required: bool
    food_preference: Optional[str] = None
    allergies: Optional[str] = None
    special_requests: Optional[str] = None
    cancellation_reason: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class BookingsPageOut(BaseModel):
    count: int
    total: int
    page: int
    pages: int
    data: List[BookingOut]


class VerifyIn(BaseModel):
    status: Literal["approved", "rejected", "pending"]


class CancelIn(BaseModel):
    reason: Optional[str] = Field(default=None, max_length=512)


class PaymentIntentIn(BaseModel):
    booking_id: str


class PaymentIntentOut(BaseModel):
    booking_id: str
    amount: Decimal
    currency: str
    mode: str = "manual"


class PaymentDetailsOut(BaseModel):
    booking_id: str
    total_amount: Decimal
    advance_amount: Decimal
    advance_paid: Decimal
    remaining_amount: Decimal
    payment_method: Optional[str] = None
    manual_reference: Optional[str] = None
    payment_screenshot_url: Optional[str] = None
    status: str
    stage: str
