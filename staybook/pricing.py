"""Price breakdown for a candidate stay.

Pure functions only: no database, no settings lookups inside the math. The
advance fraction and food rate are passed in by callers (see
``quote_for_property``) so the same inputs always give the same breakdown.
"""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass
from datetime import date, timedelta
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from .errors import ValidationError


CENT = Decimal("0.01")
ONE_DAY = timedelta(days=1)


@dataclass(frozen=True)
class PriceBreakdown:
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

    def as_dict(self) -> dict:
        return asdict(self)


def _money(value, field: str) -> Decimal:
    if isinstance(value, float):
        value = repr(value)
    try:
        amount = Decimal(value if value is not None else 0)
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError(f"{field} must be a number", field=field)
    if not amount.is_finite():
        raise ValidationError(f"{field} must be a number", field=field)
    if amount < 0:
        raise ValidationError(f"{field} cannot be negative", field=field)
    return amount


def count_nights(check_in: date, check_out: date) -> int:
    """Stay units between two dates, rounded up, never below one."""
    if check_out < check_in:
        raise ValidationError("check_out_date cannot be before check_in_date", field="check_out_date")
    return max(1, math.ceil((check_out - check_in) / ONE_DAY))


def round_half_up(amount: Decimal) -> Decimal:
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def compute_booking_quote(
    *,
    base_price_per_night,
    per_head_price,
    cleaning_fee,
    service_fee,
    check_in: date,
    check_out: date,
    num_guests: int,
    food_required: bool = False,
    food_rate,
    advance_fraction,
) -> PriceBreakdown:
    if isinstance(num_guests, bool) or not isinstance(num_guests, int) or num_guests < 1:
        raise ValidationError("Number of guests must be at least 1", field="num_guests")
    base = _money(base_price_per_night, "base_price_per_night")
    per_head = _money(per_head_price, "per_head_price")
    cleaning = _money(cleaning_fee, "cleaning_fee")
    service = _money(service_fee, "service_fee")
    food = _money(food_rate, "food_rate")
    fraction = _money(advance_fraction, "advance_fraction")
    if fraction > 1:
        raise ValidationError("advance_fraction cannot exceed 1", field="advance_fraction")

    nights = count_nights(check_in, check_out)
    base_amount = base * nights
    guest_charges = per_head * num_guests * nights
    food_charges = food * num_guests * nights if food_required else Decimal(0)
    extra_fees = cleaning + service + food_charges
    total = base_amount + guest_charges + extra_fees
    advance = round_half_up(total * fraction)
    if advance > total:
        # Rounding up a sub-cent total can overshoot it
        advance = total
    return PriceBreakdown(
        nights=nights,
        num_guests=num_guests,
        base_price_per_night=base,
        per_head_price=per_head,
        food_rate=food,
        cleaning_fee=cleaning,
        service_fee=service,
        base_amount=base_amount,
        guest_charges=guest_charges,
        food_charges=food_charges,
        extra_fees=extra_fees,
        total_amount=total,
        advance_fraction=fraction,
        advance_amount=advance,
        remaining_amount=total - advance,
    )


def quote_for_property(prop, check_in: date, check_out: date, num_guests: int, food_required: bool = False, *, food_rate=None, advance_fraction=None) -> PriceBreakdown:
    """Quote using a Property record's rates and the deployment's constants."""
    if food_rate is None or advance_fraction is None:
        from .config import settings
        food_rate = settings.FOOD_RATE_PER_GUEST if food_rate is None else food_rate
        advance_fraction = settings.ADVANCE_FRACTION if advance_fraction is None else advance_fraction
    return compute_booking_quote(
        base_price_per_night=prop.base_price_per_night,
        per_head_price=prop.per_head_price,
        cleaning_fee=prop.cleaning_fee,
        service_fee=prop.service_fee,
        check_in=check_in,
        check_out=check_out,
        num_guests=num_guests,
        food_required=food_required,
        food_rate=food_rate,
        advance_fraction=advance_fraction,
    )
