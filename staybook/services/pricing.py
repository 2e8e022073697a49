"""Pricing calculator — nightly rate plus extra-guest surcharge.

Pure: no I/O, no clock. The pricing-preview endpoint and the allocator both
call :func:`compute_price`, so a previewed total always equals the booked one.
"""

import math
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import ROUND_HALF_UP, Decimal

from staybook.models.listing import Listing
from staybook.services.errors import InvalidRange

_CENTS = Decimal("0.01")
_ONE_DAY = timedelta(days=1)


@dataclass(frozen=True)
class PriceQuote:
    nights: int
    base_price: Decimal
    extra_guests: int
    extra_guest_total: Decimal
    total: Decimal


def count_nights(check_in: date, check_out: date) -> int:
    """Nights in ``[check_in, check_out)``; raises ``InvalidRange`` when empty or inverted."""
    if check_out <= check_in:
        raise InvalidRange()
    return math.ceil((check_out - check_in) / _ONE_DAY)


def compute_price(listing: Listing, check_in: date, check_out: date, guests: int) -> PriceQuote:
    """Price a stay. Assumes ``guests >= 1``; the guest cap is the caller's check."""
    nights = count_nights(check_in, check_out)
    nightly = Decimal(listing.price)
    fee = Decimal(listing.extra_guest_fee or 0)

    base_price = (nightly * nights).quantize(_CENTS, rounding=ROUND_HALF_UP)
    extra_guests = max(0, guests - listing.base_guests)
    extra_guest_total = (fee * extra_guests * nights).quantize(_CENTS, rounding=ROUND_HALF_UP)

    return PriceQuote(
        nights=nights,
        base_price=base_price,
        extra_guests=extra_guests,
        extra_guest_total=extra_guest_total,
        total=base_price + extra_guest_total,
    )


def to_minor_units(amount: Decimal) -> int:
    """Convert a currency amount to the gateway's integer minor units (cents)."""
    return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
