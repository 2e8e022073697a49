"""Pydantic v2 schemas for checkout and payment verification."""

import uuid
from datetime import date
from decimal import Decimal

from pydantic import BaseModel

from staybook.schemas.booking import BookingResponse

# ---------------------------------------------------------------------------
# Checkout session metadata
# ---------------------------------------------------------------------------


class CheckoutMetadata(BaseModel):
    """Booking request carried on the checkout session.

    Stripe metadata values are strings; pydantic converts them back to the
    typed fields when the session is reconciled.
    """

    user_id: uuid.UUID
    listing_id: uuid.UUID
    check_in: date
    check_out: date
    guests: int
    total_price: Decimal

    def to_stripe(self) -> dict[str, str]:
        return {key: str(value) for key, value in self.model_dump().items()}


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class CheckoutRequest(BaseModel):
    """Start paying for a stay; the booking is created once payment completes."""

    listing_id: uuid.UUID
    check_in: date
    check_out: date
    guests: int = 1
    success_url: str | None = None
    cancel_url: str | None = None


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class CheckoutResponse(BaseModel):
    """Checkout session handle. ``mock`` is true when Stripe is not configured."""

    session_id: str
    url: str | None = None
    mock: bool = False


class VerifyPaymentResponse(BaseModel):
    booking: BookingResponse
