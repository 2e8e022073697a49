"""Pydantic v2 request/response schemas for booking endpoints."""

import uuid
from datetime import date, datetime
from decimal import Decimal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from staybook.models.booking import BookingStatus

# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class BookingCreate(BaseModel):
    """Schema for a direct (pay-later) booking request.

    Date ordering and the guest cap are checked by the allocator so that the
    errors match the ones returned by payment reconciliation.
    """

    listing_id: uuid.UUID
    check_in: date
    check_out: date
    guests: int = 1


class BookingStatusUpdate(BaseModel):
    """Host accept/reject."""

    status: BookingStatus


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class BookingResponse(BaseModel):
    """Booking as seen by its guest or host.

    ``status`` is the effective status: a confirmed stay whose check-out has
    passed reads as ``completed``.
    """

    id: uuid.UUID
    listing_id: uuid.UUID
    guest_id: uuid.UUID
    check_in: date
    check_out: date
    guests: int
    total_price: Decimal
    status: str = Field(validation_alias=AliasChoices("current_status", "status"))
    payment_status: str
    payment_session_id: str | None = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class BookingListResponse(BaseModel):
    items: list[BookingResponse]
    total: int
