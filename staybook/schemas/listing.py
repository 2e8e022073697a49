"""Pydantic v2 schemas for listing availability and pricing preview."""

from datetime import date
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field


class BlockedRange(BaseModel):
    """A reserved half-open range: ``to`` is the check-out day and is bookable."""

    from_: date = Field(alias="from")
    to: date

    model_config = ConfigDict(populate_by_name=True)


class AvailabilityResponse(BaseModel):
    blocked_dates: list[BlockedRange]


class PricingPreviewRequest(BaseModel):
    check_in: date
    check_out: date
    guests: int = 1


class PriceQuoteResponse(BaseModel):
    """Breakdown identical to what a booking with the same inputs is charged."""

    nights: int
    base_price: Decimal
    extra_guests: int
    extra_guest_total: Decimal
    total: Decimal

    model_config = ConfigDict(from_attributes=True)
