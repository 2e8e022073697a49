"""Listing availability and pricing preview — public, no auth required."""

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from staybook.api.deps import get_db
from staybook.schemas.listing import (
    AvailabilityResponse,
    BlockedRange,
    PriceQuoteResponse,
    PricingPreviewRequest,
)
from staybook.services import booking_store
from staybook.services.allocator import validate_request
from staybook.services.availability import blocked_ranges
from staybook.services.errors import ListingNotFound
from staybook.services.pricing import compute_price

router = APIRouter(prefix="/api/v1/listings", tags=["listings"])


@router.get(
    "/{listing_id}/availability",
    response_model=AvailabilityResponse,
    summary="Blocked date ranges for a listing",
)
async def get_availability(
    listing_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
) -> AvailabilityResponse:
    """Ranges held by pending or confirmed bookings, ordered by start date.

    ``to`` is the check-out day, which is free for a new arrival.
    """
    if await booking_store.get_listing(db, listing_id) is None:
        raise ListingNotFound()
    ranges = await blocked_ranges(db, listing_id)
    return AvailabilityResponse(blocked_dates=[BlockedRange(from_=start, to=end) for start, end in ranges])


@router.post(
    "/{listing_id}/pricing-preview",
    response_model=PriceQuoteResponse,
    summary="Price a stay without booking it",
)
async def pricing_preview(
    listing_id: uuid.UUID,
    body: PricingPreviewRequest,
    db: AsyncSession = Depends(get_db),
) -> PriceQuoteResponse:
    """Same validation and price function the allocator uses; availability is not checked."""
    listing = await validate_request(db, listing_id, body.check_in, body.check_out, body.guests)
    quote = compute_price(listing, body.check_in, body.check_out, body.guests)
    return PriceQuoteResponse.model_validate(quote)
