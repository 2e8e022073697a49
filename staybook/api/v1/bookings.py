"""Bookings API router.

Access rule: a booking is visible to, and changeable by, its guest and the
host of its listing. Everything else is a 404 (reads) or 403 (mutations).
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from staybook.api.deps import get_current_active_user, get_db
from staybook.models.booking import Booking
from staybook.models.user import User
from staybook.schemas.booking import (
    BookingCreate,
    BookingListResponse,
    BookingResponse,
    BookingStatusUpdate,
)
from staybook.services import booking_store, lifecycle
from staybook.services.allocator import allocate

router = APIRouter(prefix="/api/v1/bookings", tags=["bookings"])


@router.post(
    "",
    response_model=BookingResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Book a stay (pay later)",
)
async def create_booking(
    body: BookingCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> Booking:
    """Reserve the dates as a pending, unpaid booking for the current user.

    Returns 409 when the dates overlap an existing pending or confirmed
    booking on the listing.
    """
    return await allocate(
        db,
        body.listing_id,
        current_user.id,
        body.check_in,
        body.check_out,
        body.guests,
    )


@router.get(
    "/mine",
    response_model=BookingListResponse,
    summary="Bookings made by the current user",
)
async def list_my_bookings(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> dict:
    items = await booking_store.list_guest_bookings(db, current_user.id)
    return {"items": items, "total": len(items)}


@router.get(
    "/hosting",
    response_model=BookingListResponse,
    summary="Bookings on listings the current user hosts",
)
async def list_hosting_bookings(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> dict:
    items = await booking_store.list_host_bookings(db, current_user.id)
    return {"items": items, "total": len(items)}


@router.get(
    "/{booking_id}",
    response_model=BookingResponse,
    summary="Get a booking",
)
async def get_booking(
    booking_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> Booking:
    """Return the booking if the current user is its guest or host."""
    booking = await booking_store.get_booking(db, booking_id)
    if booking is not None:
        listing = await booking_store.get_listing(db, booking.listing_id)
        if current_user.id == booking.guest_id or (listing is not None and listing.host_id == current_user.id):
            return booking
    raise HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail="Booking not found",
    )


@router.patch(
    "/{booking_id}/cancel",
    response_model=BookingResponse,
    summary="Cancel a booking (guest or host)",
)
async def cancel_booking(
    booking_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> Booking:
    """Cancel and release the dates for new bookings."""
    return await lifecycle.cancel(db, booking_id, current_user.id)


@router.patch(
    "/{booking_id}/status",
    response_model=BookingResponse,
    summary="Accept or reject a booking (host)",
)
async def update_booking_status(
    booking_id: uuid.UUID,
    body: BookingStatusUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> Booking:
    return await lifecycle.set_status(db, booking_id, current_user.id, body.status)
