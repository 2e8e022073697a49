"""Booking store — persistence for bookings and the reserved-interval view.

Every function takes the caller's ``AsyncSession`` and never commits; the
allocator and lifecycle manager own transaction boundaries.
"""

import logging
import uuid
from datetime import date
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from staybook.database import execute_read
from staybook.models.booking import ACTIVE_STATUSES, Booking
from staybook.models.listing import Listing
from staybook.models.reconciliation import ReconciliationFailure

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Listings (read-only from the booking core)
# ---------------------------------------------------------------------------


async def get_listing(db: AsyncSession, listing_id: uuid.UUID) -> Listing | None:
    result = await execute_read(db, select(Listing).where(Listing.id == listing_id))
    return result.scalar_one_or_none()


async def lock_listing(db: AsyncSession, listing_id: uuid.UUID) -> Listing | None:
    """Load the listing with a row lock held until the transaction ends.

    All allocations for one listing take this lock before their conflict
    check, which serializes writers to that listing's interval set across
    server instances. Dialects without row locks ignore ``FOR UPDATE``.
    """
    result = await db.execute(select(Listing).where(Listing.id == listing_id).with_for_update())
    return result.scalar_one_or_none()


# ---------------------------------------------------------------------------
# Reserved intervals
# ---------------------------------------------------------------------------


def _conflict_query(
    listing_id: uuid.UUID,
    check_in: date,
    check_out: date,
    exclude_booking_id: uuid.UUID | None,
):
    query = select(Booking).where(
        Booking.listing_id == listing_id,
        Booking.status.in_(ACTIVE_STATUSES),
        Booking.check_in < check_out,
        Booking.check_out > check_in,
    )
    if exclude_booking_id is not None:
        query = query.where(Booking.id != exclude_booking_id)
    return query.order_by(Booking.check_in)


async def find_conflicting(
    db: AsyncSession,
    listing_id: uuid.UUID,
    check_in: date,
    check_out: date,
    exclude_booking_id: uuid.UUID | None = None,
    *,
    retry: bool = True,
) -> list[Booking]:
    """Active bookings overlapping ``[check_in, check_out)``.

    Pass ``retry=False`` inside a transaction that already holds locks or
    pending writes; a retry would have to roll them back.
    """
    query = _conflict_query(listing_id, check_in, check_out, exclude_booking_id)
    if retry:
        result = await execute_read(db, query)
    else:
        result = await db.execute(query)
    return list(result.scalars().all())


async def list_active_intervals(db: AsyncSession, listing_id: uuid.UUID) -> list[Booking]:
    """Active bookings for a listing ordered by check-in."""
    result = await execute_read(
        db,
        select(Booking)
        .where(Booking.listing_id == listing_id, Booking.status.in_(ACTIVE_STATUSES))
        .order_by(Booking.check_in, Booking.check_out),
    )
    return list(result.scalars().all())


# ---------------------------------------------------------------------------
# Bookings
# ---------------------------------------------------------------------------


async def create_booking(db: AsyncSession, **data: Any) -> Booking:
    booking = Booking(**data)
    db.add(booking)
    await db.flush()
    await db.refresh(booking)
    return booking


async def get_booking(db: AsyncSession, booking_id: uuid.UUID, *, for_update: bool = False) -> Booking | None:
    query = select(Booking).where(Booking.id == booking_id)
    if for_update:
        query = query.with_for_update()
    result = await db.execute(query)
    return result.scalar_one_or_none()


async def update_booking_status(db: AsyncSession, booking: Booking, status: str) -> Booking:
    booking.status = status
    await db.flush()
    await db.refresh(booking)
    return booking


async def find_booking_by_session_id(db: AsyncSession, session_id: str) -> Booking | None:
    result = await db.execute(select(Booking).where(Booking.payment_session_id == session_id))
    return result.scalar_one_or_none()


async def list_guest_bookings(db: AsyncSession, guest_id: uuid.UUID) -> list[Booking]:
    result = await execute_read(
        db,
        select(Booking).where(Booking.guest_id == guest_id).order_by(Booking.check_in.desc()),
    )
    return list(result.scalars().all())


async def list_host_bookings(db: AsyncSession, host_id: uuid.UUID) -> list[Booking]:
    result = await execute_read(
        db,
        select(Booking)
        .join(Listing, Booking.listing_id == Listing.id)
        .where(Listing.host_id == host_id)
        .order_by(Booking.check_in.desc()),
    )
    return list(result.scalars().all())


# ---------------------------------------------------------------------------
# Reconciliation failures
# ---------------------------------------------------------------------------


async def find_reconciliation_failure(db: AsyncSession, session_id: str) -> ReconciliationFailure | None:
    result = await db.execute(
        select(ReconciliationFailure).where(ReconciliationFailure.payment_session_id == session_id)
    )
    return result.scalar_one_or_none()


async def record_reconciliation_failure(db: AsyncSession, **data: Any) -> ReconciliationFailure:
    """Insert a failure record, or return the existing one for the same session."""
    existing = await find_reconciliation_failure(db, data["payment_session_id"])
    if existing is not None:
        return existing

    failure = ReconciliationFailure(**data)
    db.add(failure)
    await db.flush()
    logger.info("Recorded reconciliation failure for session %s", failure.payment_session_id)
    return failure
