"""Booking lifecycle — status transitions, cancellation, and host accept/reject.

Every status change goes through :func:`transition`, which checks the move
against ``TRANSITIONS``. ``completed`` is never written by a request; it is
derived at read time from a confirmed booking whose check-out has passed
(see ``Booking.effective_status``).
"""

import logging
import uuid
from datetime import date

from sqlalchemy.ext.asyncio import AsyncSession

from staybook.models.booking import Booking, BookingStatus
from staybook.models.listing import Listing
from staybook.services import booking_store, notifications
from staybook.services.errors import (
    AlreadyCancelled,
    AlreadyCompleted,
    BookingNotFound,
    InvalidStatusTransition,
    NotAuthorized,
)

logger = logging.getLogger(__name__)

TRANSITIONS: dict[BookingStatus, frozenset[BookingStatus]] = {
    BookingStatus.PENDING: frozenset({BookingStatus.CONFIRMED, BookingStatus.CANCELLED}),
    BookingStatus.CONFIRMED: frozenset({BookingStatus.CANCELLED, BookingStatus.COMPLETED}),
    BookingStatus.CANCELLED: frozenset(),
    BookingStatus.COMPLETED: frozenset(),
}

HOST_SETTABLE: frozenset[BookingStatus] = frozenset({BookingStatus.CONFIRMED, BookingStatus.CANCELLED})


def check_transition(current: BookingStatus, target: BookingStatus) -> None:
    """Raise the matching error if ``current -> target`` is not in the table."""
    if target in TRANSITIONS[current]:
        return
    if current is BookingStatus.CANCELLED:
        raise AlreadyCancelled()
    if current is BookingStatus.COMPLETED:
        raise AlreadyCompleted()
    raise InvalidStatusTransition(f"Cannot change a {current.value} booking to {target.value}")


async def transition(
    db: AsyncSession,
    booking: Booking,
    target: BookingStatus,
    today: date | None = None,
) -> Booking:
    """Validate and apply a status change, then flush."""
    current = BookingStatus(booking.effective_status(today))
    check_transition(current, target)
    booking = await booking_store.update_booking_status(db, booking, target.value)
    logger.info("Booking %s: %s -> %s", booking.id, current.value, target.value)
    return booking


async def _load_for_update(db: AsyncSession, booking_id: uuid.UUID) -> tuple[Booking, Listing]:
    booking = await booking_store.get_booking(db, booking_id, for_update=True)
    if booking is None:
        raise BookingNotFound()
    listing = await booking_store.get_listing(db, booking.listing_id)
    if listing is None:
        raise BookingNotFound()
    return booking, listing


async def cancel(
    db: AsyncSession,
    booking_id: uuid.UUID,
    acting_user_id: uuid.UUID,
    today: date | None = None,
) -> Booking:
    """Cancel as the booking's guest or the listing's host, releasing the dates."""
    booking, listing = await _load_for_update(db, booking_id)

    if acting_user_id not in (booking.guest_id, listing.host_id):
        raise NotAuthorized("Not authorized to cancel this booking")

    booking = await transition(db, booking, BookingStatus.CANCELLED, today)
    await db.commit()
    notifications.dispatch_booking_cancelled(booking, listing)
    return booking


async def set_status(
    db: AsyncSession,
    booking_id: uuid.UUID,
    host_user_id: uuid.UUID,
    new_status: BookingStatus,
    today: date | None = None,
) -> Booking:
    """Host accept (confirmed) or reject (cancelled)."""
    if new_status not in HOST_SETTABLE:
        raise InvalidStatusTransition("Status must be confirmed or cancelled")

    booking, listing = await _load_for_update(db, booking_id)
    if listing.host_id != host_user_id:
        raise NotAuthorized("Only the host can update this booking")

    booking = await transition(db, booking, new_status, today)
    await db.commit()

    if new_status is BookingStatus.CONFIRMED:
        notifications.dispatch_booking_confirmed(booking, listing)
    else:
        notifications.dispatch_booking_cancelled(booking, listing)
    return booking
