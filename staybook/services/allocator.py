"""Booking allocator — the single path by which bookings are created.

Direct bookings and payment reconciliation both call :func:`allocate`, so
validation, the conflict check and pricing exist exactly once.

Steps, each a hard gate::

    1. check_in < check_out                 InvalidRange
    2. check_in not in the past             PastDateError
    3. listing exists                       ListingNotFound
    4. 1 <= guests <= listing.max_guests    GuestCountError
    5. no overlapping active booking        DatesUnavailable
    6. price the stay
    7. insert + commit

Steps 1-4 run unlocked. Steps 5-7 form a per-listing critical section:
an in-process ``asyncio.Lock`` keyed by listing id, plus a row lock on the
listing (``SELECT ... FOR UPDATE``) that serializes writers across server
instances until commit. On PostgreSQL an exclusion constraint on
``(listing_id, daterange)`` backs this up; a violation surfaces as
``IntegrityError`` and is reported as ``DatesUnavailable``. Allocations for
different listings never share a lock.
"""

import asyncio
import logging
import uuid
import weakref
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import date
from decimal import Decimal

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from staybook.models.booking import Booking, BookingStatus, PaymentStatus
from staybook.models.listing import Listing
from staybook.services import booking_store
from staybook.services.availability import ensure_not_past, has_conflict
from staybook.services.errors import DatesUnavailable, GuestCountError, InvalidRange, ListingNotFound
from staybook.services.pricing import PriceQuote, compute_price

logger = logging.getLogger(__name__)

# Entries disappear once no coroutine holds or waits on the lock.
_listing_locks: "weakref.WeakValueDictionary[uuid.UUID, asyncio.Lock]" = weakref.WeakValueDictionary()


@asynccontextmanager
async def listing_lock(listing_id: uuid.UUID) -> AsyncIterator[None]:
    """Hold this process's lock for one listing's interval set."""
    lock = _listing_locks.get(listing_id)
    if lock is None:
        lock = asyncio.Lock()
        _listing_locks[listing_id] = lock
    async with lock:
        yield


async def validate_request(
    db: AsyncSession,
    listing_id: uuid.UUID,
    check_in: date,
    check_out: date,
    guests: int,
    today: date | None = None,
    enforce_past_date: bool = True,
) -> Listing:
    """Run gates 1-4 and return the listing."""
    if check_in >= check_out:
        raise InvalidRange()
    if enforce_past_date:
        ensure_not_past(check_in, today)

    listing = await booking_store.get_listing(db, listing_id)
    if listing is None:
        raise ListingNotFound()

    if guests < 1:
        raise GuestCountError("At least 1 guest required")
    if guests > listing.max_guests:
        raise GuestCountError(f"Maximum {listing.max_guests} guests allowed")
    return listing


async def quote_stay(
    db: AsyncSession,
    listing_id: uuid.UUID,
    check_in: date,
    check_out: date,
    guests: int,
    today: date | None = None,
) -> tuple[Listing, PriceQuote]:
    """Gates 1-6 without reserving anything.

    Used before handing the guest to the payment gateway. The availability
    answer is advisory: nothing is held, so the check is repeated when the
    payment is reconciled.
    """
    listing = await validate_request(db, listing_id, check_in, check_out, guests, today)
    if await has_conflict(db, listing_id, check_in, check_out):
        raise DatesUnavailable()
    return listing, compute_price(listing, check_in, check_out, guests)


async def reserve(
    db: AsyncSession,
    listing_id: uuid.UUID,
    guest_id: uuid.UUID,
    check_in: date,
    check_out: date,
    guests: int,
    *,
    status: BookingStatus = BookingStatus.PENDING,
    payment_status: PaymentStatus = PaymentStatus.UNPAID,
    payment_session_id: str | None = None,
    payment_intent_id: str | None = None,
    total_price: Decimal | None = None,
    today: date | None = None,
    enforce_past_date: bool = True,
) -> tuple[Booking, bool]:
    """Validate, check, price and reserve a stay; commits on success.

    Returns ``(booking, created)``. ``created`` is False when the booking
    already existed for ``payment_session_id``.

    ``total_price`` overrides the computed total with an amount already
    charged. Reconciliation also passes ``enforce_past_date=False``: a paid
    stay may start before the payment is reconciled. With
    ``payment_session_id`` the call is idempotent: the session lookup runs
    under the listing row lock, so a second instance reconciling the same
    session finds the first one's booking instead of conflicting with it.
    Any failure rolls the session back, so a loser never leaves a partial
    reservation behind.
    """
    listing = await validate_request(db, listing_id, check_in, check_out, guests, today, enforce_past_date)

    async with listing_lock(listing_id):
        try:
            await booking_store.lock_listing(db, listing_id)

            if payment_session_id is not None:
                existing = await booking_store.find_booking_by_session_id(db, payment_session_id)
                if existing is not None:
                    await db.commit()
                    return existing, False

            if await has_conflict(db, listing_id, check_in, check_out, retry=False):
                raise DatesUnavailable()

            quote = compute_price(listing, check_in, check_out, guests)
            amount = quote.total
            if total_price is not None:
                amount = Decimal(total_price)
                if amount != quote.total:
                    logger.warning(
                        "Charged amount %s differs from current quote %s for listing %s (session %s)",
                        amount,
                        quote.total,
                        listing_id,
                        payment_session_id,
                    )

            booking = await booking_store.create_booking(
                db,
                listing_id=listing_id,
                guest_id=guest_id,
                check_in=check_in,
                check_out=check_out,
                guests=guests,
                total_price=amount,
                status=status.value,
                payment_status=payment_status.value,
                payment_session_id=payment_session_id,
                payment_intent_id=payment_intent_id,
            )
            await db.commit()
        except IntegrityError as e:
            await db.rollback()
            if payment_session_id is not None:
                existing = await booking_store.find_booking_by_session_id(db, payment_session_id)
                if existing is not None:
                    return existing, False
            logger.info("Storage rejected overlapping booking on listing %s: %s", listing_id, e.orig)
            raise DatesUnavailable() from e
        except BaseException:
            await db.rollback()
            raise

    logger.info(
        "Allocated booking %s on listing %s for %s..%s (%s guests, total %s, status %s)",
        booking.id,
        listing_id,
        check_in,
        check_out,
        guests,
        booking.total_price,
        booking.status,
    )
    return booking, True


async def allocate(
    db: AsyncSession,
    listing_id: uuid.UUID,
    guest_id: uuid.UUID,
    check_in: date,
    check_out: date,
    guests: int,
    **options,
) -> Booking:
    """Reserve a stay and return the booking; see :func:`reserve` for the options."""
    booking, _ = await reserve(db, listing_id, guest_id, check_in, check_out, guests, **options)
    return booking
