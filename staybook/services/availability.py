"""Availability checker — half-open overlap tests against the reserved intervals.

Reads always go to the database; interval state is never cached between
requests because concurrent allocations change it underneath us.
"""

import uuid
from datetime import date

from sqlalchemy.ext.asyncio import AsyncSession

from staybook.services import booking_store
from staybook.services.errors import PastDateError


def ensure_not_past(check_in: date, today: date | None = None) -> None:
    """Raise ``PastDateError`` when ``check_in`` is before today.

    Compared as calendar dates, not timestamps, so a same-day arrival is
    always accepted regardless of the server's clock time.
    """
    today = today or date.today()
    if check_in < today:
        raise PastDateError()


def ranges_overlap(a_start: date, a_end: date, b_start: date, b_end: date) -> bool:
    """Half-open overlap: a stay ending on day D does not touch one starting on D."""
    return a_start < b_end and a_end > b_start


async def has_conflict(
    db: AsyncSession,
    listing_id: uuid.UUID,
    check_in: date,
    check_out: date,
    exclude_booking_id: uuid.UUID | None = None,
    *,
    retry: bool = True,
) -> bool:
    """True if any pending or confirmed booking overlaps ``[check_in, check_out)``."""
    conflicts = await booking_store.find_conflicting(
        db,
        listing_id,
        check_in,
        check_out,
        exclude_booking_id,
        retry=retry,
    )
    return bool(conflicts)


async def blocked_ranges(db: AsyncSession, listing_id: uuid.UUID) -> list[tuple[date, date]]:
    """Reserved ``(from, to)`` ranges for a listing, ordered by start date."""
    bookings = await booking_store.list_active_intervals(db, listing_id)
    return [(b.check_in, b.check_out) for b in bookings]
