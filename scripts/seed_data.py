"""Seed the database with a demo host, a demo guest and a few listings.

Bookings are created through the allocator, so the seeded data obeys the
same overlap, guest-count and pricing rules as live traffic.

Run from the project root:
    python -m scripts.seed_data
"""

import asyncio
import sys
from datetime import date, timedelta
from decimal import Decimal
from pathlib import Path

# Add project root to path so imports work when run as a script
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from sqlalchemy import delete, select

from staybook.auth.jwt import create_access_token
from staybook.database import async_session_factory, engine
from staybook.models.booking import Booking, BookingStatus, PaymentStatus
from staybook.models.listing import Listing
from staybook.models.user import User
from staybook.services.allocator import allocate
from staybook.services.lifecycle import cancel

# ---------------------------------------------------------------------------
# Seed data definitions
# ---------------------------------------------------------------------------

DEMO_HOST = {"email": "host@staybook.dev", "name": "Demo Host"}
DEMO_GUEST = {"email": "guest@staybook.dev", "name": "Demo Guest"}

LISTINGS = [
    {
        "title": "Le Ayu Villa Canggu",
        "city": "Canggu",
        "price": Decimal("129.00"),
        "base_guests": 2,
        "extra_guest_fee": Decimal("25.00"),
        "max_guests": 4,
    },
    {
        "title": "Umah Anyar Villas Ubud",
        "city": "Ubud",
        "price": Decimal("163.00"),
        "base_guests": 2,
        "extra_guest_fee": Decimal("0.00"),
        "max_guests": 2,
    },
    {
        "title": "Da Vinci The Villa",
        "city": "Canggu",
        "price": Decimal("350.00"),
        "base_guests": 4,
        "extra_guest_fee": Decimal("40.00"),
        "max_guests": 8,
    },
]


def _build_bookings(listings: list[Listing], today: date) -> list[dict]:
    """Future stays per listing; back-to-back stays share a boundary day."""
    by_title = {listing.title: listing for listing in listings}
    return [
        {
            "listing": by_title["Le Ayu Villa Canggu"],
            "check_in": today + timedelta(days=7),
            "check_out": today + timedelta(days=10),
            "guests": 4,
            "paid": True,
        },
        # Checks in the day the previous stay checks out
        {
            "listing": by_title["Le Ayu Villa Canggu"],
            "check_in": today + timedelta(days=10),
            "check_out": today + timedelta(days=14),
            "guests": 2,
            "paid": False,
        },
        {
            "listing": by_title["Umah Anyar Villas Ubud"],
            "check_in": today + timedelta(days=3),
            "check_out": today + timedelta(days=5),
            "guests": 2,
            "paid": False,
            "cancel": True,
        },
        {
            "listing": by_title["Da Vinci The Villa"],
            "check_in": today + timedelta(days=21),
            "check_out": today + timedelta(days=28),
            "guests": 6,
            "paid": True,
        },
    ]


async def _reset(session, emails: list[str]) -> None:
    result = await session.execute(select(User.id).where(User.email.in_(emails)))
    user_ids = list(result.scalars().all())
    if not user_ids:
        return
    print("⚠️  Demo users already exist. Deleting and re-seeding...")
    listing_ids = select(Listing.id).where(Listing.host_id.in_(user_ids))
    await session.execute(delete(Booking).where(Booking.listing_id.in_(listing_ids)))
    await session.execute(delete(Booking).where(Booking.guest_id.in_(user_ids)))
    await session.execute(delete(Listing).where(Listing.host_id.in_(user_ids)))
    await session.execute(delete(User).where(User.id.in_(user_ids)))
    await session.commit()


async def seed() -> None:
    """Populate the database with demo data.

    Idempotent: existing demo users and everything they own are removed first.
    """
    async with async_session_factory() as session:
        await _reset(session, [DEMO_HOST["email"], DEMO_GUEST["email"]])

        # ------------------------------------------------------------------
        # 1. Users
        # ------------------------------------------------------------------
        host = User(**DEMO_HOST, is_active=True)
        guest = User(**DEMO_GUEST, is_active=True)
        session.add_all([host, guest])
        await session.flush()

        # ------------------------------------------------------------------
        # 2. Listings
        # ------------------------------------------------------------------
        created_listings: list[Listing] = []
        for data in LISTINGS:
            listing = Listing(host_id=host.id, **data)
            session.add(listing)
            created_listings.append(listing)
        await session.commit()
        for listing in created_listings:
            print(f"   🏠 {listing.title} ({listing.city}, ${listing.price}/night, max {listing.max_guests})")

        # ------------------------------------------------------------------
        # 3. Bookings (each allocate() call commits)
        # ------------------------------------------------------------------
        today = date.today()
        booking_count = 0
        for bdata in _build_bookings(created_listings, today):
            paid = bdata["paid"]
            booking = await allocate(
                session,
                bdata["listing"].id,
                guest.id,
                bdata["check_in"],
                bdata["check_out"],
                bdata["guests"],
                status=BookingStatus.CONFIRMED if paid else BookingStatus.PENDING,
                payment_status=PaymentStatus.PAID if paid else PaymentStatus.UNPAID,
            )
            if bdata.get("cancel"):
                booking = await cancel(session, booking.id, guest.id)
            booking_count += 1
            print(f"   📅 {booking.check_in}..{booking.check_out} {booking.status} ${booking.total_price}")

    await engine.dispose()

    print()
    print("=" * 60)
    print("📊 Seed Summary")
    print("=" * 60)
    print(f"   Host:     {DEMO_HOST['email']}")
    print(f"   Guest:    {DEMO_GUEST['email']}")
    print(f"   Listings: {len(created_listings)}")
    print(f"   Bookings: {booking_count}")
    print("=" * 60)
    print(f"   Host token:  {create_access_token(str(host.id))}")
    print(f"   Guest token: {create_access_token(str(guest.id))}")


if __name__ == "__main__":
    asyncio.run(seed())
