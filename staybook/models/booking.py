"""Booking model — a guest's claim on a listing for a half-open date range."""

import enum
import uuid
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import CheckConstraint, Date, ForeignKey, Index, Integer, Numeric, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from staybook.database import Base, UUIDPrimaryKeyMixin


class BookingStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


class PaymentStatus(str, enum.Enum):
    UNPAID = "unpaid"
    PAID = "paid"


# Bookings in these states occupy the listing's interval space.
ACTIVE_STATUSES: tuple[str, ...] = (BookingStatus.PENDING.value, BookingStatus.CONFIRMED.value)


class Booking(UUIDPrimaryKeyMixin, Base):
    """A reservation of ``[check_in, check_out)`` on a listing.

    ``total_price`` is computed once when the booking is created and is never
    recalculated, even if the listing's rates change afterwards.
    """

    __tablename__ = "bookings"

    listing_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("listings.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    guest_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    check_in: Mapped[date] = mapped_column(Date, nullable=False)
    check_out: Mapped[date] = mapped_column(Date, nullable=False)
    guests: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    total_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20),
        default=BookingStatus.PENDING.value,
        nullable=False,
        index=True,
    )
    payment_status: Mapped[str] = mapped_column(
        String(20),
        default=PaymentStatus.UNPAID.value,
        nullable=False,
    )
    # At most one booking per checkout session (idempotent reconciliation).
    payment_session_id: Mapped[str | None] = mapped_column(String(255), unique=True, nullable=True)
    payment_intent_id: Mapped[str | None] = mapped_column(String(255), nullable=True)

    created_at: Mapped[datetime] = mapped_column(server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(),
        onupdate=func.now(),
    )

    # Relationships
    listing: Mapped["Listing"] = relationship(back_populates="bookings", lazy="selectin")  # type: ignore[name-defined]  # noqa: F821

    __table_args__ = (
        Index("ix_bookings_listing_dates", "listing_id", "check_in", "check_out"),
        CheckConstraint("check_out > check_in", name="ck_bookings_range"),
        CheckConstraint("guests >= 1", name="ck_bookings_guests"),
    )

    def effective_status(self, today: date | None = None) -> str:
        """Stored status, with confirmed stays whose check-out has passed reported as completed."""
        today = today or date.today()
        if self.status == BookingStatus.CONFIRMED and self.check_out <= today:
            return BookingStatus.COMPLETED.value
        return self.status

    @property
    def current_status(self) -> str:
        return self.effective_status()

    def __repr__(self) -> str:
        return (
            f"<Booking(id={self.id}, listing_id={self.listing_id}, "
            f"{self.check_in}..{self.check_out}, status={self.status})>"
        )
