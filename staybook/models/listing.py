"""Listing model — the pricing-relevant view of a rental."""

import uuid
from decimal import Decimal

from sqlalchemy import ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import Mapped, WriteOnlyMapped, mapped_column, relationship

from staybook.database import Base, TimestampMixin, UUIDPrimaryKeyMixin


class Listing(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """A bookable place owned by a host.

    Only the fields the booking core reads live here; listing CRUD and
    search belong to the catalogue service.
    """

    __tablename__ = "listings"

    host_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    city: Mapped[str | None] = mapped_column(String(255), default=None)
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)  # nightly rate
    base_guests: Mapped[int] = mapped_column(Integer, default=2, nullable=False)
    extra_guest_fee: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0"), nullable=False)
    max_guests: Mapped[int] = mapped_column(Integer, default=4, nullable=False)

    # Relationships
    host: Mapped["User"] = relationship(back_populates="listings", lazy="selectin")  # type: ignore[name-defined]  # noqa: F821
    bookings: WriteOnlyMapped["Booking"] = relationship(  # type: ignore[name-defined]  # noqa: F821
        back_populates="listing", passive_deletes=True
    )

    def __repr__(self) -> str:
        return f"<Listing(id={self.id}, title={self.title!r}, price={self.price})>"
