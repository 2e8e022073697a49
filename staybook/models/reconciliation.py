"""Reconciliation failure — a paid checkout that lost its dates before confirmation."""

import uuid
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import Boolean, Date, Integer, Numeric, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from staybook.database import Base, UUIDPrimaryKeyMixin


class ReconciliationFailure(UUIDPrimaryKeyMixin, Base):
    """Record kept for manual refund follow-up.

    Listing and guest ids are stored as plain values rather than foreign keys
    so the record survives listing deletion.
    """

    __tablename__ = "reconciliation_failures"

    payment_session_id: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    payment_intent_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    listing_id: Mapped[uuid.UUID | None] = mapped_column(nullable=True, index=True)
    guest_id: Mapped[uuid.UUID | None] = mapped_column(nullable=True)
    check_in: Mapped[date | None] = mapped_column(Date, nullable=True)
    check_out: Mapped[date | None] = mapped_column(Date, nullable=True)
    guests: Mapped[int | None] = mapped_column(Integer, nullable=True)
    amount_paid: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    resolved: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(server_default=func.now())

    def __repr__(self) -> str:
        return f"<ReconciliationFailure(session={self.payment_session_id!r}, resolved={self.resolved})>"
