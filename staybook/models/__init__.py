"""SQLAlchemy models for StayBook.

All models are imported here so that Alembic's autogenerate can discover
them via Base.metadata. If you add a new model, import it in this file.
"""

from staybook.models.booking import ACTIVE_STATUSES, Booking, BookingStatus, PaymentStatus
from staybook.models.listing import Listing
from staybook.models.reconciliation import ReconciliationFailure
from staybook.models.user import User

__all__ = [
    "ACTIVE_STATUSES",
    "Booking",
    "BookingStatus",
    "Listing",
    "PaymentStatus",
    "ReconciliationFailure",
    "User",
]
