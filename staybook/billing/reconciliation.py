"""Payment reconciliation — turn completed Stripe checkouts into confirmed bookings.

Deferred-booking flow: checkout reserves nothing; the requested stay rides on
the session metadata. When the payment completes, either the guest's
redirect (``verify``) or the ``checkout.session.completed`` webhook replays
the request through the allocator, which re-checks availability because the
dates may have been taken while the guest was paying. Both entry points are
idempotent on the session id.

A paid session whose dates are gone is never dropped: a
``ReconciliationFailure`` row is written and an error logged for refund
follow-up, then ``ReconciliationConflict`` is raised.
"""

import logging
import uuid
from datetime import date

import stripe
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from staybook.billing.stripe_client import (
    build_line_item,
    create_checkout_session,
    is_configured,
    retrieve_session,
)
from staybook.config import settings
from staybook.models.booking import Booking, BookingStatus, PaymentStatus
from staybook.models.user import User
from staybook.schemas.payment import CheckoutMetadata, CheckoutResponse
from staybook.services import booking_store, notifications
from staybook.services.allocator import quote_stay, reserve
from staybook.services.errors import (
    DatesUnavailable,
    GuestCountError,
    ListingNotFound,
    NotAuthorized,
    PaymentGatewayUnavailable,
    PaymentIncomplete,
    ReconciliationConflict,
)

logger = logging.getLogger(__name__)

# Allocation failures that mean "paid, but this stay can no longer be booked".
_LOST_STAY_ERRORS = (DatesUnavailable, GuestCountError, ListingNotFound)


def _payment_intent_id(session: stripe.checkout.Session) -> str | None:
    intent = getattr(session, "payment_intent", None)
    if intent is None or isinstance(intent, str):
        return intent
    return intent.id


# ---------------------------------------------------------------------------
# Checkout
# ---------------------------------------------------------------------------


async def create_checkout(
    db: AsyncSession,
    user: User,
    listing_id: uuid.UUID,
    check_in: date,
    check_out: date,
    guests: int,
    success_url: str | None = None,
    cancel_url: str | None = None,
    today: date | None = None,
) -> CheckoutResponse:
    """Quote the stay and open a checkout session carrying it as metadata."""
    listing, quote = await quote_stay(db, listing_id, check_in, check_out, guests, today)

    metadata = CheckoutMetadata(
        user_id=user.id,
        listing_id=listing.id,
        check_in=check_in,
        check_out=check_out,
        guests=guests,
        total_price=quote.total,
    )

    if not is_configured():
        session_id = f"mock_{uuid.uuid4().hex}"
        logger.warning(
            "Stripe not configured; returning mock checkout %s for listing %s (total %s)",
            session_id,
            listing.id,
            quote.total,
        )
        return CheckoutResponse(session_id=session_id, url=None, mock=True)

    success_url = success_url or f"{settings.frontend_url}/?payment=success&session_id={{CHECKOUT_SESSION_ID}}"
    cancel_url = cancel_url or f"{settings.frontend_url}/?payment=cancelled"

    session = await create_checkout_session(
        line_item=build_line_item(listing, quote, guests),
        success_url=success_url,
        cancel_url=cancel_url,
        metadata=metadata.to_stripe(),
    )
    logger.info("Checkout session %s created for user %s on listing %s", session.id, user.id, listing.id)
    return CheckoutResponse(session_id=session.id, url=session.url, mock=False)


# ---------------------------------------------------------------------------
# Reconciliation
# ---------------------------------------------------------------------------


async def _record_conflict(
    db: AsyncSession,
    session: stripe.checkout.Session,
    metadata: CheckoutMetadata,
    reason: str,
) -> None:
    await booking_store.record_reconciliation_failure(
        db,
        payment_session_id=session.id,
        payment_intent_id=_payment_intent_id(session),
        listing_id=metadata.listing_id,
        guest_id=metadata.user_id,
        check_in=metadata.check_in,
        check_out=metadata.check_out,
        guests=metadata.guests,
        amount_paid=metadata.total_price,
        reason=reason,
    )
    await db.commit()
    logger.error(
        "Reconciliation conflict: paid session %s lost listing %s for %s..%s (amount %s): %s",
        session.id,
        metadata.listing_id,
        metadata.check_in,
        metadata.check_out,
        metadata.total_price,
        reason,
        extra={
            "reconciliation": {
                "session_id": session.id,
                "payment_intent_id": _payment_intent_id(session),
                "listing_id": str(metadata.listing_id),
                "guest_id": str(metadata.user_id),
                "check_in": metadata.check_in.isoformat(),
                "check_out": metadata.check_out.isoformat(),
                "amount_paid": str(metadata.total_price),
            }
        },
    )


async def reconcile_session(
    db: AsyncSession,
    session: stripe.checkout.Session,
    user_id: uuid.UUID | None = None,
) -> Booking:
    """Create (or return) the confirmed booking for a paid checkout session.

    ``user_id`` is set when the guest calls in; the webhook passes ``None``.
    A session that already lost its dates stays lost: retries and webhook
    redeliveries raise ``ReconciliationConflict`` again instead of booking
    a stay whose payment is queued for refund.
    """
    if session.payment_status != "paid":
        raise PaymentIncomplete()

    existing = await booking_store.find_booking_by_session_id(db, session.id)
    if existing is not None:
        if user_id is not None and existing.guest_id != user_id:
            raise NotAuthorized("This payment belongs to another user")
        return existing

    metadata = CheckoutMetadata.model_validate(dict(session.metadata or {}))
    if user_id is not None and metadata.user_id != user_id:
        raise NotAuthorized("This payment belongs to another user")

    failure = await booking_store.find_reconciliation_failure(db, session.id)
    if failure is not None:
        logger.warning("Checkout session %s already recorded as failed (resolved=%s)", session.id, failure.resolved)
        raise ReconciliationConflict(session.id)

    try:
        booking, created = await reserve(
            db,
            metadata.listing_id,
            metadata.user_id,
            metadata.check_in,
            metadata.check_out,
            metadata.guests,
            status=BookingStatus.CONFIRMED,
            payment_status=PaymentStatus.PAID,
            payment_session_id=session.id,
            payment_intent_id=_payment_intent_id(session),
            total_price=metadata.total_price,
            enforce_past_date=False,
        )
    except _LOST_STAY_ERRORS as e:
        # Another instance may have booked this very session meanwhile
        booked = await booking_store.find_booking_by_session_id(db, session.id)
        if booked is not None:
            return booked
        await _record_conflict(db, session, metadata, e.detail)
        raise ReconciliationConflict(session.id) from e

    if created:
        listing = await booking_store.get_listing(db, booking.listing_id)
        if listing is not None:
            notifications.dispatch_booking_confirmed(booking, listing)
    return booking


async def verify(db: AsyncSession, session_id: str, user_id: uuid.UUID) -> Booking:
    """Guest-initiated check after the redirect back from Stripe."""
    if not is_configured():
        raise PaymentGatewayUnavailable()
    session = await retrieve_session(session_id)
    return await reconcile_session(db, session, user_id=user_id)


# ---------------------------------------------------------------------------
# Webhook events
# ---------------------------------------------------------------------------


async def handle_checkout_session_completed(db: AsyncSession, event: stripe.Event) -> str:
    """Handle checkout.session.completed / async_payment_succeeded — same logic as ``verify``."""
    session = event.data.object

    if session.payment_status != "paid":
        logger.info("Checkout session %s completed but not paid yet (%s)", session.id, session.payment_status)
        return "ignored"

    try:
        await reconcile_session(db, session)
    except ValidationError:
        logger.warning("Checkout session %s has no booking metadata, skipping", session.id)
        return "ignored"
    except ReconciliationConflict:
        return "reconciliation_failed"
    return "processed"


async def handle_checkout_session_expired(db: AsyncSession, event: stripe.Event) -> str:
    """Abandoned checkout: nothing was reserved, so nothing to release."""
    session = event.data.object
    logger.info("Checkout session %s expired without payment", session.id)
    return "processed"


async def handle_payment_failed(db: AsyncSession, event: stripe.Event) -> str:
    obj = event.data.object
    logger.warning("Payment failed for %s (event %s)", obj.id, event.type)
    return "processed"


EVENT_HANDLERS = {
    "checkout.session.completed": handle_checkout_session_completed,
    "checkout.session.async_payment_succeeded": handle_checkout_session_completed,
    "checkout.session.expired": handle_checkout_session_expired,
    "checkout.session.async_payment_failed": handle_payment_failed,
    "payment_intent.payment_failed": handle_payment_failed,
}


async def on_webhook(db: AsyncSession, event: stripe.Event) -> str:
    """Dispatch a verified Stripe event; returns the processing outcome."""
    handler = EVENT_HANDLERS.get(event.type)
    if handler is None:
        logger.debug("Unhandled webhook event type: %s", event.type)
        return "ignored"

    logger.info("Processing webhook event: %s (id=%s)", event.type, event.id)
    return await handler(db, event)
