"""Payment API endpoints — Stripe Checkout for stays and post-redirect verification."""

import logging

import stripe
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from staybook.api.deps import get_current_active_user, get_db
from staybook.billing import reconciliation
from staybook.models.user import User
from staybook.schemas.payment import CheckoutRequest, CheckoutResponse, VerifyPaymentResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/payments", tags=["payments"])


@router.post("/checkout", response_model=CheckoutResponse)
async def create_checkout(
    body: CheckoutRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> CheckoutResponse:
    """Create a Stripe Checkout session for a stay.

    Nothing is reserved yet; the booking is created when the payment is
    verified or the webhook arrives. Without Stripe keys a mock session is
    returned.
    """
    try:
        return await reconciliation.create_checkout(
            db,
            current_user,
            body.listing_id,
            body.check_in,
            body.check_out,
            body.guests,
            success_url=body.success_url,
            cancel_url=body.cancel_url,
        )
    except stripe.StripeError as e:
        logger.error("Stripe checkout error: %s", e)
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Payment provider error, please try again",
        ) from e


@router.get("/verify/{session_id}", response_model=VerifyPaymentResponse)
async def verify_payment(
    session_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> dict:
    """Confirm a paid session and return its booking (created on first call)."""
    try:
        booking = await reconciliation.verify(db, session_id, current_user.id)
    except stripe.StripeError as e:
        logger.error("Stripe verify error for session %s: %s", session_id, e)
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Payment provider error, please try again",
        ) from e
    return {"booking": booking}
