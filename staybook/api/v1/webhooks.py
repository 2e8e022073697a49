"""Stripe webhook endpoint — backstop for guests who never return from checkout."""

import logging

import stripe
from fastapi import APIRouter, HTTPException, Request, status

from staybook.billing.reconciliation import on_webhook
from staybook.billing.stripe_client import construct_webhook_event
from staybook.config import settings
from staybook.database import async_session_factory

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/webhooks", tags=["webhooks"])


@router.post("/stripe")
async def stripe_webhook(request: Request) -> dict[str, str]:
    """Receive and process Stripe webhook events."""
    if not settings.stripe_webhook_secret:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Webhook secret not configured",
        )

    # 1. Read raw body (MUST be raw bytes for signature verification)
    payload = await request.body()
    sig_header = request.headers.get("stripe-signature", "")

    # 2. Verify signature
    try:
        event = construct_webhook_event(payload, sig_header)
    except stripe.SignatureVerificationError as e:
        logger.warning("Webhook signature verification failed")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid signature",
        ) from e
    except ValueError as e:
        logger.warning("Invalid webhook payload")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid payload",
        ) from e

    # 3. Own DB session (webhook has no auth context); reconciliation commits itself
    async with async_session_factory() as db:
        try:
            outcome = await on_webhook(db, event)
            await db.commit()
        except Exception as e:
            await db.rollback()
            logger.exception("Error processing webhook event %s", event.id)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Webhook processing failed",
            ) from e

    return {"status": outcome}
