"""Async Stripe API wrapper for booking checkout."""

import logging

import stripe
from stripe import StripeClient

from staybook.config import settings
from staybook.models.listing import Listing
from staybook.services.pricing import PriceQuote, to_minor_units

logger = logging.getLogger(__name__)


def is_configured() -> bool:
    """Whether real Stripe calls can be made (otherwise checkout runs in mock mode)."""
    return settings.stripe_configured


def get_stripe_client() -> StripeClient:
    """Create a StripeClient instance with async HTTP support."""
    return StripeClient(
        settings.stripe_secret_key,
        http_client=stripe.HTTPXClient(),
    )


def build_line_item(listing: Listing, quote: PriceQuote, guests: int) -> dict:
    """One line item carrying the whole stay at the quoted total."""
    return {
        "price_data": {
            "currency": settings.stripe_currency,
            "product_data": {
                "name": listing.title,
                "description": f"{quote.nights} nights • {guests} guests",
            },
            "unit_amount": to_minor_units(quote.total),
        },
        "quantity": 1,
    }


async def create_checkout_session(
    line_item: dict,
    success_url: str,
    cancel_url: str,
    metadata: dict[str, str],
) -> stripe.checkout.Session:
    """Create a one-off payment Checkout Session; metadata must round-trip the booking request."""
    client = get_stripe_client()
    logger.info(
        "Creating checkout session for listing %s (%s..%s)",
        metadata.get("listing_id"),
        metadata.get("check_in"),
        metadata.get("check_out"),
    )
    return await client.v1.checkout.sessions.create_async(
        params={
            "mode": "payment",
            "line_items": [line_item],
            "metadata": metadata,
            "success_url": success_url,
            "cancel_url": cancel_url,
        }
    )


async def retrieve_session(session_id: str) -> stripe.checkout.Session:
    """Retrieve a Checkout Session by ID (payment status and metadata)."""
    client = get_stripe_client()
    return await client.v1.checkout.sessions.retrieve_async(session_id)


def construct_webhook_event(payload: bytes, sig_header: str) -> stripe.Event:
    """Verify and construct a Stripe webhook event (synchronous)."""
    client = get_stripe_client()
    return client.construct_event(payload, sig_header, settings.stripe_webhook_secret)
