"""Tests for checkout, payment verification and the Stripe webhook endpoint."""

import uuid
from datetime import date, timedelta
from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

import pytest
import stripe
from httpx import AsyncClient

from staybook.config import settings
from staybook.schemas.payment import CheckoutMetadata

pytestmark = pytest.mark.asyncio


class _StripeObj(SimpleNamespace):
    def __getitem__(self, key: str):
        return getattr(self, key)


def _day(offset: int) -> date:
    return date.today() + timedelta(days=offset)


def _paid_session(user_id, listing_id, start: int = 10, end: int = 13, guests: int = 2) -> _StripeObj:
    metadata = CheckoutMetadata(
        user_id=user_id,
        listing_id=listing_id,
        check_in=_day(start),
        check_out=_day(end),
        guests=guests,
        total_price=Decimal("300.00"),
    )
    return _StripeObj(
        id=f"cs_test_{uuid.uuid4().hex[:12]}",
        payment_status="paid",
        payment_intent="pi_test_123",
        metadata=metadata.to_stripe(),
    )


def _event(event_type: str, obj: _StripeObj) -> _StripeObj:
    return _StripeObj(type=event_type, id=f"evt_test_{uuid.uuid4().hex[:8]}", data=_StripeObj(object=obj))


# ---------------------------------------------------------------------------
# POST /api/v1/payments/checkout
# ---------------------------------------------------------------------------


class TestCheckoutEndpoint:
    async def test_mock_checkout_without_keys(self, client: AsyncClient, guest_headers, listing) -> None:
        with patch("staybook.billing.reconciliation.is_configured", return_value=False):
            response = await client.post(
                "/api/v1/payments/checkout",
                json={
                    "listing_id": str(listing.id),
                    "check_in": _day(10).isoformat(),
                    "check_out": _day(13).isoformat(),
                    "guests": 2,
                },
                headers=guest_headers,
            )
        assert response.status_code == 200
        data = response.json()
        assert data["mock"] is True
        assert data["session_id"].startswith("mock_")

    async def test_stripe_checkout(self, client: AsyncClient, guest_headers, listing) -> None:
        fake = _StripeObj(id="cs_test_api", url="https://checkout.stripe.com/c/pay/cs_test_api")
        with (
            patch("staybook.billing.reconciliation.is_configured", return_value=True),
            patch(
                "staybook.billing.reconciliation.create_checkout_session",
                new_callable=AsyncMock,
                return_value=fake,
            ),
        ):
            response = await client.post(
                "/api/v1/payments/checkout",
                json={
                    "listing_id": str(listing.id),
                    "check_in": _day(10).isoformat(),
                    "check_out": _day(13).isoformat(),
                },
                headers=guest_headers,
            )
        assert response.status_code == 200
        assert response.json() == {"session_id": "cs_test_api", "url": fake.url, "mock": False}

    async def test_stripe_error_maps_to_502(self, client: AsyncClient, guest_headers, listing) -> None:
        with (
            patch("staybook.billing.reconciliation.is_configured", return_value=True),
            patch(
                "staybook.billing.reconciliation.create_checkout_session",
                new_callable=AsyncMock,
                side_effect=stripe.APIConnectionError("network down"),
            ),
        ):
            response = await client.post(
                "/api/v1/payments/checkout",
                json={
                    "listing_id": str(listing.id),
                    "check_in": _day(10).isoformat(),
                    "check_out": _day(13).isoformat(),
                },
                headers=guest_headers,
            )
        assert response.status_code == 502

    async def test_unavailable_dates_409(self, client: AsyncClient, guest_headers, listing) -> None:
        await client.post(
            "/api/v1/bookings",
            json={
                "listing_id": str(listing.id),
                "check_in": _day(10).isoformat(),
                "check_out": _day(13).isoformat(),
            },
            headers=guest_headers,
        )
        with patch("staybook.billing.reconciliation.is_configured", return_value=False):
            response = await client.post(
                "/api/v1/payments/checkout",
                json={
                    "listing_id": str(listing.id),
                    "check_in": _day(12).isoformat(),
                    "check_out": _day(14).isoformat(),
                },
                headers=guest_headers,
            )
        assert response.status_code == 409


# ---------------------------------------------------------------------------
# GET /api/v1/payments/verify/{session_id}
# ---------------------------------------------------------------------------


class TestVerifyEndpoint:
    async def test_verify_twice_same_booking(self, client: AsyncClient, guest_headers, listing, guest) -> None:
        session = _paid_session(guest.id, listing.id)
        with (
            patch("staybook.billing.reconciliation.is_configured", return_value=True),
            patch(
                "staybook.billing.reconciliation.retrieve_session",
                new_callable=AsyncMock,
                return_value=session,
            ),
        ):
            first = await client.get(f"/api/v1/payments/verify/{session.id}", headers=guest_headers)
            second = await client.get(f"/api/v1/payments/verify/{session.id}", headers=guest_headers)

        assert first.status_code == 200
        assert second.status_code == 200
        booking = first.json()["booking"]
        assert booking["id"] == second.json()["booking"]["id"]
        assert booking["status"] == "confirmed"
        assert booking["payment_status"] == "paid"
        assert booking["payment_session_id"] == session.id

    async def test_unpaid_402(self, client: AsyncClient, guest_headers, listing, guest) -> None:
        session = _paid_session(guest.id, listing.id)
        session.payment_status = "unpaid"
        with (
            patch("staybook.billing.reconciliation.is_configured", return_value=True),
            patch(
                "staybook.billing.reconciliation.retrieve_session",
                new_callable=AsyncMock,
                return_value=session,
            ),
        ):
            response = await client.get(f"/api/v1/payments/verify/{session.id}", headers=guest_headers)
        assert response.status_code == 402

    async def test_lost_race_409(self, client: AsyncClient, guest_headers, stranger_headers, listing, guest) -> None:
        session = _paid_session(guest.id, listing.id)
        taken = await client.post(
            "/api/v1/bookings",
            json={
                "listing_id": str(listing.id),
                "check_in": _day(11).isoformat(),
                "check_out": _day(12).isoformat(),
            },
            headers=stranger_headers,
        )
        assert taken.status_code == 201

        with (
            patch("staybook.billing.reconciliation.is_configured", return_value=True),
            patch(
                "staybook.billing.reconciliation.retrieve_session",
                new_callable=AsyncMock,
                return_value=session,
            ),
        ):
            response = await client.get(f"/api/v1/payments/verify/{session.id}", headers=guest_headers)
        assert response.status_code == 409
        assert "refund" in response.json()["detail"]

    async def test_gateway_not_configured_503(self, client: AsyncClient, guest_headers) -> None:
        with patch("staybook.billing.reconciliation.is_configured", return_value=False):
            response = await client.get("/api/v1/payments/verify/cs_test_none", headers=guest_headers)
        assert response.status_code == 503


# ---------------------------------------------------------------------------
# POST /api/v1/webhooks/stripe
# ---------------------------------------------------------------------------


class TestStripeWebhookEndpoint:
    async def test_secret_not_configured(self, client: AsyncClient) -> None:
        with patch.object(settings, "stripe_webhook_secret", ""):
            response = await client.post("/api/v1/webhooks/stripe", content=b"{}")
        assert response.status_code == 400

    async def test_bad_signature(self, client: AsyncClient) -> None:
        with (
            patch.object(settings, "stripe_webhook_secret", "whsec_test"),
            patch(
                "staybook.api.v1.webhooks.construct_webhook_event",
                side_effect=stripe.SignatureVerificationError("bad signature", "t=1,v1=bad"),
            ),
        ):
            response = await client.post(
                "/api/v1/webhooks/stripe",
                content=b"{}",
                headers={"stripe-signature": "t=1,v1=bad"},
            )
        assert response.status_code == 400
        assert response.json()["detail"] == "Invalid signature"

    async def test_completed_event_books_once(
        self, client: AsyncClient, session_factory, guest_headers, listing, guest
    ) -> None:
        session = _paid_session(guest.id, listing.id)
        event = _event("checkout.session.completed", session)
        with (
            patch.object(settings, "stripe_webhook_secret", "whsec_test"),
            patch("staybook.api.v1.webhooks.construct_webhook_event", return_value=event),
            patch("staybook.api.v1.webhooks.async_session_factory", session_factory),
        ):
            first = await client.post("/api/v1/webhooks/stripe", content=b"{}", headers={"stripe-signature": "sig"})
            second = await client.post("/api/v1/webhooks/stripe", content=b"{}", headers={"stripe-signature": "sig"})

        assert first.json() == {"status": "processed"}
        assert second.json() == {"status": "processed"}

        mine = (await client.get("/api/v1/bookings/mine", headers=guest_headers)).json()
        assert mine["total"] == 1
        assert mine["items"][0]["payment_session_id"] == session.id

    async def test_lost_race_acknowledged(self, client: AsyncClient, session_factory, stranger_headers, listing, guest) -> None:
        session = _paid_session(guest.id, listing.id)
        await client.post(
            "/api/v1/bookings",
            json={
                "listing_id": str(listing.id),
                "check_in": _day(10).isoformat(),
                "check_out": _day(13).isoformat(),
            },
            headers=stranger_headers,
        )
        event = _event("checkout.session.completed", session)
        with (
            patch.object(settings, "stripe_webhook_secret", "whsec_test"),
            patch("staybook.api.v1.webhooks.construct_webhook_event", return_value=event),
            patch("staybook.api.v1.webhooks.async_session_factory", session_factory),
        ):
            response = await client.post("/api/v1/webhooks/stripe", content=b"{}", headers={"stripe-signature": "sig"})

        assert response.status_code == 200
        assert response.json() == {"status": "reconciliation_failed"}

    async def test_handler_crash_returns_500(self, client: AsyncClient, session_factory) -> None:
        event = _event("checkout.session.completed", _StripeObj(id="cs_test_boom", payment_status="paid"))
        with (
            patch.object(settings, "stripe_webhook_secret", "whsec_test"),
            patch("staybook.api.v1.webhooks.construct_webhook_event", return_value=event),
            patch("staybook.api.v1.webhooks.async_session_factory", session_factory),
            patch(
                "staybook.api.v1.webhooks.on_webhook",
                new_callable=AsyncMock,
                side_effect=RuntimeError("boom"),
            ),
        ):
            response = await client.post("/api/v1/webhooks/stripe", content=b"{}", headers={"stripe-signature": "sig"})
        assert response.status_code == 500
