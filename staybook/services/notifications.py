"""Booking notifications — fire-and-forget, never allowed to fail a transition.

Delivery (email, push) belongs to the notification service. Here we render a
template and hand it to the configured sender on a background task; the
default sender only logs, like a dry run.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from staybook.models.booking import Booking
from staybook.models.listing import Listing

logger = logging.getLogger(__name__)

TEMPLATES = {
    "booking_confirmation": {
        "subject": "Booking Confirmed: {listing_title}",
        "body": (
            "Your stay at {listing_title} is confirmed.\n\n"
            "Booking Details:\n"
            "- Booking: {booking_id}\n"
            "- Check-in: {check_in}\n"
            "- Check-out: {check_out}\n"
            "- Guests: {guests}\n"
            "- Total Price: ${total_price}\n"
        ),
    },
    "booking_cancellation": {
        "subject": "Booking Cancelled: {listing_title}",
        "body": (
            "The booking {booking_id} at {listing_title} "
            "({check_in} to {check_out}) has been cancelled.\n"
        ),
    },
}


@dataclass(frozen=True)
class Notification:
    template: str
    booking_id: str
    guest_id: str
    host_id: str
    subject: str
    body: str


async def _log_sender(notification: Notification) -> None:
    logger.info(
        "Notification [%s] for booking %s (guest %s, host %s): %s",
        notification.template,
        notification.booking_id,
        notification.guest_id,
        notification.host_id,
        notification.subject,
    )


Sender = Callable[[Notification], Awaitable[None]]

_sender: Sender = _log_sender
_background_tasks: set[asyncio.Task] = set()


def set_sender(sender: Sender | None) -> None:
    """Install a delivery function; ``None`` restores the logging sender."""
    global _sender
    _sender = sender or _log_sender


def render(template: str, booking: Booking, listing: Listing) -> Notification:
    template_vars = {
        "booking_id": str(booking.id),
        "listing_title": listing.title,
        "check_in": booking.check_in.isoformat(),
        "check_out": booking.check_out.isoformat(),
        "guests": str(booking.guests),
        "total_price": str(booking.total_price),
    }
    tmpl = TEMPLATES[template]
    return Notification(
        template=template,
        booking_id=str(booking.id),
        guest_id=str(booking.guest_id),
        host_id=str(listing.host_id),
        subject=tmpl["subject"].format(**template_vars),
        body=tmpl["body"].format(**template_vars),
    )


async def _deliver(notification: Notification) -> None:
    try:
        await _sender(notification)
    except Exception:
        logger.exception(
            "Failed to send %s notification for booking %s",
            notification.template,
            notification.booking_id,
        )


def dispatch(template: str, booking: Booking, listing: Listing) -> None:
    """Schedule delivery and return immediately."""
    try:
        notification = render(template, booking, listing)
        task = asyncio.get_running_loop().create_task(_deliver(notification))
    except Exception:
        logger.exception("Could not schedule %s notification for booking %s", template, booking.id)
        return
    _background_tasks.add(task)
    task.add_done_callback(_background_tasks.discard)


def dispatch_booking_confirmed(booking: Booking, listing: Listing) -> None:
    dispatch("booking_confirmation", booking, listing)


def dispatch_booking_cancelled(booking: Booking, listing: Listing) -> None:
    dispatch("booking_cancellation", booking, listing)
