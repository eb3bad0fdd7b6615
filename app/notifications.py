# app/notifications.py

"""
Booking lifecycle notifications.

The lifecycle manager calls the dispatcher after the state change has been
committed and before the HTTP response is returned. The default dispatcher
only logs; swap it through the ``get_dispatcher`` dependency.
"""

import logging

from app.models import Booking
from app.schemas import BookingStatus

logger = logging.getLogger(__name__)


class NotificationDispatcher:
    """Receives booking lifecycle events."""

    def on_created(self, booking: Booking) -> None:
        raise NotImplementedError

    def on_status_changed(
        self, booking: Booking, previous: BookingStatus, new: BookingStatus
    ) -> None:
        raise NotImplementedError

    def on_cancelled(
        self, booking: Booking, previous: BookingStatus, cancelled_by: str
    ) -> None:
        raise NotImplementedError


class LoggingNotificationDispatcher(NotificationDispatcher):
    def on_created(self, booking: Booking) -> None:
        logger.info(
            "Booking %s created: customer %s, provider %s, service '%s' at %s",
            booking.id,
            booking.user_id,
            booking.provider_id,
            booking.service_name,
            booking.date.isoformat(),
        )

    def on_status_changed(
        self, booking: Booking, previous: BookingStatus, new: BookingStatus
    ) -> None:
        logger.info(
            "Booking %s status changed %s -> %s (customer %s notified)",
            booking.id,
            previous.value,
            new.value,
            booking.user_id,
        )

    def on_cancelled(
        self, booking: Booking, previous: BookingStatus, cancelled_by: str
    ) -> None:
        # The provider only hears about cancellations they did not make.
        notify = "provider" if cancelled_by == "customer" else "customer"
        logger.info(
            "Booking %s cancelled by %s (was %s), notifying %s",
            booking.id,
            cancelled_by,
            previous.value,
            notify,
        )


_dispatcher = LoggingNotificationDispatcher()


def get_dispatcher() -> NotificationDispatcher:
    return _dispatcher
