# app/tasks.py

"""
Periodic maintenance tasks, run by an external scheduler.

Usage:
    python -m app.tasks expire-pending
    python -m app.tasks expire-pending --timeout-minutes 90

Example crontab entry (every 10 minutes):
    */10 * * * * cd /srv/booking && python -m app.tasks expire-pending
"""

import argparse
import logging
import sys
from datetime import timedelta

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from app.config import settings
from app.db import engine
from app.services.bookings import expire_stale

logger = logging.getLogger(__name__)


def run_expiry_sweep(bind=None, timeout_minutes: int = settings.booking.pending_timeout_minutes) -> int:
    with Session(bind or engine) as session:
        return expire_stale(session, timeout=timedelta(minutes=timeout_minutes))


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Booking platform maintenance tasks.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    expire = subparsers.add_parser(
        "expire-pending",
        help="Delete pending bookings that were never confirmed.",
    )
    expire.add_argument(
        "--timeout-minutes",
        type=int,
        default=settings.booking.pending_timeout_minutes,
        help="Age past the booking date after which a pending booking is stale.",
    )

    args = parser.parse_args(argv)

    if args.command == "expire-pending":
        if args.timeout_minutes < 1:
            parser.error("--timeout-minutes must be >= 1")
        try:
            count = run_expiry_sweep(timeout_minutes=args.timeout_minutes)
        except SQLAlchemyError:
            # Already logged by the sweep; the next scheduled run retries.
            return 1
        logger.info("expire-pending finished: %d booking(s) removed", count)
    return 0


if __name__ == "__main__":
    sys.exit(main())
