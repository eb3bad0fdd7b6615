# app/services/reports.py

"""
Admin reports over bookings.

All reports take the same filters (provider, service, inclusive date range).
The per-provider and per-service breakdowns count bookings in every status.
Revenue, averages, peak hours and customer figures only count bookings that
went ahead, i.e. confirmed or completed.
"""

import calendar
import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Dict, List, Optional

from sqlalchemy import case, distinct, extract, func
from sqlmodel import Session, select

from app.errors import ValidationError
from app.models import Booking, Service, User
from app.schemas import BookingStatus, ReportGrouping

logger = logging.getLogger(__name__)

FULFILLED = (BookingStatus.confirmed.value, BookingStatus.completed.value)


@dataclass(frozen=True)
class ReportFilters:
    provider_id: Optional[int] = None
    service_id: Optional[int] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None

    def __post_init__(self):
        if self.date_from and self.date_to and self.date_from > self.date_to:
            raise ValidationError("date_from must not be after date_to")

    def apply(self, stmt):
        if self.provider_id is not None:
            stmt = stmt.where(Booking.provider_id == self.provider_id)
        if self.service_id is not None:
            stmt = stmt.where(Booking.service_id == self.service_id)
        if self.date_from is not None:
            stmt = stmt.where(Booking.date >= datetime.combine(self.date_from, datetime.min.time()))
        if self.date_to is not None:
            next_day = datetime.combine(self.date_to + timedelta(days=1), datetime.min.time())
            stmt = stmt.where(Booking.date < next_day)
        return stmt


def _count_status(status: BookingStatus):
    return func.sum(case((Booking.status == status.value, 1), else_=0))


def _percent(part, total, digits: int = 2) -> float:
    return round(part / total * 100, digits) if total else 0.0


def _weekday(dow) -> int:
    # SQL day-of-week counts from Sunday; weekday() counts from Monday
    return (int(dow) + 6) % 7


def _status_counts(row) -> dict:
    return {
        "pending_bookings": int(row.pending_bookings or 0),
        "confirmed_bookings": int(row.confirmed_bookings or 0),
        "completed_bookings": int(row.completed_bookings or 0),
        "cancelled_bookings": int(row.cancelled_bookings or 0),
    }


def provider_booking_stats(session: Session, filters: ReportFilters = ReportFilters()) -> List[dict]:
    """Bookings and revenue per provider, busiest first."""
    total = func.count(Booking.id)
    fulfilled = Booking.status.in_(FULFILLED)
    stmt = (
        select(
            User.id.label("provider_id"),
            User.name.label("provider_name"),
            User.email.label("provider_email"),
            total.label("total_bookings"),
            func.sum(case((fulfilled, Booking.price), else_=0)).label("total_revenue"),
            _count_status(BookingStatus.pending).label("pending_bookings"),
            _count_status(BookingStatus.confirmed).label("confirmed_bookings"),
            _count_status(BookingStatus.completed).label("completed_bookings"),
            _count_status(BookingStatus.cancelled).label("cancelled_bookings"),
            func.avg(case((fulfilled, Booking.price))).label("average_booking_value"),
            func.count(distinct(Booking.service_id)).label("services_offered"),
        )
        .select_from(Booking)
        .join(User, User.id == Booking.provider_id)
        .group_by(User.id, User.name, User.email)
        .order_by(total.desc(), User.id)
    )
    return [
        {
            "provider_id": row.provider_id,
            "provider_name": row.provider_name,
            "provider_email": row.provider_email,
            "total_bookings": row.total_bookings,
            "total_revenue": float(row.total_revenue or 0),
            **_status_counts(row),
            "average_booking_value": round(float(row.average_booking_value or 0), 2),
            "services_offered": row.services_offered,
        }
        for row in session.exec(filters.apply(stmt)).all()
    ]


def service_booking_rates(session: Session, filters: ReportFilters = ReportFilters()) -> List[dict]:
    """Share of each status per service, as percentages."""
    total = func.count(Booking.id)
    stmt = (
        select(
            Service.id.label("service_id"),
            Service.name.label("service_name"),
            User.name.label("provider_name"),
            total.label("total_bookings"),
            _count_status(BookingStatus.pending).label("pending_bookings"),
            _count_status(BookingStatus.confirmed).label("confirmed_bookings"),
            _count_status(BookingStatus.completed).label("completed_bookings"),
            _count_status(BookingStatus.cancelled).label("cancelled_bookings"),
        )
        .select_from(Booking)
        .join(Service, Service.id == Booking.service_id)
        .join(User, User.id == Booking.provider_id)
        .group_by(Service.id, Service.name, User.name)
        .order_by(total.desc(), Service.id)
    )

    report = []
    for row in session.exec(filters.apply(stmt)).all():
        counts = _status_counts(row)
        report.append({
            "service_id": row.service_id,
            "service_name": row.service_name,
            "provider_name": row.provider_name,
            "total_bookings": row.total_bookings,
            **counts,
            "confirmation_rate": _percent(counts["confirmed_bookings"], row.total_bookings),
            "cancellation_rate": _percent(counts["cancelled_bookings"], row.total_bookings),
            "completion_rate": _percent(counts["completed_bookings"], row.total_bookings),
            "pending_rate": _percent(counts["pending_bookings"], row.total_bookings),
        })
    return report


def peak_hours(
    session: Session,
    filters: ReportFilters = ReportFilters(),
    group_by: ReportGrouping = ReportGrouping.both,
) -> dict:
    """Booking counts by hour of day, by weekday, or both."""
    fulfilled = Booking.status.in_(FULFILLED)
    hour = extract("hour", Booking.date)
    dow = extract("dow", Booking.date)
    count = func.count(Booking.id)

    total = session.exec(filters.apply(select(count).where(fulfilled))).one()
    report = {"total_bookings": total}

    if group_by in (ReportGrouping.hour, ReportGrouping.both):
        stmt = select(hour.label("hour"), count.label("n")).where(fulfilled).group_by(hour).order_by(hour)
        report["by_hour"] = [
            {"hour": int(row.hour), "total_bookings": row.n, "percentage": _percent(row.n, total, 1)}
            for row in session.exec(filters.apply(stmt)).all()
        ]

    if group_by in (ReportGrouping.day, ReportGrouping.both):
        stmt = select(dow.label("dow"), count.label("n")).where(fulfilled).group_by(dow)
        days = [
            {
                "day_name": calendar.day_name[_weekday(row.dow)],
                "day_number": _weekday(row.dow),
                "total_bookings": row.n,
                "percentage": _percent(row.n, total, 1),
            }
            for row in session.exec(filters.apply(stmt)).all()
        ]
        report["by_day"] = sorted(days, key=lambda d: d["day_number"])

    if group_by == ReportGrouping.both:
        stmt = (
            select(dow.label("dow"), hour.label("hour"), count.label("n"))
            .where(fulfilled)
            .group_by(dow, hour)
        )
        cells = [
            {
                "day_name": calendar.day_name[_weekday(row.dow)],
                "day_number": _weekday(row.dow),
                "hour": int(row.hour),
                "total_bookings": row.n,
                "percentage": _percent(row.n, total, 1),
            }
            for row in session.exec(filters.apply(stmt)).all()
        ]
        report["by_day_and_hour"] = sorted(cells, key=lambda c: (c["day_number"], c["hour"]))

    return report


def _most_frequent(session: Session, filters: ReportFilters, key, customer_ids) -> Dict[int, object]:
    """Most frequent value of ``key`` per customer; ties go to the smallest value."""
    stmt = (
        select(Booking.user_id, key.label("key"), func.count(Booking.id).label("n"))
        .where(Booking.status.in_(FULFILLED))
        .where(Booking.user_id.in_(customer_ids))
        .group_by(Booking.user_id, key)
    )
    best = {}
    for row in session.exec(filters.apply(stmt)).all():
        candidate = (-row.n, row.key)
        if row.user_id not in best or candidate < best[row.user_id]:
            best[row.user_id] = candidate
    return {user_id: value for user_id, (_, value) in best.items()}


def customer_booking_duration(
    session: Session,
    filters: ReportFilters = ReportFilters(),
    min_bookings: int = 1,
) -> List[dict]:
    """Time booked and money spent per customer, with their habits."""
    total = func.count(Booking.id)
    stmt = (
        select(
            User.id.label("customer_id"),
            User.name.label("customer_name"),
            User.email.label("customer_email"),
            total.label("total_bookings"),
            func.avg(Service.duration).label("average_duration"),
            func.sum(Service.duration).label("total_duration"),
            func.avg(Booking.price).label("average_booking_value"),
            func.sum(Booking.price).label("total_spent"),
        )
        .select_from(Booking)
        .join(User, User.id == Booking.user_id)
        .join(Service, Service.id == Booking.service_id)
        .where(Booking.status.in_(FULFILLED))
        .group_by(User.id, User.name, User.email)
        .having(total >= min_bookings)
        .order_by(total.desc(), User.id)
    )
    rows = session.exec(filters.apply(stmt)).all()
    if not rows:
        return []

    ids = [row.customer_id for row in rows]
    services = _most_frequent(session, filters, Booking.service_name, ids)
    days = _most_frequent(session, filters, extract("dow", Booking.date), ids)
    hours = _most_frequent(session, filters, extract("hour", Booking.date), ids)

    return [
        {
            "customer_id": row.customer_id,
            "customer_name": row.customer_name,
            "customer_email": row.customer_email,
            "total_bookings": row.total_bookings,
            "average_duration_minutes": int(round(float(row.average_duration or 0))),
            "total_duration_minutes": int(row.total_duration or 0),
            "average_booking_value": round(float(row.average_booking_value or 0), 2),
            "total_spent": float(row.total_spent or 0),
            "favorite_service": services.get(row.customer_id),
            "most_frequent_day": (
                calendar.day_name[_weekday(days[row.customer_id])]
                if row.customer_id in days
                else None
            ),
            "most_frequent_hour": int(hours[row.customer_id]) if row.customer_id in hours else None,
        }
        for row in rows
    ]
