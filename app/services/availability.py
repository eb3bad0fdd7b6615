# app/services/availability.py

"""
Availability resolution.

A provider is bookable for ``[start, end)`` when an active availability slot
fully contains the interval and no pending or confirmed booking of the
provider overlaps it.

Recurring slots repeat every week on ``week_day`` (0=Mon ... 6=Sun) between
``day_start`` and ``day_end``. A recurring slot whose ``day_end`` is not after
``day_start`` wraps past midnight and closes on the following day, so an
occurrence can also cover the early hours of the next weekday.
"""

from datetime import date, datetime, timedelta
from typing import List, Optional

from sqlmodel import Session, select

from app.core import contains, overlaps, platform_now, strip_time_zone, to_platform_time
from app.errors import ValidationError
from app.models import AvailabilitySlot, Booking, Service
from app.schemas import AvailabilityPublic, BookingStatus, SlotType

ACTIVE_STATUSES = [s.value for s in BookingStatus.active()]


def validate_interval(start: datetime, end: datetime) -> None:
    if end <= start:
        raise ValidationError(
            "Candidate interval must end after it starts",
            errors={"start": start.isoformat(), "end": end.isoformat()},
        )


def slot_fields(slot_type: SlotType, week_day, from_, to) -> dict:
    """Validate a slot definition and return the column values to store."""
    if slot_type == SlotType.recurring:
        if week_day is None:
            raise ValidationError("week_day is required for recurring slots")
        if isinstance(from_, datetime) or isinstance(to, datetime):
            raise ValidationError("Recurring slots take times of day (HH:MM), not datetimes")
        day_start, day_end = strip_time_zone(from_), strip_time_zone(to)
        if day_start == day_end:
            raise ValidationError("Recurring slot start and end cannot be equal")
        return {
            "type": slot_type.value,
            "week_day": week_day,
            "day_start": day_start,
            "day_end": day_end,
            "start": None,
            "end": None,
        }

    if not isinstance(from_, datetime) or not isinstance(to, datetime):
        raise ValidationError("One-off slots take full datetimes for from and to")
    start, end = to_platform_time(from_), to_platform_time(to)
    if start >= end:
        raise ValidationError("The end time must be after the start time")
    return {
        "type": slot_type.value,
        "week_day": None,
        "day_start": None,
        "day_end": None,
        "start": start,
        "end": end,
    }


def slot_to_public(slot: AvailabilitySlot) -> AvailabilityPublic:
    if slot.type == SlotType.recurring.value:
        from_, to = slot.day_start, slot.day_end
    else:
        from_, to = slot.start, slot.end
    return AvailabilityPublic(
        id=slot.id,
        provider_id=slot.provider_id,
        type=slot.type,
        week_day=slot.week_day,
        from_=from_,
        to=to,
        active=slot.active,
    )


def slot_windows(slot: AvailabilitySlot, around: date) -> List[tuple]:
    """Concrete ``(start, end)`` occurrences of ``slot`` that can touch ``around``."""
    if slot.type == SlotType.once.value:
        return [(slot.start, slot.end)]

    windows = []
    # The previous day's occurrence matters when the slot wraps past midnight.
    for day in (around - timedelta(days=1), around):
        if day.weekday() != slot.week_day:
            continue
        start = datetime.combine(day, slot.day_start)
        end_day = day + timedelta(days=1) if slot.day_end <= slot.day_start else day
        windows.append((start, datetime.combine(end_day, slot.day_end)))
    return windows


def slot_contains(slot: AvailabilitySlot, start: datetime, end: datetime) -> bool:
    return any(
        contains(window_start, window_end, start, end)
        for window_start, window_end in slot_windows(slot, start.date())
    )


def active_slots(session: Session, provider_id: int) -> List[AvailabilitySlot]:
    return session.exec(
        select(AvailabilitySlot)
        .where(AvailabilitySlot.provider_id == provider_id)
        .where(AvailabilitySlot.active == True)  # noqa: E712
        .where(AvailabilitySlot.deleted_at == None)  # noqa: E711
        .order_by(AvailabilitySlot.id)
    ).all()


def find_matching_slot(
    session: Session, provider_id: int, start: datetime, end: datetime
) -> Optional[AvailabilitySlot]:
    validate_interval(start, end)
    for slot in active_slots(session, provider_id):
        if slot_contains(slot, start, end):
            return slot
    return None


def find_conflicts(
    session: Session,
    provider_id: int,
    start: datetime,
    end: datetime,
    exclude_booking_id: Optional[int] = None,
) -> List[Booking]:
    stmt = (
        select(Booking)
        .where(Booking.provider_id == provider_id)
        .where(Booking.status.in_(ACTIVE_STATUSES))
        .where(Booking.date < end)
        .where(Booking.ends_at > start)
    )
    if exclude_booking_id is not None:
        stmt = stmt.where(Booking.id != exclude_booking_id)
    return session.exec(stmt).all()


def find_customer_conflicts(
    session: Session, user_id: int, start: datetime, end: datetime
) -> List[Booking]:
    return session.exec(
        select(Booking)
        .where(Booking.user_id == user_id)
        .where(Booking.status.in_(ACTIVE_STATUSES))
        .where(Booking.date < end)
        .where(Booking.ends_at > start)
    ).all()


def is_available(session: Session, provider_id: int, start: datetime, end: datetime) -> bool:
    """True when an active slot contains ``[start, end)`` and nothing overlaps it."""
    if find_matching_slot(session, provider_id, start, end) is None:
        return False
    return not find_conflicts(session, provider_id, start, end)


def available_starts(
    session: Session, service: Service, on_date: date, now: Optional[datetime] = None
) -> List[str]:
    """Start times (HH:MM) on ``on_date`` at which ``service`` can be booked.

    Each matching slot window is walked in steps of the service duration.
    Starts in the past or overlapping an active booking are skipped.
    """
    now = now or platform_now()
    duration = timedelta(minutes=service.duration)

    windows = []
    for slot in active_slots(session, service.provider_id):
        for window_start, window_end in slot_windows(slot, on_date):
            if window_start.date() <= on_date <= window_end.date():
                windows.append((window_start, window_end))
    if not windows:
        return []

    day_start = datetime.combine(on_date, datetime.min.time())
    booked = find_conflicts(
        session,
        service.provider_id,
        day_start - timedelta(days=1),
        day_start + timedelta(days=2),
    )

    available = set()
    for window_start, window_end in windows:
        current = window_start
        while current + duration <= window_end:
            slot_start, slot_end = current, current + duration
            current += duration

            if slot_start.date() != on_date or slot_start < now:
                continue
            if any(overlaps(slot_start, slot_end, b.date, b.ends_at) for b in booked):
                continue
            available.add(slot_start)

    return [s.strftime("%H:%M") for s in sorted(available)]
