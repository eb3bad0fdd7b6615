# app/core.py

from datetime import datetime, time
from zoneinfo import ZoneInfo

from app.config import settings


def overlaps(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    # half-open intervals: touching ends do not overlap
    return a_start < b_end and b_start < a_end


def contains(outer_start: datetime, outer_end: datetime, start: datetime, end: datetime) -> bool:
    return outer_start <= start and end <= outer_end


def platform_tz() -> ZoneInfo:
    return ZoneInfo(settings.booking.timezone)


def platform_now() -> datetime:
    """Current wall-clock time in the platform timezone, naive."""
    return datetime.now(platform_tz()).replace(tzinfo=None)


def to_platform_time(value: datetime) -> datetime:
    """Convert an aware datetime to naive platform time; naive values pass through."""
    if value.tzinfo is None:
        return value
    return value.astimezone(platform_tz()).replace(tzinfo=None)


def strip_time_zone(value: time) -> time:
    return value.replace(tzinfo=None)
