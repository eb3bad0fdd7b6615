# app/models.py

from typing import Optional
from datetime import datetime, time

from sqlalchemy import DateTime, Index, text
from sqlmodel import SQLModel, Field


# Statuses that hold a provider's time. Kept in sync with
# BookingStatus.active() in app/schemas.py.
ACTIVE_STATUS_SQL = "status IN ('pending', 'confirmed')"
NOT_DELETED_SQL = "deleted_at IS NULL"


def utcnow() -> datetime:
    return datetime.utcnow()


# Datetimes are stored naive, in platform time (see app.core).
def naive_datetime(**kwargs):
    return Field(sa_type=DateTime(timezone=False), **kwargs)


class User(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    email: str = Field(index=True, unique=True)
    password_hash: str
    role: str  # admin, user or provider
    timezone: str = "UTC"
    created_at: datetime = naive_datetime(default_factory=utcnow)


class Category(SQLModel, table=True):
    __table_args__ = (
        # Soft-deleted categories free their name.
        Index(
            "uq_category_name_live",
            "name",
            unique=True,
            sqlite_where=text(NOT_DELETED_SQL),
            postgresql_where=text(NOT_DELETED_SQL),
        ),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(index=True)
    last_updated_by: Optional[int] = Field(default=None, foreign_key="user.id")
    created_at: datetime = naive_datetime(default_factory=utcnow)
    updated_at: datetime = naive_datetime(default_factory=utcnow)
    deleted_at: Optional[datetime] = naive_datetime(default=None)


class Service(SQLModel, table=True):
    __table_args__ = (
        Index(
            "uq_service_provider_name_live",
            "provider_id",
            "name",
            unique=True,
            sqlite_where=text(NOT_DELETED_SQL),
            postgresql_where=text(NOT_DELETED_SQL),
        ),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    provider_id: int = Field(foreign_key="user.id", index=True)
    category_id: int = Field(foreign_key="category.id", index=True)
    name: str
    description: str = ""
    duration: int  # minutes
    price: float
    active: bool = True
    created_at: datetime = naive_datetime(default_factory=utcnow)
    updated_at: datetime = naive_datetime(default_factory=utcnow)
    deleted_at: Optional[datetime] = naive_datetime(default=None)


class AvailabilitySlot(SQLModel, table=True):
    # Recurring slots use week_day + day_start/day_end (time of day).
    # One-off slots use start/end (absolute datetimes).
    id: Optional[int] = Field(default=None, primary_key=True)
    provider_id: int = Field(foreign_key="user.id", index=True)
    type: str = Field(default="once", index=True)  # recurring or once
    week_day: Optional[int] = Field(default=None, index=True)  # 0=Mon ... 6=Sun
    day_start: Optional[time] = None
    day_end: Optional[time] = None
    start: Optional[datetime] = naive_datetime(default=None)
    end: Optional[datetime] = naive_datetime(default=None)
    active: bool = True
    created_at: datetime = naive_datetime(default_factory=utcnow)
    updated_at: datetime = naive_datetime(default_factory=utcnow)
    deleted_at: Optional[datetime] = naive_datetime(default=None)


class Booking(SQLModel, table=True):
    __table_args__ = (
        # One active booking per provider start time. Overlaps with
        # different start times are caught by the lifecycle re-check.
        Index(
            "uq_booking_provider_start_active",
            "provider_id",
            "date",
            unique=True,
            sqlite_where=text(ACTIVE_STATUS_SQL),
            postgresql_where=text(ACTIVE_STATUS_SQL),
        ),
    )

    id: Optional[int] = Field(default=None, primary_key=True)

    user_id: int = Field(foreign_key="user.id", index=True)
    provider_id: int = Field(foreign_key="user.id", index=True)
    service_id: int = Field(foreign_key="service.id", index=True)
    slot_id: Optional[int] = Field(default=None, foreign_key="availabilityslot.id")

    date: datetime = naive_datetime(index=True)
    ends_at: datetime = naive_datetime()
    status: str = Field(default="pending", index=True)

    price: float
    service_name: str
    service_description: str = ""
    customer_notes: Optional[str] = None
    provider_notes: Optional[str] = None

    created_at: datetime = naive_datetime(default_factory=utcnow)
    updated_at: datetime = naive_datetime(default_factory=utcnow)
