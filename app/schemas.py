# app/schemas.py

from pydantic import BaseModel, ConfigDict, Field, field_validator
from enum import Enum
from datetime import datetime, date, time
from typing import List, Optional, Union


class UserRole(str, Enum):
    admin = "admin"
    user = "user"
    provider = "provider"


class SlotType(str, Enum):
    recurring = "recurring"
    once = "once"


class BookingStatus(str, Enum):
    pending = "pending"
    confirmed = "confirmed"
    cancelled = "cancelled"
    completed = "completed"

    def valid_transitions(self) -> tuple:
        return _TRANSITIONS[self]

    def can_transition_to(self, new_status: "BookingStatus") -> bool:
        return new_status in self.valid_transitions()

    def is_final(self) -> bool:
        return not self.valid_transitions()

    @classmethod
    def active(cls) -> tuple:
        """Statuses that hold a provider's time."""
        return (cls.pending, cls.confirmed)


_TRANSITIONS = {
    BookingStatus.pending: (BookingStatus.confirmed, BookingStatus.cancelled),
    BookingStatus.confirmed: (BookingStatus.cancelled, BookingStatus.completed),
    BookingStatus.cancelled: (),
    BookingStatus.completed: (),
}


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"


class UserCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    email: str
    password: str = Field(min_length=8, max_length=72)
    role: UserRole = UserRole.user
    timezone: str = "UTC"

    @field_validator("role")
    @classmethod
    def no_self_service_admins(cls, role: UserRole) -> UserRole:
        if role == UserRole.admin:
            raise ValueError("role must be user or provider")
        return role


class UserPublic(BaseModel):
    id: int
    name: str
    email: str
    role: UserRole
    timezone: str


class CategoryCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)


class CategoryPublic(BaseModel):
    id: int
    name: str
    last_updated_by: Optional[int] = None
    created_at: datetime
    updated_at: datetime


class ServiceCreate(BaseModel):
    category_id: int
    name: str = Field(min_length=1, max_length=255)
    description: str = ""
    duration: int = Field(gt=0, le=24 * 60)  # minutes
    price: float = Field(ge=0)
    active: bool = True
    provider_id: Optional[int] = None  # admins only; providers always own


class ServiceUpdate(BaseModel):
    category_id: Optional[int] = None
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    duration: Optional[int] = Field(default=None, gt=0, le=24 * 60)
    price: Optional[float] = Field(default=None, ge=0)
    active: Optional[bool] = None


class ServicePublic(BaseModel):
    id: int
    provider_id: int
    category_id: int
    name: str
    description: str
    duration: int
    price: float
    active: bool


class AvailabilityCreate(BaseModel):
    # "from"/"to" are HH:MM for recurring slots, datetimes for one-off slots
    model_config = ConfigDict(populate_by_name=True)

    type: SlotType = SlotType.once
    week_day: Optional[int] = Field(default=None, ge=0, le=6)
    from_: Union[time, datetime] = Field(alias="from")
    to: Union[time, datetime]
    active: bool = True
    provider_id: Optional[int] = None  # admins only


class AvailabilityUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    type: Optional[SlotType] = None
    week_day: Optional[int] = Field(default=None, ge=0, le=6)
    from_: Optional[Union[time, datetime]] = Field(default=None, alias="from")
    to: Optional[Union[time, datetime]] = None
    active: Optional[bool] = None


class AvailabilityPublic(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: int
    provider_id: int
    type: SlotType
    week_day: Optional[int] = None
    from_: Union[time, datetime] = Field(alias="from")
    to: Union[time, datetime]
    active: bool


class BookingCreate(BaseModel):
    service_id: int
    date: datetime
    customer_notes: Optional[str] = Field(default=None, max_length=1000)


class BookingUpdate(BaseModel):
    status: Optional[BookingStatus] = None
    customer_notes: Optional[str] = Field(default=None, max_length=1000)
    provider_notes: Optional[str] = Field(default=None, max_length=1000)


class BookingPublic(BaseModel):
    id: int
    user_id: int
    provider_id: int
    service_id: int
    slot_id: Optional[int] = None
    date: datetime
    ends_at: datetime
    status: BookingStatus
    price: float
    service_name: str
    service_description: str
    customer_notes: Optional[str] = None
    provider_notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class SlotCheck(BaseModel):
    service_id: int
    date: datetime


class SlotCheckResponse(BaseModel):
    service_id: int
    provider_id: int
    date: datetime
    ends_at: datetime
    available: bool


class AvailabilityResponse(BaseModel):
    service_id: int
    provider_id: int
    date: date
    available_starts: List[str]


class ReportGrouping(str, Enum):
    hour = "hour"
    day = "day"
    both = "both"


class ProviderBookingStats(BaseModel):
    provider_id: int
    provider_name: str
    provider_email: str
    total_bookings: int
    total_revenue: float
    pending_bookings: int
    confirmed_bookings: int
    completed_bookings: int
    cancelled_bookings: int
    average_booking_value: float
    services_offered: int


class ServiceBookingRates(BaseModel):
    service_id: int
    service_name: str
    provider_name: str
    total_bookings: int
    pending_bookings: int
    confirmed_bookings: int
    completed_bookings: int
    cancelled_bookings: int
    # percentages, 0-100
    confirmation_rate: float
    cancellation_rate: float
    completion_rate: float
    pending_rate: float


class HourStat(BaseModel):
    hour: int
    total_bookings: int
    percentage: float


class DayStat(BaseModel):
    day_name: str
    day_number: int  # 0=Mon ... 6=Sun
    total_bookings: int
    percentage: float


class DayHourStat(DayStat):
    hour: int


class PeakHoursReport(BaseModel):
    total_bookings: int
    by_hour: Optional[List[HourStat]] = None
    by_day: Optional[List[DayStat]] = None
    by_day_and_hour: Optional[List[DayHourStat]] = None


class CustomerDurationStats(BaseModel):
    customer_id: int
    customer_name: str
    customer_email: str
    total_bookings: int
    average_duration_minutes: int
    total_duration_minutes: int
    average_booking_value: float
    total_spent: float
    favorite_service: Optional[str] = None
    most_frequent_day: Optional[str] = None
    most_frequent_hour: Optional[int] = None
