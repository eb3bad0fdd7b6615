"""Shared test fixtures and helpers."""

from datetime import date, datetime, time, timedelta
from typing import Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from app import models  # noqa: F401  registers tables
from app.auth import create_access_token, hash_password
from app.core import platform_now
from app.db import get_session
from app.main import app
from app.models import AvailabilitySlot, Booking, Category, Service, User
from app.notifications import NotificationDispatcher, get_dispatcher
from app.rate_limiter import auth_rate_limiter

PASSWORD = "correct-horse"
PASSWORD_HASH = hash_password(PASSWORD)

TUESDAY = 1


class RecordingDispatcher(NotificationDispatcher):
    """Keeps every lifecycle event for assertions."""

    def __init__(self):
        self.events = []

    def on_created(self, booking):
        self.events.append(("created", booking.id))

    def on_status_changed(self, booking, previous, new):
        self.events.append(("status_changed", booking.id, previous.value, new.value))

    def on_cancelled(self, booking, previous, cancelled_by):
        self.events.append(("cancelled", booking.id, previous.value, cancelled_by))


def next_weekday(weekday: int, after: Optional[date] = None) -> date:
    """First date strictly after ``after`` (default: today) falling on ``weekday``."""
    day = (after or platform_now().date()) + timedelta(days=1)
    while day.weekday() != weekday:
        day += timedelta(days=1)
    return day


def at(day: date, hour: int, minute: int = 0) -> datetime:
    return datetime.combine(day, time(hour, minute))


def make_user(session: Session, role: str, email: str, name: Optional[str] = None) -> User:
    user = User(
        name=name or email.split("@")[0],
        email=email,
        password_hash=PASSWORD_HASH,
        role=role,
    )
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


def make_recurring_slot(
    session: Session,
    provider: User,
    week_day: int,
    day_start: time,
    day_end: time,
    active: bool = True,
) -> AvailabilitySlot:
    slot = AvailabilitySlot(
        provider_id=provider.id,
        type="recurring",
        week_day=week_day,
        day_start=day_start,
        day_end=day_end,
        active=active,
    )
    session.add(slot)
    session.commit()
    session.refresh(slot)
    return slot


def make_once_slot(
    session: Session, provider: User, start: datetime, end: datetime, active: bool = True
) -> AvailabilitySlot:
    slot = AvailabilitySlot(
        provider_id=provider.id, type="once", start=start, end=end, active=active
    )
    session.add(slot)
    session.commit()
    session.refresh(slot)
    return slot


def make_booking(
    session: Session,
    customer: User,
    service: Service,
    start: datetime,
    status: str = "pending",
) -> Booking:
    """Insert a booking directly, bypassing the lifecycle checks."""
    booking = Booking(
        user_id=customer.id,
        provider_id=service.provider_id,
        service_id=service.id,
        date=start,
        ends_at=start + timedelta(minutes=service.duration),
        status=status,
        price=service.price,
        service_name=service.name,
        service_description=service.description,
    )
    session.add(booking)
    session.commit()
    session.refresh(booking)
    return booking


def auth_headers(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token({'sub': user.email})}"}


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)


@pytest.fixture
def session(engine):
    with Session(engine, expire_on_commit=False) as session:
        yield session


@pytest.fixture
def dispatcher():
    return RecordingDispatcher()


@pytest.fixture(autouse=True)
def reset_rate_limiter():
    auth_rate_limiter.reset()
    yield
    auth_rate_limiter.reset()


@pytest.fixture
def client(engine, dispatcher):
    def override_session():
        with Session(engine) as session:
            yield session

    app.dependency_overrides[get_session] = override_session
    app.dependency_overrides[get_dispatcher] = lambda: dispatcher
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def admin(session):
    return make_user(session, "admin", "admin@example.com")


@pytest.fixture
def provider(session):
    return make_user(session, "provider", "provider@example.com")


@pytest.fixture
def customer(session):
    return make_user(session, "user", "customer@example.com")


@pytest.fixture
def category(session, admin):
    category = Category(name="Hair", last_updated_by=admin.id)
    session.add(category)
    session.commit()
    session.refresh(category)
    return category


@pytest.fixture
def service(session, provider, category):
    service = Service(
        provider_id=provider.id,
        category_id=category.id,
        name="Haircut",
        description="Wash and cut",
        duration=30,
        price=25.0,
    )
    session.add(service)
    session.commit()
    session.refresh(service)
    return service


@pytest.fixture
def tuesday_slot(session, provider):
    """Provider works Tuesdays 09:00-17:00."""
    return make_recurring_slot(session, provider, TUESDAY, time(9, 0), time(17, 0))


@pytest.fixture
def next_tuesday():
    return next_weekday(TUESDAY)
