from datetime import datetime

import pytest
from sqlalchemy import DateTime
from sqlalchemy.exc import IntegrityError

from app.models import AvailabilitySlot, Booking, Category, Service, User, utcnow
from tests.conftest import at, make_booking


@pytest.mark.parametrize("model", [User, Category, Service, AvailabilitySlot, Booking])
def test_datetime_columns_are_naive(model):
    columns = [c for c in model.__table__.columns if isinstance(c.type, DateTime)]
    assert columns
    for column in columns:
        assert column.type.timezone is False, column.name


def test_booking_times_load_back_naive(session, customer, service, next_tuesday):
    start = at(next_tuesday, 10)
    booking = make_booking(session, customer, service, start)

    session.expire_all()
    loaded = session.get(Booking, booking.id)
    assert loaded.date == start
    assert loaded.date.tzinfo is None
    assert isinstance(loaded.created_at, datetime)


class TestCatalogNames:
    def test_live_category_name_is_unique(self, session, admin, category):
        session.add(Category(name=category.name, last_updated_by=admin.id))
        with pytest.raises(IntegrityError):
            session.commit()
        session.rollback()

    def test_deleted_category_frees_its_name(self, session, admin, category):
        category.deleted_at = utcnow()
        session.add(category)
        session.commit()

        session.add(Category(name=category.name, last_updated_by=admin.id))
        session.commit()

    def test_deleted_service_frees_its_name(self, session, provider, category, service):
        service.deleted_at = utcnow()
        session.add(service)
        session.commit()

        session.add(Service(
            provider_id=provider.id, category_id=category.id, name=service.name, duration=45, price=30.0
        ))
        session.commit()
