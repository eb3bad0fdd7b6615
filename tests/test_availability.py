"""Tests for availability resolution."""

from datetime import datetime, time, timedelta

import pytest

from app.errors import ValidationError
from app.models import utcnow
from app.schemas import SlotType
from app.services.availability import (
    available_starts,
    find_matching_slot,
    is_available,
    slot_fields,
)
from tests.conftest import (
    TUESDAY,
    at,
    make_booking,
    make_once_slot,
    make_recurring_slot,
    next_weekday,
)


class TestRecurringSlots:
    def test_candidate_inside_window_is_available(self, session, provider, tuesday_slot, next_tuesday):
        assert is_available(session, provider.id, at(next_tuesday, 10), at(next_tuesday, 10, 30))

    def test_candidate_filling_whole_window_is_available(self, session, provider, tuesday_slot, next_tuesday):
        assert is_available(session, provider.id, at(next_tuesday, 9), at(next_tuesday, 17))

    def test_candidate_running_past_close_is_rejected(self, session, provider, tuesday_slot, next_tuesday):
        assert not is_available(session, provider.id, at(next_tuesday, 16, 45), at(next_tuesday, 17, 15))

    def test_candidate_before_open_is_rejected(self, session, provider, tuesday_slot, next_tuesday):
        assert not is_available(session, provider.id, at(next_tuesday, 8, 30), at(next_tuesday, 9, 30))

    def test_other_weekday_is_rejected(self, session, provider, tuesday_slot, next_tuesday):
        wednesday = next_tuesday + timedelta(days=1)
        assert not is_available(session, provider.id, at(wednesday, 10), at(wednesday, 10, 30))

    def test_every_week_matches(self, session, provider, tuesday_slot, next_tuesday):
        later = next_tuesday + timedelta(weeks=3)
        assert is_available(session, provider.id, at(later, 12), at(later, 13))

    def test_other_providers_slots_do_not_count(self, session, provider, customer, tuesday_slot, next_tuesday):
        assert not is_available(session, customer.id, at(next_tuesday, 10), at(next_tuesday, 10, 30))


class TestOvernightSlots:
    @pytest.fixture
    def night_slot(self, session, provider):
        # Tuesday 22:00 until Wednesday 02:00
        return make_recurring_slot(session, provider, TUESDAY, time(22, 0), time(2, 0))

    def test_before_midnight(self, session, provider, night_slot, next_tuesday):
        assert is_available(session, provider.id, at(next_tuesday, 22, 30), at(next_tuesday, 23, 30))

    def test_across_midnight(self, session, provider, night_slot, next_tuesday):
        assert is_available(session, provider.id, at(next_tuesday, 23, 30), at(next_tuesday, 23, 30) + timedelta(hours=1))

    def test_after_midnight_on_next_day(self, session, provider, night_slot, next_tuesday):
        wednesday = next_tuesday + timedelta(days=1)
        assert is_available(session, provider.id, at(wednesday, 1), at(wednesday, 1, 30))

    def test_after_close_on_next_day(self, session, provider, night_slot, next_tuesday):
        wednesday = next_tuesday + timedelta(days=1)
        assert not is_available(session, provider.id, at(wednesday, 1, 45), at(wednesday, 2, 15))

    def test_early_hours_of_slot_day_not_covered(self, session, provider, night_slot, next_tuesday):
        # 01:00 on Tuesday belongs to a Monday night window, which does not exist
        assert not is_available(session, provider.id, at(next_tuesday, 1), at(next_tuesday, 1, 30))

    def test_window_ending_at_midnight(self, session, provider, next_tuesday):
        make_recurring_slot(session, provider, TUESDAY, time(18, 0), time(0, 0))
        assert is_available(session, provider.id, at(next_tuesday, 23), at(next_tuesday, 23) + timedelta(hours=1))


class TestOnceSlots:
    @pytest.fixture
    def window(self, next_tuesday):
        return at(next_tuesday, 13), at(next_tuesday, 15)

    def test_inside_is_available(self, session, provider, window):
        make_once_slot(session, provider, *window)
        start = window[0] + timedelta(minutes=30)
        assert is_available(session, provider.id, start, start + timedelta(hours=1))

    @pytest.mark.parametrize("offset_minutes", [-30, 90, 120, -120])
    def test_outside_is_rejected(self, session, provider, window, offset_minutes):
        make_once_slot(session, provider, *window)
        start = window[0] + timedelta(minutes=offset_minutes)
        assert not is_available(session, provider.id, start, start + timedelta(hours=1))

    def test_once_slot_does_not_repeat(self, session, provider, window):
        make_once_slot(session, provider, *window)
        start = window[0] + timedelta(weeks=1)
        assert not is_available(session, provider.id, start, start + timedelta(minutes=30))


class TestInactiveSlots:
    def test_inactive_slot_never_matches(self, session, provider, next_tuesday):
        make_recurring_slot(session, provider, TUESDAY, time(9), time(17), active=False)
        assert not is_available(session, provider.id, at(next_tuesday, 10), at(next_tuesday, 11))

    def test_soft_deleted_slot_never_matches(self, session, provider, tuesday_slot, next_tuesday):
        tuesday_slot.deleted_at = utcnow()
        session.add(tuesday_slot)
        session.commit()
        assert not is_available(session, provider.id, at(next_tuesday, 10), at(next_tuesday, 11))

    def test_matching_slot_is_returned(self, session, provider, tuesday_slot, next_tuesday):
        slot = find_matching_slot(session, provider.id, at(next_tuesday, 10), at(next_tuesday, 11))
        assert slot.id == tuesday_slot.id


class TestBookingConflicts:
    def test_overlapping_pending_booking_blocks(self, session, customer, service, provider, tuesday_slot, next_tuesday):
        make_booking(session, customer, service, at(next_tuesday, 10))
        assert not is_available(session, provider.id, at(next_tuesday, 10, 15), at(next_tuesday, 10, 45))

    def test_overlapping_confirmed_booking_blocks(self, session, customer, service, provider, tuesday_slot, next_tuesday):
        make_booking(session, customer, service, at(next_tuesday, 10), status="confirmed")
        assert not is_available(session, provider.id, at(next_tuesday, 9, 45), at(next_tuesday, 10, 15))

    def test_cancelled_booking_frees_the_interval(self, session, customer, service, provider, tuesday_slot, next_tuesday):
        make_booking(session, customer, service, at(next_tuesday, 10), status="cancelled")
        assert is_available(session, provider.id, at(next_tuesday, 10), at(next_tuesday, 10, 30))

    def test_adjacent_booking_does_not_block(self, session, customer, service, provider, tuesday_slot, next_tuesday):
        make_booking(session, customer, service, at(next_tuesday, 10))
        assert is_available(session, provider.id, at(next_tuesday, 10, 30), at(next_tuesday, 11))


class TestCandidateValidation:
    def test_zero_length_interval_is_rejected(self, session, provider, tuesday_slot, next_tuesday):
        with pytest.raises(ValidationError):
            is_available(session, provider.id, at(next_tuesday, 10), at(next_tuesday, 10))

    def test_inverted_interval_is_rejected(self, session, provider, tuesday_slot, next_tuesday):
        with pytest.raises(ValidationError):
            is_available(session, provider.id, at(next_tuesday, 11), at(next_tuesday, 10))


class TestSlotFields:
    def test_recurring_requires_week_day(self):
        with pytest.raises(ValidationError, match="week_day"):
            slot_fields(SlotType.recurring, None, time(9), time(17))

    def test_recurring_rejects_datetimes(self):
        with pytest.raises(ValidationError):
            slot_fields(SlotType.recurring, 1, datetime(2030, 1, 1, 9), datetime(2030, 1, 1, 17))

    def test_recurring_rejects_equal_bounds(self):
        with pytest.raises(ValidationError):
            slot_fields(SlotType.recurring, 1, time(9), time(9))

    def test_recurring_allows_overnight(self):
        fields = slot_fields(SlotType.recurring, 4, time(22), time(3))
        assert fields["day_start"] == time(22)
        assert fields["day_end"] == time(3)

    def test_once_requires_start_before_end(self):
        with pytest.raises(ValidationError):
            slot_fields(SlotType.once, None, datetime(2030, 1, 1, 17), datetime(2030, 1, 1, 9))

    def test_once_rejects_times_of_day(self):
        with pytest.raises(ValidationError):
            slot_fields(SlotType.once, None, time(9), time(17))

    def test_once_drops_week_day(self):
        fields = slot_fields(SlotType.once, 3, datetime(2030, 1, 1, 9), datetime(2030, 1, 1, 17))
        assert fields["week_day"] is None
        assert fields["start"] == datetime(2030, 1, 1, 9)


class TestAvailableStarts:
    def test_steps_by_service_duration(self, session, provider, service, next_tuesday):
        make_recurring_slot(session, provider, TUESDAY, time(9), time(11))
        starts = available_starts(session, service, next_tuesday)
        assert starts == ["09:00", "09:30", "10:00", "10:30"]

    def test_booked_starts_are_skipped(self, session, provider, customer, service, next_tuesday):
        make_recurring_slot(session, provider, TUESDAY, time(9), time(11))
        make_booking(session, customer, service, at(next_tuesday, 9, 30))
        assert available_starts(session, service, next_tuesday) == ["09:00", "10:00", "10:30"]

    def test_past_starts_are_skipped(self, session, provider, service, next_tuesday):
        make_recurring_slot(session, provider, TUESDAY, time(9), time(11))
        now = at(next_tuesday, 9, 45)
        assert available_starts(session, service, next_tuesday, now=now) == ["10:00", "10:30"]

    def test_no_slots_on_other_days(self, session, provider, service, tuesday_slot, next_tuesday):
        assert available_starts(session, service, next_tuesday + timedelta(days=2)) == []

    def test_once_slot_starts(self, session, provider, service):
        day = next_weekday(5)
        make_once_slot(session, provider, at(day, 14), at(day, 15))
        assert available_starts(session, service, day) == ["14:00", "14:30"]
