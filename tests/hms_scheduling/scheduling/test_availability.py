from datetime import date, datetime
from types import MappingProxyType

import pytest

from hms_scheduling.models.appointment import AppointmentStatus
from hms_scheduling.scheduling.availability import (
    BLOCKED_BY_BOOKING,
    BLOCKED_BY_LEAVE,
    BLOCKED_TOO_SOON,
    AvailabilityResolver,
)
from hms_scheduling.scheduling.booking_index import BookedAppointment, BookingIndex, occupied_slots
from hms_scheduling.scheduling.errors import DataUnavailable
from hms_scheduling.scheduling.leave_calendar import LeaveRecord
from hms_scheduling.scheduling.slot_template import DEFAULT_TEMPLATE, SlotTemplate

DOCTOR_ID = 'doctor-1'
DAY = date(2024, 6, 11)


class FakeLeaves:
    def __init__(self, record: LeaveRecord | None = None, error: Exception | None = None):
        self.record = record or LeaveRecord()
        self.error = error

    def get_doctor_schedule(self, doctor_id: str) -> LeaveRecord:
        if self.error is not None:
            raise self.error
        return self.record


class FakeAppointments:
    def __init__(self, appointments=None):
        self.appointments = list(appointments or [])
        self.queries = 0

    def query_appointments(self, doctor_id: str, day: date):
        self.queries += 1
        return [item for item in self.appointments if item.doctor_id == doctor_id and item.date == day]


def _booking(appointment_id: str, start: datetime, status=AppointmentStatus.SCHEDULED, doctor_id=DOCTOR_ID, duration=30):
    return BookedAppointment(
        appointment_id=appointment_id,
        doctor_id=doctor_id,
        date=start.date(),
        start_time=start,
        duration_minutes=duration,
        status=status,
    )


def _resolver(record=None, appointments=None, template=DEFAULT_TEMPLATE):
    return AvailabilityResolver(
        FakeLeaves(record),
        BookingIndex(FakeAppointments(appointments), template=template),
        template=template,
    )


def test_future_day_without_leaves_or_bookings_is_fully_bookable() -> None:
    result = _resolver().resolve(DOCTOR_ID, DAY, datetime(2024, 6, 1, 12, 0))

    assert [entry.slot for entry in result.slots] == list(DEFAULT_TEMPLATE.all_slots())
    assert all(entry.is_bookable for entry in result.slots)
    assert all(entry.blocked_reason is None for entry in result.slots)


def test_full_day_leave_makes_every_slot_unbookable() -> None:
    record = LeaveRecord(full_day_leaves=frozenset({DAY}))

    result = _resolver(record).resolve(DOCTOR_ID, DAY, datetime(2024, 6, 1, 12, 0))

    assert result.is_full_day_leave
    assert len(result.slots) == len(DEFAULT_TEMPLATE)
    assert not result.has_bookable_slots
    assert {entry.blocked_reason for entry in result.slots} == {BLOCKED_BY_LEAVE}


def test_full_day_leave_skips_the_booking_lookup() -> None:
    appointments = FakeAppointments()
    resolver = AvailabilityResolver(
        FakeLeaves(LeaveRecord(full_day_leaves=frozenset({DAY}))),
        BookingIndex(appointments),
    )

    resolver.resolve(DOCTOR_ID, DAY, datetime(2024, 6, 1, 12, 0))

    assert appointments.queries == 0


def test_slot_leaves_and_bookings_are_both_blocked() -> None:
    record = LeaveRecord(slot_leaves=MappingProxyType({DAY: frozenset({DEFAULT_TEMPLATE.slot_for('09:00 AM')})}))
    bookings = [_booking('a-1', datetime(2024, 6, 11, 10, 0))]

    result = _resolver(record, bookings).resolve(DOCTOR_ID, DAY, datetime(2024, 6, 1, 12, 0))

    nine = result.entry_for(DEFAULT_TEMPLATE.slot_for('09:00 AM'))
    ten = result.entry_for(DEFAULT_TEMPLATE.slot_for('10:00 AM'))
    assert (nine.is_bookable, nine.blocked_reason) == (False, BLOCKED_BY_LEAVE)
    assert (ten.is_bookable, ten.blocked_reason) == (False, BLOCKED_BY_BOOKING)
    assert len(result.bookable_slots) == len(DEFAULT_TEMPLATE) - 2


def test_slot_leaves_on_other_days_do_not_leak() -> None:
    record = LeaveRecord(slot_leaves=MappingProxyType({date(2024, 6, 12): frozenset(DEFAULT_TEMPLATE.all_slots())}))

    result = _resolver(record).resolve(DOCTOR_ID, DAY, datetime(2024, 6, 1, 12, 0))

    assert len(result.bookable_slots) == len(DEFAULT_TEMPLATE)


@pytest.mark.parametrize(
    ('status', 'occupies'),
    [
        (AppointmentStatus.SCHEDULED, True),
        (AppointmentStatus.RESCHEDULED, True),
        (AppointmentStatus.IN_PROGRESS, True),
        (AppointmentStatus.COMPLETED, False),
        (AppointmentStatus.CANCELLED, False),
        (AppointmentStatus.NO_SHOW, False),
    ],
)
def test_only_active_statuses_occupy_a_slot(status: AppointmentStatus, occupies: bool) -> None:
    bookings = [_booking('a-1', datetime(2024, 6, 11, 15, 0), status=status)]

    result = _resolver(appointments=bookings).resolve(DOCTOR_ID, DAY, datetime(2024, 6, 1, 12, 0))

    assert result.is_bookable(DEFAULT_TEMPLATE.slot_for('03:00 PM')) is not occupies


def test_bookings_for_other_doctors_are_ignored() -> None:
    bookings = [_booking('a-1', datetime(2024, 6, 11, 15, 0), doctor_id='doctor-2')]

    result = _resolver(appointments=bookings).resolve(DOCTOR_ID, DAY, datetime(2024, 6, 1, 12, 0))

    assert result.is_bookable(DEFAULT_TEMPLATE.slot_for('03:00 PM'))


def test_excluded_appointment_does_not_block_its_slot() -> None:
    bookings = [_booking('a-1', datetime(2024, 6, 11, 15, 0))]

    result = _resolver(appointments=bookings).resolve(
        DOCTOR_ID,
        DAY,
        datetime(2024, 6, 1, 12, 0),
        exclude_appointment_id='a-1',
    )

    assert result.is_bookable(DEFAULT_TEMPLATE.slot_for('03:00 PM'))


def test_off_grid_booking_blocks_every_overlapped_slot() -> None:
    booked = occupied_slots([_booking('a-1', datetime(2024, 6, 11, 9, 15))])

    assert booked == frozenset({DEFAULT_TEMPLATE.slot_for('09:00 AM'), DEFAULT_TEMPLATE.slot_for('09:30 AM')})


def test_same_day_buffer_boundary() -> None:
    template = SlotTemplate.from_times(['10:15', '10:30', '10:31', '11:00'], slot_duration_minutes=15)
    resolver = _resolver(template=template)

    result = resolver.resolve(DOCTOR_ID, DAY, datetime(2024, 6, 11, 10, 0))

    bookable = {entry.slot.label: entry.is_bookable for entry in result.slots}
    assert bookable == {
        '10:15 AM': False,
        '10:30 AM': False,
        '10:31 AM': True,
        '11:00 AM': True,
    }
    assert result.entry_for(template.slot_for('10:15')).blocked_reason == BLOCKED_TOO_SOON


def test_same_day_buffer_hides_slots_within_thirty_minutes_of_now() -> None:
    template = SlotTemplate.from_times(['09:45', '10:00', '10:14', '10:16', '10:30'], slot_duration_minutes=15)

    result = _resolver(template=template).resolve(DOCTOR_ID, DAY, datetime(2024, 6, 11, 9, 45))

    assert [slot.label for slot in result.bookable_slots] == ['10:16 AM', '10:30 AM']


def test_buffer_does_not_apply_to_other_days() -> None:
    result = _resolver().resolve(DOCTOR_ID, DAY, datetime(2024, 6, 10, 17, 50))

    assert len(result.bookable_slots) == len(DEFAULT_TEMPLATE)


def test_past_dates_are_not_special_cased() -> None:
    result = _resolver().resolve(DOCTOR_ID, date(2024, 6, 1), datetime(2024, 6, 11, 12, 0))

    assert len(result.bookable_slots) == len(DEFAULT_TEMPLATE)


def test_store_failure_propagates_instead_of_returning_all_slots() -> None:
    resolver = AvailabilityResolver(
        FakeLeaves(error=DataUnavailable('Could not load the doctor schedule.')),
        BookingIndex(FakeAppointments()),
    )

    with pytest.raises(DataUnavailable):
        resolver.resolve(DOCTOR_ID, DAY, datetime(2024, 6, 1, 12, 0))
