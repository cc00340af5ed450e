"""Availability resolution shared by booking, rescheduling and the slot manager."""

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Protocol

from hms_scheduling.core import config
from hms_scheduling.scheduling.booking_index import BookingIndex
from hms_scheduling.scheduling.leave_calendar import LeaveCalendar, LeaveRecord
from hms_scheduling.scheduling.slot_template import DEFAULT_TEMPLATE, SlotTemplate, TimeSlot

BLOCKED_BY_LEAVE = 'leave'
BLOCKED_BY_BOOKING = 'booked'
BLOCKED_TOO_SOON = 'too_soon'


@dataclass(frozen=True)
class SlotAvailability:
    slot: TimeSlot
    is_bookable: bool
    blocked_reason: str | None = None


@dataclass(frozen=True)
class AvailabilityResult:
    doctor_id: str
    date: date
    is_full_day_leave: bool
    slots: tuple[SlotAvailability, ...]

    @property
    def bookable_slots(self) -> tuple[TimeSlot, ...]:
        return tuple(entry.slot for entry in self.slots if entry.is_bookable)

    @property
    def has_bookable_slots(self) -> bool:
        return any(entry.is_bookable for entry in self.slots)

    def is_bookable(self, slot: TimeSlot) -> bool:
        return any(entry.slot == slot and entry.is_bookable for entry in self.slots)

    def entry_for(self, slot: TimeSlot) -> SlotAvailability | None:
        for entry in self.slots:
            if entry.slot == slot:
                return entry
        return None


class LeaveSource(Protocol):
    def get_doctor_schedule(self, doctor_id: str) -> LeaveRecord:
        ...


def resolve_slots(
    template: SlotTemplate,
    calendar: LeaveCalendar,
    booked: frozenset[TimeSlot],
    day: date,
    now: datetime,
    buffer_minutes: int = config.SAME_DAY_BUFFER_MINUTES,
) -> tuple[bool, tuple[SlotAvailability, ...]]:
    if calendar.is_full_day_blocked(day):
        return True, tuple(
            SlotAvailability(slot=slot, is_bookable=False, blocked_reason=BLOCKED_BY_LEAVE)
            for slot in template.all_slots()
        )

    on_leave = calendar.blocked_slots(day)
    cutoff = now + timedelta(minutes=buffer_minutes) if day == now.date() else None

    entries = []
    for slot in template.all_slots():
        if slot in on_leave:
            reason = BLOCKED_BY_LEAVE
        elif slot in booked:
            reason = BLOCKED_BY_BOOKING
        elif cutoff is not None and slot.on(day) <= cutoff:
            reason = BLOCKED_TOO_SOON
        else:
            reason = None
        entries.append(SlotAvailability(slot=slot, is_bookable=reason is None, blocked_reason=reason))

    return False, tuple(entries)


class AvailabilityResolver:
    """Read-only view over a doctor's leaves and bookings.

    Store failures propagate as ``DataUnavailable``/``InvalidSchedule``; a day
    with nothing bookable is a normal result, never an error.
    """

    def __init__(
        self,
        leaves: LeaveSource,
        bookings: BookingIndex,
        template: SlotTemplate = DEFAULT_TEMPLATE,
        buffer_minutes: int = config.SAME_DAY_BUFFER_MINUTES,
    ):
        self.leaves = leaves
        self.bookings = bookings
        self.template = template
        self.buffer_minutes = buffer_minutes

    def leave_calendar(self, doctor_id: str) -> LeaveCalendar:
        return LeaveCalendar.from_record(self.leaves.get_doctor_schedule(doctor_id), template=self.template)

    def resolve(
        self,
        doctor_id: str,
        day: date,
        now: datetime,
        exclude_appointment_id: str | None = None,
    ) -> AvailabilityResult:
        calendar = self.leave_calendar(doctor_id)

        if calendar.is_full_day_blocked(day):
            booked = frozenset()
        else:
            booked = self.bookings.booked_slots(doctor_id, day, exclude_appointment_id=exclude_appointment_id)

        is_full_day_leave, entries = resolve_slots(
            self.template,
            calendar,
            booked,
            day,
            now,
            buffer_minutes=self.buffer_minutes,
        )
        return AvailabilityResult(
            doctor_id=doctor_id,
            date=day,
            is_full_day_leave=is_full_day_leave,
            slots=entries,
        )
