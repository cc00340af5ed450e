"""Canonical catalog of bookable time-of-day slots.

Every doctor shares the same template. Slots are identified by their start
minute (``sort_key``); labels are only for display, so ``"9:00 AM"``,
``"09:00 AM"`` and ``"09:00"`` all resolve to the same slot.
"""

import enum
from dataclasses import dataclass, field
from datetime import datetime, time
from typing import Iterable

from hms_scheduling.core import config
from hms_scheduling.scheduling.errors import UnknownSlot

LABEL_FORMAT = '%I:%M %p'
ACCEPTED_LABEL_FORMATS = ('%I:%M %p', '%I:%M%p', '%H:%M')
NOON_MINUTES = 12 * 60


class TimeOfDay(str, enum.Enum):
    MORNING = 'morning'
    AFTERNOON = 'afternoon'


@dataclass(frozen=True, order=True)
class TimeSlot:
    sort_key: int
    label: str = field(compare=False)
    time_of_day: TimeOfDay = field(compare=False)

    @classmethod
    def at(cls, hour: int, minute: int = 0) -> 'TimeSlot':
        sort_key = hour * 60 + minute
        return cls(
            sort_key=sort_key,
            label=format_label(sort_key),
            time_of_day=TimeOfDay.MORNING if sort_key < NOON_MINUTES else TimeOfDay.AFTERNOON,
        )

    @property
    def start(self) -> time:
        return time(self.sort_key // 60, self.sort_key % 60)

    def on(self, day) -> datetime:
        return datetime.combine(day, self.start)


def format_label(minutes: int) -> str:
    return time(minutes // 60, minutes % 60).strftime(LABEL_FORMAT)


def parse_minutes(value) -> int:
    """Turn a slot-ish value into minutes from midnight.

    Accepts a ``TimeSlot``, ``datetime``, ``time``, an int, or a label string.
    """
    if isinstance(value, TimeSlot):
        return value.sort_key
    if isinstance(value, datetime):
        return value.hour * 60 + value.minute
    if isinstance(value, time):
        return value.hour * 60 + value.minute
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        normalized = ' '.join(value.strip().upper().split())
        for label_format in ACCEPTED_LABEL_FORMATS:
            try:
                parsed = datetime.strptime(normalized, label_format)
            except ValueError:
                continue
            return parsed.hour * 60 + parsed.minute
        raise UnknownSlot(f'Unrecognized time slot: {value!r}.')

    raise UnknownSlot(f'Unsupported time slot value: {value!r}.')


class SlotTemplate:
    def __init__(self, slots: Iterable[TimeSlot], slot_duration_minutes: int = config.SLOT_DURATION_MINUTES):
        ordered = tuple(sorted(set(slots)))
        if not ordered:
            raise ValueError('A slot template needs at least one slot.')
        if slot_duration_minutes <= 0:
            raise ValueError('Slot duration must be positive.')

        self._slots = ordered
        self._by_minutes = {slot.sort_key: slot for slot in ordered}
        self.slot_duration_minutes = slot_duration_minutes

    @classmethod
    def from_times(cls, times: Iterable[str], slot_duration_minutes: int = config.SLOT_DURATION_MINUTES) -> 'SlotTemplate':
        slots = []
        for value in times:
            minutes = parse_minutes(value)
            slots.append(TimeSlot.at(minutes // 60, minutes % 60))
        return cls(slots, slot_duration_minutes)

    def all_slots(self) -> tuple[TimeSlot, ...]:
        return self._slots

    def morning_slots(self) -> tuple[TimeSlot, ...]:
        return tuple(slot for slot in self._slots if slot.time_of_day is TimeOfDay.MORNING)

    def afternoon_slots(self) -> tuple[TimeSlot, ...]:
        return tuple(slot for slot in self._slots if slot.time_of_day is TimeOfDay.AFTERNOON)

    def slot_for(self, value) -> TimeSlot:
        minutes = parse_minutes(value)
        try:
            return self._by_minutes[minutes]
        except KeyError:
            raise UnknownSlot(f'{format_label(minutes % (24 * 60))} is not a bookable time slot.') from None

    def slots_overlapping(self, start_minutes: int, duration_minutes: int) -> tuple[TimeSlot, ...]:
        end_minutes = start_minutes + max(duration_minutes, 1)
        return tuple(
            slot
            for slot in self._slots
            if slot.sort_key < end_minutes and slot.sort_key + self.slot_duration_minutes > start_minutes
        )

    def __contains__(self, value) -> bool:
        try:
            self.slot_for(value)
        except UnknownSlot:
            return False
        return True

    def __iter__(self):
        return iter(self._slots)

    def __len__(self) -> int:
        return len(self._slots)


DEFAULT_TEMPLATE = SlotTemplate.from_times([
    '09:00 AM', '09:30 AM', '10:00 AM',
    '10:30 AM', '11:00 AM', '11:30 AM',
    '03:00 PM', '03:30 PM', '04:00 PM',
    '04:30 PM', '05:00 PM', '05:30 PM',
])
