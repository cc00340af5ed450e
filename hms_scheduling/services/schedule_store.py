"""Doctor leave documents stored in the ``doctor_schedules`` table.

The document keeps the shape the mobile clients already write::

    {"full_day_leaves": ["2024-06-10"], "leave_time_slots": ["2024-06-11T09:30:00"]}

Each leave time is split back into ``(date, slot)`` by its minute of day.
"""

import logging
import time
from datetime import date, datetime
from threading import Lock
from types import MappingProxyType

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from hms_scheduling.core import config
from hms_scheduling.models.doctor_schedule import DoctorSchedule
from hms_scheduling.scheduling.errors import DataUnavailable, InvalidSchedule, UnknownSlot
from hms_scheduling.scheduling.leave_calendar import LeaveRecord
from hms_scheduling.scheduling.slot_template import DEFAULT_TEMPLATE, SlotTemplate

logger = logging.getLogger(__name__)


class ScheduleCache:
    """Read-through cache of leave records, dropped on every successful write.

    Each doctor has a generation that ``invalidate`` bumps. A reader takes the
    generation before querying, and ``put`` discards its record when a write
    landed in between. Entries also expire after ``ttl_seconds`` so writes
    made by other worker processes are picked up.
    """

    def __init__(self, ttl_seconds: float = config.SCHEDULE_CACHE_TTL_SECONDS, clock=time.monotonic):
        self._lock = Lock()
        self._records: dict[str, tuple[LeaveRecord, float]] = {}
        self._generations: dict[str, int] = {}
        self.ttl_seconds = ttl_seconds
        self._clock = clock

    def get(self, doctor_id: str) -> LeaveRecord | None:
        with self._lock:
            entry = self._records.get(doctor_id)
            if entry is None:
                return None
            record, stored_at = entry
            if self._clock() - stored_at >= self.ttl_seconds:
                del self._records[doctor_id]
                return None
            return record

    def generation(self, doctor_id: str) -> int:
        with self._lock:
            return self._generations.get(doctor_id, 0)

    def put(self, doctor_id: str, record: LeaveRecord, generation: int | None = None) -> bool:
        with self._lock:
            if generation is not None and generation != self._generations.get(doctor_id, 0):
                return False
            self._records[doctor_id] = (record, self._clock())
            return True

    def invalidate(self, doctor_id: str) -> None:
        with self._lock:
            self._generations[doctor_id] = self._generations.get(doctor_id, 0) + 1
            self._records.pop(doctor_id, None)

    def clear(self) -> None:
        with self._lock:
            self._records.clear()


def _parse_leave_day(value) -> date:
    # Older documents store full day leaves as midnight datetimes.
    text = str(value)
    try:
        return date.fromisoformat(text)
    except ValueError:
        return datetime.fromisoformat(text).date()


def decode_schedule(full_day_leaves, leave_time_slots, template: SlotTemplate = DEFAULT_TEMPLATE) -> LeaveRecord:
    if full_day_leaves is None:
        full_day_leaves = []
    if leave_time_slots is None:
        leave_time_slots = []
    if not isinstance(full_day_leaves, list) or not isinstance(leave_time_slots, list):
        raise InvalidSchedule('Schedule leaves must be stored as lists.')

    try:
        full_days = frozenset(_parse_leave_day(value) for value in full_day_leaves)
    except ValueError as exc:
        raise InvalidSchedule(f'Unreadable full day leave: {exc}') from exc

    slot_leaves: dict[date, set] = {}
    for value in leave_time_slots:
        try:
            leave_time = datetime.fromisoformat(str(value))
            slot = template.slot_for(leave_time)
        except ValueError as exc:
            raise InvalidSchedule(f'Unreadable leave time slot {value!r}: {exc}') from exc
        except UnknownSlot as exc:
            raise InvalidSchedule(f'Leave time {value!r} does not match a time slot.') from exc
        slot_leaves.setdefault(leave_time.date(), set()).add(slot)

    return LeaveRecord(
        full_day_leaves=full_days,
        slot_leaves=MappingProxyType({day: frozenset(slots) for day, slots in slot_leaves.items()}),
    )


def encode_schedule(record: LeaveRecord) -> tuple[list[str], list[str]]:
    full_day_leaves = sorted(day.isoformat() for day in record.full_day_leaves)
    leave_time_slots = sorted(
        slot.on(day).isoformat()
        for day, slots in record.slot_leaves.items()
        for slot in slots
    )
    return full_day_leaves, leave_time_slots


class ScheduleStore:
    def __init__(self, db: Session, template: SlotTemplate = DEFAULT_TEMPLATE, cache: ScheduleCache | None = None):
        self.db = db
        self.template = template
        self.cache = cache

    def get_doctor_schedule(self, doctor_id: str) -> LeaveRecord:
        generation = None
        if self.cache is not None:
            cached = self.cache.get(doctor_id)
            if cached is not None:
                return cached
            generation = self.cache.generation(doctor_id)

        try:
            document = self.db.query(DoctorSchedule).filter(DoctorSchedule.doctor_id == doctor_id).first()
        except SQLAlchemyError as exc:
            logger.exception('Failed to load schedule for doctor %s.', doctor_id)
            raise DataUnavailable('Could not load the doctor schedule.') from exc

        if document is None:
            record = LeaveRecord()
        else:
            record = decode_schedule(document.full_day_leaves, document.leave_time_slots, self.template)

        if self.cache is not None and not self.cache.put(doctor_id, record, generation):
            logger.info('Schedule for doctor %s changed while loading; not caching the old copy.', doctor_id)
        return record

    def set_doctor_schedule(self, doctor_id: str, record: LeaveRecord) -> None:
        full_day_leaves, leave_time_slots = encode_schedule(record)

        try:
            document = self.db.query(DoctorSchedule).filter(DoctorSchedule.doctor_id == doctor_id).first()
            if document is None:
                document = DoctorSchedule(doctor_id=doctor_id)
                self.db.add(document)

            document.full_day_leaves = full_day_leaves
            document.leave_time_slots = leave_time_slots
            document.updated_at = datetime.now()
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception('Failed to save schedule for doctor %s.', doctor_id)
            raise DataUnavailable('Could not save the doctor schedule.') from exc

        if self.cache is not None:
            self.cache.invalidate(doctor_id)

        logger.info(
            'Saved schedule for doctor %s: %d full day leaves, %d leave slots.',
            doctor_id,
            len(full_day_leaves),
            len(leave_time_slots),
        )
