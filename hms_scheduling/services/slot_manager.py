"""Doctor-side editing sessions over a leave calendar.

A session is opened when the doctor enters the slot manager: it loads the
stored schedule into a ``LeaveCalendar``, applies edits in memory, and only
writes back on ``save``. Discarding the session drops unsaved edits and the
undo buffer.
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from threading import Lock

from hms_scheduling.core import config
from hms_scheduling.scheduling.errors import SchedulingError
from hms_scheduling.scheduling.leave_calendar import LeaveCalendar
from hms_scheduling.scheduling.slot_template import DEFAULT_TEMPLATE, SlotTemplate
from hms_scheduling.services.schedule_store import ScheduleStore

logger = logging.getLogger(__name__)

SLOT_ACTIONS = ('toggle_full_day', 'toggle_slot', 'block_morning', 'block_afternoon', 'clear', 'undo')


class SessionNotFound(SchedulingError):
    """The editing session expired, was discarded, or belongs to another doctor."""


@dataclass
class SlotManagerSession:
    doctor_id: str
    calendar: LeaveCalendar
    session_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    last_used: datetime = field(default_factory=datetime.now)
    # Held for every read or write of the calendar; requests share the session.
    lock: Lock = field(default_factory=Lock, repr=False, compare=False)

    def apply(self, action: str, day: date | None = None, slot=None) -> bool:
        """Run one slot-manager action; returns False only for an empty undo."""
        with self.lock:
            return self._apply(action, day, slot)

    def _apply(self, action: str, day: date | None, slot) -> bool:
        if action == 'undo':
            return self.calendar.undo()

        if day is None:
            raise ValueError(f'{action} needs a date.')

        if action == 'toggle_full_day':
            self.calendar.toggle_full_day(day)
        elif action == 'toggle_slot':
            if slot is None:
                raise ValueError('toggle_slot needs a slot.')
            self.calendar.toggle_slot(day, slot)
        elif action == 'block_morning':
            self.calendar.block_morning(day)
        elif action == 'block_afternoon':
            self.calendar.block_afternoon(day)
        elif action == 'clear':
            self.calendar.clear(day)
        else:
            raise ValueError(f'Unknown slot manager action: {action}.')
        return True

    def save(self, store: ScheduleStore) -> None:
        # On failure the calendar keeps its edits so the doctor can retry.
        with self.lock:
            store.set_doctor_schedule(self.doctor_id, self.calendar.to_record())
            self.calendar.mark_saved()


class SlotManagerRegistry:
    def __init__(self, ttl_minutes: int = config.SLOT_MANAGER_SESSION_TTL_MINUTES):
        self._lock = Lock()
        self._sessions: dict[str, SlotManagerSession] = {}
        self.ttl = timedelta(minutes=ttl_minutes)

    def open(
        self,
        doctor_id: str,
        store: ScheduleStore,
        template: SlotTemplate = DEFAULT_TEMPLATE,
        now: datetime | None = None,
    ) -> SlotManagerSession:
        record = store.get_doctor_schedule(doctor_id)
        session = SlotManagerSession(
            doctor_id=doctor_id,
            calendar=LeaveCalendar.from_record(record, template=template),
            last_used=now or datetime.now(),
        )

        with self._lock:
            self._purge_expired(session.last_used)
            self._sessions[session.session_id] = session

        logger.info('Opened slot manager session %s for doctor %s.', session.session_id, doctor_id)
        return session

    def get(self, doctor_id: str, session_id: str, now: datetime | None = None) -> SlotManagerSession:
        now = now or datetime.now()
        with self._lock:
            self._purge_expired(now)
            session = self._sessions.get(session_id)
            if session is None or session.doctor_id != doctor_id:
                raise SessionNotFound('Slot manager session not found.')
            session.last_used = now
            return session

    def discard(self, doctor_id: str, session_id: str) -> None:
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None or session.doctor_id != doctor_id:
                raise SessionNotFound('Slot manager session not found.')
            del self._sessions[session_id]

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def _purge_expired(self, now: datetime) -> None:
        expired = [
            session_id
            for session_id, session in self._sessions.items()
            if now - session.last_used > self.ttl
        ]
        for session_id in expired:
            logger.info('Discarding idle slot manager session %s.', session_id)
            del self._sessions[session_id]
