"""Per-doctor leave calendar edited through the slot manager.

A date is either a full-day leave (nothing bookable) or carries a set of
individually blocked slots. Mutations are in memory only; persisting the
resulting ``LeaveRecord`` is the caller's job.
"""

from collections import deque
from dataclasses import dataclass, field
from datetime import date
from types import MappingProxyType
from typing import Iterable, Mapping

from hms_scheduling.core import config
from hms_scheduling.scheduling.slot_template import DEFAULT_TEMPLATE, SlotTemplate, TimeSlot


@dataclass(frozen=True)
class LeaveRecord:
    full_day_leaves: frozenset[date] = frozenset()
    slot_leaves: Mapping[date, frozenset[TimeSlot]] = field(default_factory=lambda: MappingProxyType({}))

    def is_empty(self) -> bool:
        return not self.full_day_leaves and not self.slot_leaves


@dataclass(frozen=True)
class _DayState:
    full_day: bool
    slots: frozenset[TimeSlot]


@dataclass(frozen=True)
class LeaveEdit:
    """One applied mutation and the state needed to invert it."""

    action: str
    day: date
    before: _DayState
    after: _DayState
    unsaved_before: bool = True


class LeaveCalendar:
    def __init__(
        self,
        template: SlotTemplate = DEFAULT_TEMPLATE,
        record: LeaveRecord | None = None,
        undo_depth: int = config.UNDO_DEPTH,
    ):
        self.template = template
        self._full_day_leaves: set[date] = set()
        self._slot_leaves: dict[date, set[TimeSlot]] = {}
        self._history: deque[LeaveEdit] = deque(maxlen=max(undo_depth, 1))
        self._unsaved_changes = False

        if record is not None:
            self._full_day_leaves.update(record.full_day_leaves)
            for day, slots in record.slot_leaves.items():
                if slots:
                    self._slot_leaves[day] = {self.template.slot_for(slot) for slot in slots}

    @classmethod
    def from_record(cls, record: LeaveRecord, template: SlotTemplate = DEFAULT_TEMPLATE, **kwargs) -> 'LeaveCalendar':
        return cls(template=template, record=record, **kwargs)

    def to_record(self) -> LeaveRecord:
        return LeaveRecord(
            full_day_leaves=frozenset(self._full_day_leaves),
            slot_leaves=MappingProxyType({
                day: frozenset(slots) for day, slots in self._slot_leaves.items() if slots
            }),
        )

    # Queries

    def is_full_day_blocked(self, day: date) -> bool:
        return day in self._full_day_leaves

    def blocked_slots(self, day: date) -> frozenset[TimeSlot]:
        if self.is_full_day_blocked(day):
            return frozenset(self.template.all_slots())
        return frozenset(self._slot_leaves.get(day, ()))

    def explicit_slot_leaves(self, day: date) -> frozenset[TimeSlot]:
        return frozenset(self._slot_leaves.get(day, ()))

    @property
    def full_day_leaves(self) -> frozenset[date]:
        return frozenset(self._full_day_leaves)

    @property
    def can_undo(self) -> bool:
        return bool(self._history)

    @property
    def has_unsaved_changes(self) -> bool:
        return self._unsaved_changes

    @property
    def last_edit(self) -> LeaveEdit | None:
        return self._history[-1] if self._history else None

    # Mutations

    def toggle_full_day(self, day: date) -> None:
        if self.is_full_day_blocked(day):
            self._apply('toggle_full_day', day, _DayState(full_day=False, slots=frozenset()))
        else:
            self._apply('toggle_full_day', day, _DayState(full_day=True, slots=frozenset(self.template.all_slots())))

    def toggle_slot(self, day: date, slot) -> None:
        slot = self.template.slot_for(slot)
        slots = set(self._slot_leaves.get(day, ()))
        slots.symmetric_difference_update({slot})
        self._apply('toggle_slot', day, _DayState(full_day=self.is_full_day_blocked(day), slots=frozenset(slots)))

    def block_range(self, day: date, slots: Iterable, action: str = 'block_range') -> None:
        blocked = {self.template.slot_for(slot) for slot in slots}
        blocked.update(self._slot_leaves.get(day, ()))
        self._apply(action, day, _DayState(full_day=self.is_full_day_blocked(day), slots=frozenset(blocked)))

    def block_morning(self, day: date) -> None:
        self.block_range(day, self.template.morning_slots(), action='block_morning')

    def block_afternoon(self, day: date) -> None:
        self.block_range(day, self.template.afternoon_slots(), action='block_afternoon')

    def clear(self, day: date) -> None:
        self._apply('clear', day, _DayState(full_day=False, slots=frozenset()))

    def undo(self) -> bool:
        if not self._history:
            return False

        edit = self._history.pop()
        self._write_day(edit.day, edit.before)
        self._unsaved_changes = edit.unsaved_before
        return True

    def mark_saved(self) -> None:
        self._history.clear()
        self._unsaved_changes = False

    def _state_of(self, day: date) -> _DayState:
        return _DayState(full_day=self.is_full_day_blocked(day), slots=self.explicit_slot_leaves(day))

    def _apply(self, action: str, day: date, after: _DayState) -> None:
        self._history.append(LeaveEdit(
            action=action,
            day=day,
            before=self._state_of(day),
            after=after,
            unsaved_before=self._unsaved_changes,
        ))
        self._write_day(day, after)
        self._unsaved_changes = True

    def _write_day(self, day: date, state: _DayState) -> None:
        if state.full_day:
            self._full_day_leaves.add(day)
        else:
            self._full_day_leaves.discard(day)

        if state.slots:
            self._slot_leaves[day] = set(state.slots)
        else:
            self._slot_leaves.pop(day, None)
