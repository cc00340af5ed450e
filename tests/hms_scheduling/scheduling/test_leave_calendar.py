from datetime import date
from types import MappingProxyType

import pytest

from hms_scheduling.scheduling.errors import UnknownSlot
from hms_scheduling.scheduling.leave_calendar import LeaveCalendar, LeaveRecord
from hms_scheduling.scheduling.slot_template import DEFAULT_TEMPLATE

LEAVE_DAY = date(2024, 6, 10)
OTHER_DAY = date(2024, 6, 11)


def _slots(*labels):
    return frozenset(DEFAULT_TEMPLATE.slot_for(label) for label in labels)


def test_new_calendar_blocks_nothing() -> None:
    calendar = LeaveCalendar()

    assert not calendar.is_full_day_blocked(LEAVE_DAY)
    assert calendar.blocked_slots(LEAVE_DAY) == frozenset()
    assert not calendar.can_undo
    assert not calendar.has_unsaved_changes


def test_full_day_leave_blocks_every_slot() -> None:
    calendar = LeaveCalendar()

    calendar.toggle_full_day(LEAVE_DAY)

    assert calendar.is_full_day_blocked(LEAVE_DAY)
    assert calendar.blocked_slots(LEAVE_DAY) == frozenset(DEFAULT_TEMPLATE.all_slots())
    assert calendar.explicit_slot_leaves(LEAVE_DAY) == frozenset(DEFAULT_TEMPLATE.all_slots())
    assert calendar.blocked_slots(OTHER_DAY) == frozenset()


def test_full_day_leave_wins_over_explicit_slot_leaves() -> None:
    record = LeaveRecord(
        full_day_leaves=frozenset({LEAVE_DAY}),
        slot_leaves=MappingProxyType({LEAVE_DAY: _slots('09:00 AM')}),
    )

    calendar = LeaveCalendar.from_record(record)

    assert calendar.blocked_slots(LEAVE_DAY) == frozenset(DEFAULT_TEMPLATE.all_slots())


def test_toggle_slot_flips_membership_and_prunes_empty_days() -> None:
    calendar = LeaveCalendar()

    calendar.toggle_slot(LEAVE_DAY, '10:00 AM')
    assert calendar.blocked_slots(LEAVE_DAY) == _slots('10:00 AM')

    calendar.toggle_slot(LEAVE_DAY, '10:00 AM')
    assert calendar.blocked_slots(LEAVE_DAY) == frozenset()
    assert LEAVE_DAY not in calendar.to_record().slot_leaves


def test_toggle_slot_does_not_touch_full_day_status() -> None:
    calendar = LeaveCalendar()
    calendar.toggle_full_day(LEAVE_DAY)

    calendar.toggle_slot(LEAVE_DAY, '09:00 AM')

    assert calendar.is_full_day_blocked(LEAVE_DAY)
    assert calendar.blocked_slots(LEAVE_DAY) == frozenset(DEFAULT_TEMPLATE.all_slots())
    assert DEFAULT_TEMPLATE.slot_for('09:00 AM') not in calendar.explicit_slot_leaves(LEAVE_DAY)


def test_toggle_slot_rejects_unknown_times() -> None:
    calendar = LeaveCalendar()

    with pytest.raises(UnknownSlot):
        calendar.toggle_slot(LEAVE_DAY, '01:00 PM')

    assert not calendar.can_undo


def test_block_morning_and_afternoon_add_to_existing_leaves() -> None:
    calendar = LeaveCalendar()
    calendar.toggle_slot(LEAVE_DAY, '03:00 PM')

    calendar.block_morning(LEAVE_DAY)

    assert calendar.blocked_slots(LEAVE_DAY) == frozenset(DEFAULT_TEMPLATE.morning_slots()) | _slots('03:00 PM')

    calendar.block_afternoon(LEAVE_DAY)

    assert calendar.blocked_slots(LEAVE_DAY) == frozenset(DEFAULT_TEMPLATE.all_slots())
    assert not calendar.is_full_day_blocked(LEAVE_DAY)


def test_clear_removes_full_day_and_slot_leaves() -> None:
    calendar = LeaveCalendar()
    calendar.toggle_full_day(LEAVE_DAY)

    calendar.clear(LEAVE_DAY)

    assert not calendar.is_full_day_blocked(LEAVE_DAY)
    assert calendar.blocked_slots(LEAVE_DAY) == frozenset()
    assert calendar.to_record().is_empty()


def test_second_full_day_toggle_clears_instead_of_restoring_explicit_leaves() -> None:
    calendar = LeaveCalendar()
    calendar.toggle_slot(LEAVE_DAY, '09:00 AM')
    calendar.toggle_slot(LEAVE_DAY, '09:30 AM')

    calendar.toggle_full_day(LEAVE_DAY)
    calendar.toggle_full_day(LEAVE_DAY)

    assert not calendar.is_full_day_blocked(LEAVE_DAY)
    assert calendar.blocked_slots(LEAVE_DAY) == frozenset()


def test_undoing_full_day_toggle_restores_explicit_leaves() -> None:
    calendar = LeaveCalendar()
    calendar.toggle_slot(LEAVE_DAY, '09:00 AM')
    calendar.toggle_slot(LEAVE_DAY, '09:30 AM')

    calendar.toggle_full_day(LEAVE_DAY)
    assert calendar.undo()

    assert not calendar.is_full_day_blocked(LEAVE_DAY)
    assert calendar.blocked_slots(LEAVE_DAY) == _slots('09:00 AM', '09:30 AM')


def test_undo_after_toggle_slot_restores_previous_set() -> None:
    calendar = LeaveCalendar()
    calendar.block_morning(LEAVE_DAY)
    before = calendar.blocked_slots(LEAVE_DAY)

    calendar.toggle_slot(LEAVE_DAY, '10:30 AM')
    assert calendar.undo()

    assert calendar.blocked_slots(LEAVE_DAY) == before


def test_undo_reverses_full_day_removal() -> None:
    calendar = LeaveCalendar.from_record(LeaveRecord(full_day_leaves=frozenset({LEAVE_DAY})))

    calendar.toggle_full_day(LEAVE_DAY)
    assert not calendar.is_full_day_blocked(LEAVE_DAY)

    calendar.undo()
    assert calendar.is_full_day_blocked(LEAVE_DAY)


def test_undo_reverses_clear_of_full_day_leave() -> None:
    calendar = LeaveCalendar()
    calendar.toggle_full_day(LEAVE_DAY)
    calendar.clear(LEAVE_DAY)

    calendar.undo()

    assert calendar.is_full_day_blocked(LEAVE_DAY)


def test_only_one_level_of_undo_is_kept_by_default() -> None:
    calendar = LeaveCalendar()
    calendar.toggle_slot(LEAVE_DAY, '09:00 AM')
    calendar.toggle_slot(OTHER_DAY, '09:00 AM')

    assert calendar.undo()
    assert not calendar.undo()

    assert calendar.blocked_slots(OTHER_DAY) == frozenset()
    assert calendar.blocked_slots(LEAVE_DAY) == _slots('09:00 AM')


def test_deeper_undo_history_when_configured() -> None:
    calendar = LeaveCalendar(undo_depth=3)
    calendar.toggle_slot(LEAVE_DAY, '09:00 AM')
    calendar.toggle_slot(LEAVE_DAY, '09:30 AM')
    calendar.toggle_full_day(OTHER_DAY)

    assert calendar.undo()
    assert calendar.undo()
    assert calendar.undo()
    assert not calendar.undo()

    assert calendar.to_record().is_empty()


def test_last_edit_names_the_action() -> None:
    calendar = LeaveCalendar()

    calendar.block_afternoon(LEAVE_DAY)

    assert calendar.last_edit.action == 'block_afternoon'
    assert calendar.last_edit.day == LEAVE_DAY


def test_mark_saved_drops_undo_history() -> None:
    calendar = LeaveCalendar()
    calendar.toggle_full_day(LEAVE_DAY)

    calendar.mark_saved()

    assert not calendar.can_undo
    assert not calendar.has_unsaved_changes
    assert calendar.is_full_day_blocked(LEAVE_DAY)


def test_undo_back_to_the_loaded_state_has_nothing_to_save() -> None:
    calendar = LeaveCalendar()
    calendar.toggle_slot(LEAVE_DAY, '09:00 AM')

    calendar.undo()

    assert not calendar.has_unsaved_changes


def test_undo_after_an_earlier_edit_still_has_changes_to_save() -> None:
    calendar = LeaveCalendar()
    calendar.toggle_slot(LEAVE_DAY, '09:00 AM')
    calendar.toggle_slot(OTHER_DAY, '03:00 PM')

    calendar.undo()

    assert calendar.has_unsaved_changes
    assert calendar.blocked_slots(LEAVE_DAY) == _slots('09:00 AM')


def test_undo_after_save_and_edit_returns_to_saved_state() -> None:
    calendar = LeaveCalendar()
    calendar.toggle_full_day(LEAVE_DAY)
    calendar.mark_saved()
    calendar.block_morning(OTHER_DAY)

    calendar.undo()

    assert not calendar.has_unsaved_changes
    assert calendar.is_full_day_blocked(LEAVE_DAY)


def test_round_trip_through_record() -> None:
    calendar = LeaveCalendar()
    calendar.toggle_full_day(LEAVE_DAY)
    calendar.toggle_slot(OTHER_DAY, '04:00 PM')

    restored = LeaveCalendar.from_record(calendar.to_record())

    assert restored.is_full_day_blocked(LEAVE_DAY)
    assert restored.blocked_slots(OTHER_DAY) == _slots('04:00 PM')
