from datetime import date, datetime

from hms_scheduling.scheduling.availability import BLOCKED_BY_BOOKING, BLOCKED_BY_LEAVE, AvailabilityResolver
from hms_scheduling.scheduling.booking_index import BookedAppointment
from hms_scheduling.scheduling.errors import PastDate, SlotUnavailable


class ReschedulePolicy:
    def __init__(self, resolver: AvailabilityResolver):
        self.resolver = resolver

    def validate(
        self,
        doctor_id: str,
        current_appointment: BookedAppointment,
        new_date: date,
        new_slot,
        now: datetime,
        confirm_same_slot: bool = False,
    ) -> datetime:
        """Check a move of ``current_appointment`` and return its new start.

        Keeping the same date and slot is rejected unless ``confirm_same_slot``
        is set.
        """
        template = self.resolver.template
        slot = template.slot_for(new_slot)
        new_start = slot.on(new_date)

        if new_start <= now:
            raise PastDate('Appointments can only be moved to a time in the future.')

        current_slot = template.slot_for(current_appointment.start_time) if current_appointment.start_time in template else None
        is_same_slot = current_appointment.date == new_date and current_slot == slot
        if is_same_slot and not confirm_same_slot:
            raise SlotUnavailable('The appointment is already booked for this time.')

        result = self.resolver.resolve(
            doctor_id,
            new_date,
            now,
            exclude_appointment_id=current_appointment.appointment_id,
        )
        entry = result.entry_for(slot)
        if entry is None or not entry.is_bookable:
            reason = entry.blocked_reason if entry else None
            if reason == BLOCKED_BY_LEAVE:
                raise SlotUnavailable(f'The doctor is on leave at {slot.label} on {new_date.isoformat()}.')
            if reason == BLOCKED_BY_BOOKING:
                raise SlotUnavailable(f'{slot.label} on {new_date.isoformat()} is already booked.')
            raise SlotUnavailable(f'{slot.label} on {new_date.isoformat()} is too soon to book.')

        return new_start
