"""Booking, rescheduling and status changes, all checked against the resolver."""

import logging
import uuid
from datetime import date, datetime, timedelta

from hms_scheduling.core import config
from hms_scheduling.models.appointment import Appointment, AppointmentStatus
from hms_scheduling.scheduling.availability import AvailabilityResolver
from hms_scheduling.scheduling.errors import (
    AppointmentNotFound,
    InvalidStatusTransition,
    OutsideBookingWindow,
    PastDate,
    SlotUnavailable,
)
from hms_scheduling.scheduling.reschedule import ReschedulePolicy
from hms_scheduling.services.appointment_store import AppointmentStore, to_booked_appointment

logger = logging.getLogger(__name__)

AUTO_CANCEL_REASON = 'Automatically cancelled due to lack of admin confirmation'

ALLOWED_STATUS_TRANSITIONS = {
    AppointmentStatus.SCHEDULED: {
        AppointmentStatus.IN_PROGRESS,
        AppointmentStatus.COMPLETED,
        AppointmentStatus.CANCELLED,
        AppointmentStatus.NO_SHOW,
    },
    AppointmentStatus.RESCHEDULED: {
        AppointmentStatus.IN_PROGRESS,
        AppointmentStatus.COMPLETED,
        AppointmentStatus.CANCELLED,
        AppointmentStatus.NO_SHOW,
    },
    AppointmentStatus.IN_PROGRESS: {
        AppointmentStatus.COMPLETED,
        AppointmentStatus.CANCELLED,
    },
    AppointmentStatus.NO_SHOW: {
        AppointmentStatus.COMPLETED,
        AppointmentStatus.CANCELLED,
    },
    AppointmentStatus.COMPLETED: set(),
    AppointmentStatus.CANCELLED: set(),
}

RESCHEDULABLE_STATUSES = {AppointmentStatus.SCHEDULED, AppointmentStatus.RESCHEDULED}


def check_booking_window(day: date, now: datetime, window_days: int = config.BOOKING_WINDOW_DAYS) -> None:
    if day < now.date():
        raise PastDate('Appointments cannot be booked on a past date.')
    if day > now.date() + timedelta(days=window_days):
        raise OutsideBookingWindow(f'Appointments can only be booked within the next {window_days} days.')


class AppointmentService:
    def __init__(self, store: AppointmentStore, resolver: AvailabilityResolver):
        self.store = store
        self.resolver = resolver
        self.policy = ReschedulePolicy(resolver)

    def _get(self, appointment_id: str) -> Appointment:
        appointment = self.store.get_appointment(appointment_id)
        if appointment is None:
            raise AppointmentNotFound('Appointment not found.')
        return appointment

    def book(
        self,
        *,
        doctor_id: str,
        patient_id: str,
        day: date,
        slot,
        now: datetime,
        reason: str | None = None,
        doctor_name: str | None = None,
        patient_name: str | None = None,
    ) -> Appointment:
        check_booking_window(day, now)

        slot = self.resolver.template.slot_for(slot)
        start_time = slot.on(day)
        if start_time <= now:
            raise PastDate('Appointments must be scheduled in the future.')

        availability = self.resolver.resolve(doctor_id, day, now)
        if not availability.is_bookable(slot):
            raise SlotUnavailable(f'{slot.label} on {day.isoformat()} is not available.')

        appointment = Appointment(
            id=str(uuid.uuid4()),
            patient_id=patient_id,
            patient_name=patient_name,
            doctor_id=doctor_id,
            doctor_name=doctor_name,
            date=day,
            time=slot.label,
            appointment_date_time=start_time,
            duration_minutes=self.resolver.template.slot_duration_minutes,
            status=AppointmentStatus.SCHEDULED.value,
            reason=reason,
            admin_confirmed=False,
        )
        return self.store.write_appointment(appointment)

    def reschedule(
        self,
        appointment_id: str,
        new_date: date,
        new_slot,
        now: datetime,
        confirm_same_slot: bool = False,
    ) -> Appointment:
        appointment = self._get(appointment_id)
        current = to_booked_appointment(appointment)
        if current.status not in RESCHEDULABLE_STATUSES:
            raise InvalidStatusTransition(f'A {current.status.value} appointment cannot be rescheduled.')

        check_booking_window(new_date, now)
        new_start = self.policy.validate(
            appointment.doctor_id,
            current,
            new_date,
            new_slot,
            now,
            confirm_same_slot=confirm_same_slot,
        )
        label = self.resolver.template.slot_for(new_start).label

        logger.info('Rescheduling appointment %s to %s.', appointment_id, new_start.isoformat())
        return self.store.update_appointment_date_time(appointment, new_start, label)

    def update_status(self, appointment_id: str, status: AppointmentStatus, reason: str | None = None) -> Appointment:
        appointment = self._get(appointment_id)
        current = to_booked_appointment(appointment).status

        if status is AppointmentStatus.RESCHEDULED:
            raise InvalidStatusTransition('Use the reschedule action to move an appointment.')
        if status not in ALLOWED_STATUS_TRANSITIONS[current]:
            raise InvalidStatusTransition(f'Cannot change a {current.value} appointment to {status.value}.')

        return self.store.update_appointment_status(appointment, status, reason)

    def cancel_unconfirmed_no_shows(
        self,
        now: datetime,
        confirmation_window_hours: int = config.NO_SHOW_CONFIRMATION_WINDOW_HOURS,
    ) -> list[str]:
        cancelled: list[str] = []

        for appointment in self.store.list_unconfirmed_no_shows():
            window_opens = appointment.appointment_date_time - timedelta(hours=confirmation_window_hours)
            if now > window_opens:
                self.store.update_appointment_status(appointment, AppointmentStatus.CANCELLED, AUTO_CANCEL_REASON)
                cancelled.append(appointment.id)
                logger.info('Appointment %s automatically cancelled due to lack of admin confirmation.', appointment.id)

        return cancelled
