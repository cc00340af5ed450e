"""Slots already taken by active appointments.

The index is a projection of the appointment store and is rebuilt on every
query; nothing here is cached.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Iterable, Protocol

from hms_scheduling.models.appointment import OCCUPYING_STATUSES, AppointmentStatus
from hms_scheduling.scheduling.slot_template import DEFAULT_TEMPLATE, SlotTemplate, TimeSlot, parse_minutes

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BookedAppointment:
    appointment_id: str
    doctor_id: str
    date: date
    start_time: datetime
    duration_minutes: int
    status: AppointmentStatus

    @property
    def occupies_slot(self) -> bool:
        return self.status in OCCUPYING_STATUSES


class AppointmentSource(Protocol):
    def query_appointments(self, doctor_id: str, day: date) -> list[BookedAppointment]:
        ...


def occupied_slots(
    appointments: Iterable[BookedAppointment],
    template: SlotTemplate = DEFAULT_TEMPLATE,
    exclude_appointment_id: str | None = None,
) -> frozenset[TimeSlot]:
    occupied: set[TimeSlot] = set()

    for appointment in appointments:
        if not appointment.occupies_slot:
            continue
        if exclude_appointment_id is not None and appointment.appointment_id == exclude_appointment_id:
            continue

        slots = template.slots_overlapping(parse_minutes(appointment.start_time), appointment.duration_minutes)
        if not slots:
            logger.warning(
                'Appointment %s at %s does not overlap any template slot.',
                appointment.appointment_id,
                appointment.start_time,
            )
        occupied.update(slots)

    return frozenset(occupied)


class BookingIndex:
    def __init__(self, appointments: AppointmentSource, template: SlotTemplate = DEFAULT_TEMPLATE):
        self.appointments = appointments
        self.template = template

    def booked_slots(self, doctor_id: str, day: date, exclude_appointment_id: str | None = None) -> frozenset[TimeSlot]:
        return occupied_slots(
            self.appointments.query_appointments(doctor_id, day),
            template=self.template,
            exclude_appointment_id=exclude_appointment_id,
        )
