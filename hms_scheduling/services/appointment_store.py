import logging
from datetime import date, datetime

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from hms_scheduling.models.appointment import Appointment, AppointmentStatus
from hms_scheduling.scheduling.booking_index import BookedAppointment
from hms_scheduling.scheduling.errors import DataUnavailable, InvalidSchedule

logger = logging.getLogger(__name__)


def to_booked_appointment(appointment: Appointment) -> BookedAppointment:
    try:
        status = AppointmentStatus((appointment.status or AppointmentStatus.SCHEDULED.value).upper())
    except ValueError as exc:
        raise InvalidSchedule(f'Appointment {appointment.id} has unknown status {appointment.status!r}.') from exc

    return BookedAppointment(
        appointment_id=appointment.id,
        doctor_id=appointment.doctor_id,
        date=appointment.date,
        start_time=appointment.appointment_date_time,
        duration_minutes=appointment.duration_minutes or 30,
        status=status,
    )


class AppointmentStore:
    def __init__(self, db: Session):
        self.db = db

    def query_appointments(self, doctor_id: str, day: date) -> list[BookedAppointment]:
        return [to_booked_appointment(appointment) for appointment in self.list_doctor_appointments(doctor_id, day)]

    def list_doctor_appointments(self, doctor_id: str, day: date) -> list[Appointment]:
        try:
            return self.db.query(Appointment).filter(
                Appointment.doctor_id == doctor_id,
                Appointment.date == day,
            ).order_by(Appointment.appointment_date_time.asc()).all()
        except SQLAlchemyError as exc:
            logger.exception('Failed to query appointments for doctor %s on %s.', doctor_id, day)
            raise DataUnavailable('Could not load appointments.') from exc

    def get_appointment(self, appointment_id: str) -> Appointment | None:
        try:
            return self.db.query(Appointment).filter(Appointment.id == appointment_id).first()
        except SQLAlchemyError as exc:
            logger.exception('Failed to load appointment %s.', appointment_id)
            raise DataUnavailable('Could not load the appointment.') from exc

    def write_appointment(self, appointment: Appointment) -> Appointment:
        try:
            self.db.add(appointment)
            self.db.commit()
            self.db.refresh(appointment)
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception('Failed to write appointment %s.', appointment.id)
            raise DataUnavailable('Could not save the appointment.') from exc
        return appointment

    def update_appointment_status(
        self,
        appointment: Appointment,
        status: AppointmentStatus,
        reason: str | None = None,
    ) -> Appointment:
        appointment.status = status.value
        if reason is not None:
            appointment.status_update_reason = reason
        return self.write_appointment(appointment)

    def update_appointment_date_time(self, appointment: Appointment, new_date_time: datetime, label: str) -> Appointment:
        appointment.date = new_date_time.date()
        appointment.time = label
        appointment.appointment_date_time = new_date_time
        appointment.status = AppointmentStatus.RESCHEDULED.value
        return self.write_appointment(appointment)

    def list_unconfirmed_no_shows(self) -> list[Appointment]:
        try:
            return self.db.query(Appointment).filter(
                Appointment.status == AppointmentStatus.NO_SHOW.value,
                Appointment.admin_confirmed.is_(False),
            ).all()
        except SQLAlchemyError as exc:
            logger.exception('Failed to query unconfirmed no-show appointments.')
            raise DataUnavailable('Could not load appointments.') from exc
