"""Appointment model definitions."""

import enum

from sqlalchemy import Boolean, Column, Date, DateTime, Integer, String
from sqlalchemy.sql import func

from hms_scheduling.database import Base


class AppointmentStatus(str, enum.Enum):
    SCHEDULED = "SCHEDULED"
    RESCHEDULED = "RESCHEDULED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    NO_SHOW = "NO_SHOW"


# Only these statuses hold on to a slot.
OCCUPYING_STATUSES = frozenset({
    AppointmentStatus.SCHEDULED,
    AppointmentStatus.RESCHEDULED,
    AppointmentStatus.IN_PROGRESS,
})


class Appointment(Base):
    """Represents a booked consultation with a doctor."""
    __tablename__ = "appointments"

    id = Column(String, primary_key=True)
    patient_id = Column(String, nullable=False, index=True)
    patient_name = Column(String)
    doctor_id = Column(String, nullable=False, index=True)
    doctor_name = Column(String)
    date = Column(Date, nullable=False)
    time = Column(String)  # display label, e.g. "09:30 AM"
    appointment_date_time = Column(DateTime, nullable=False)
    duration_minutes = Column(Integer, default=30)
    status = Column(String, default=AppointmentStatus.SCHEDULED.value)
    reason = Column(String)
    notes = Column(String)
    admin_confirmed = Column(Boolean, default=False)
    status_update_reason = Column(String)
    created_at = Column(DateTime, server_default=func.now())
