"""Doctor schedule model definitions."""

from sqlalchemy import Column, String, DateTime, JSON
from hms_scheduling.database import Base


class DoctorSchedule(Base):
    """Leave document for one doctor, overwritten in full on every save."""
    __tablename__ = "doctor_schedules"

    doctor_id = Column(String, primary_key=True)
    full_day_leaves = Column(JSON, default=list)  # ["YYYY-MM-DD", ...]
    leave_time_slots = Column(JSON, default=list)  # ["YYYY-MM-DDTHH:MM:SS", ...]
    updated_at = Column(DateTime)
