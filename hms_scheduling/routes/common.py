from datetime import datetime

from fastapi import HTTPException, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from hms_scheduling.core import config
from hms_scheduling.database import ensure_appointment_schema, ensure_schedule_schema
from hms_scheduling.scheduling.availability import AvailabilityResolver
from hms_scheduling.scheduling.booking_index import BookingIndex
from hms_scheduling.scheduling.errors import (
    AppointmentNotFound,
    DataUnavailable,
    InvalidSchedule,
    InvalidStatusTransition,
    OutsideBookingWindow,
    PastDate,
    SchedulingError,
    SlotUnavailable,
)
from hms_scheduling.scheduling.slot_template import DEFAULT_TEMPLATE
from hms_scheduling.services.appointment_store import AppointmentStore
from hms_scheduling.services.schedule_store import ScheduleCache, ScheduleStore
from hms_scheduling.services.slot_manager import SessionNotFound, SlotManagerRegistry

DATABASE_UNAVAILABLE_DETAIL = 'Database unavailable. Verify DATABASE_URL and database credentials.'

_schedule_cache = ScheduleCache()
_slot_manager_registry = SlotManagerRegistry()

ERROR_STATUS_CODES = [
    (DataUnavailable, status.HTTP_503_SERVICE_UNAVAILABLE),
    (InvalidSchedule, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (PastDate, status.HTTP_400_BAD_REQUEST),
    (OutsideBookingWindow, status.HTTP_400_BAD_REQUEST),
    (SlotUnavailable, status.HTTP_409_CONFLICT),
    (InvalidStatusTransition, status.HTTP_409_CONFLICT),
    (AppointmentNotFound, status.HTTP_404_NOT_FOUND),
    (SessionNotFound, status.HTTP_404_NOT_FOUND),
]


def to_http_exception(exc: SchedulingError) -> HTTPException:
    for error_type, status_code in ERROR_STATUS_CODES:
        if isinstance(exc, error_type):
            return HTTPException(status_code=status_code, detail=exc.message)
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=exc.message)


def ensure_database_ready() -> None:
    try:
        ensure_schedule_schema()
        ensure_appointment_schema()
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc


def get_now() -> datetime:
    return datetime.now()


def get_schedule_cache() -> ScheduleCache | None:
    return _schedule_cache if config.SCHEDULE_CACHE_ENABLED else None


def get_slot_manager_registry() -> SlotManagerRegistry:
    return _slot_manager_registry


def build_resolver(db: Session, cache: ScheduleCache | None = None) -> AvailabilityResolver:
    return AvailabilityResolver(
        leaves=ScheduleStore(db, template=DEFAULT_TEMPLATE, cache=cache),
        bookings=BookingIndex(AppointmentStore(db), template=DEFAULT_TEMPLATE),
        template=DEFAULT_TEMPLATE,
        buffer_minutes=config.SAME_DAY_BUFFER_MINUTES,
    )
