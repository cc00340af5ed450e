from datetime import date, datetime, time

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from hms_scheduling.database import get_db
from hms_scheduling.routes.common import build_resolver, ensure_database_ready, get_now, get_schedule_cache, to_http_exception
from hms_scheduling.scheduling.availability import AvailabilityResult, SlotAvailability
from hms_scheduling.scheduling.errors import SchedulingError
from hms_scheduling.scheduling.slot_template import DEFAULT_TEMPLATE, TimeSlot
from hms_scheduling.services.schedule_store import ScheduleCache

router = APIRouter(tags=['availability'])


class TimeSlotResponse(BaseModel):
    label: str
    time_of_day: str
    sort_key: int
    start: time


class SlotAvailabilityResponse(TimeSlotResponse):
    start_time: datetime
    is_bookable: bool
    blocked_reason: str | None = None


class AvailabilityResponse(BaseModel):
    doctor_id: str
    date: date
    is_full_day_leave: bool
    bookable_count: int
    slots: list[SlotAvailabilityResponse]


def slot_response(slot: TimeSlot) -> TimeSlotResponse:
    return TimeSlotResponse(
        label=slot.label,
        time_of_day=slot.time_of_day.value,
        sort_key=slot.sort_key,
        start=slot.start,
    )


def slot_availability_response(day: date, entry: SlotAvailability) -> SlotAvailabilityResponse:
    return SlotAvailabilityResponse(
        label=entry.slot.label,
        time_of_day=entry.slot.time_of_day.value,
        sort_key=entry.slot.sort_key,
        start=entry.slot.start,
        start_time=entry.slot.on(day),
        is_bookable=entry.is_bookable,
        blocked_reason=entry.blocked_reason,
    )


def availability_response(result: AvailabilityResult) -> AvailabilityResponse:
    return AvailabilityResponse(
        doctor_id=result.doctor_id,
        date=result.date,
        is_full_day_leave=result.is_full_day_leave,
        bookable_count=len(result.bookable_slots),
        slots=[slot_availability_response(result.date, entry) for entry in result.slots],
    )


@router.get('/slot-template', response_model=list[TimeSlotResponse])
def list_slot_template():
    return [slot_response(slot) for slot in DEFAULT_TEMPLATE.all_slots()]


@router.get('/doctors/{doctor_id}', response_model=AvailabilityResponse)
def get_doctor_availability(
    doctor_id: str,
    day: date = Query(..., alias='date'),
    db: Session = Depends(get_db),
    now: datetime = Depends(get_now),
    cache: ScheduleCache | None = Depends(get_schedule_cache),
):
    ensure_database_ready()

    try:
        result = build_resolver(db, cache).resolve(doctor_id, day, now)
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc

    return availability_response(result)
