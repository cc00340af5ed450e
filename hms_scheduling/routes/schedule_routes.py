import logging
from datetime import date as date_type, datetime

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, field_validator, model_validator
from sqlalchemy.orm import Session

from hms_scheduling.auth.dependencies import Principal, ensure_doctor_owns_schedule, get_current_user
from hms_scheduling.database import get_db
from hms_scheduling.routes.common import (
    ensure_database_ready,
    get_now,
    get_schedule_cache,
    get_slot_manager_registry,
    to_http_exception,
)
from hms_scheduling.scheduling.errors import SchedulingError
from hms_scheduling.scheduling.leave_calendar import LeaveRecord
from hms_scheduling.scheduling.slot_template import DEFAULT_TEMPLATE
from hms_scheduling.services.schedule_store import ScheduleCache, ScheduleStore, encode_schedule
from hms_scheduling.services.slot_manager import SLOT_ACTIONS, SlotManagerRegistry, SlotManagerSession

router = APIRouter(tags=['schedules'])

logger = logging.getLogger(__name__)


class LeaveScheduleResponse(BaseModel):
    doctor_id: str
    full_day_leaves: list[date_type]
    leave_time_slots: list[datetime]


class SlotManagerSessionResponse(LeaveScheduleResponse):
    session_id: str
    can_undo: bool
    has_unsaved_changes: bool
    last_action: str | None = None


class SlotActionRequest(BaseModel):
    action: str
    date: date_type | None = None
    slot: str | None = None

    @field_validator('action')
    @classmethod
    def validate_action(cls, value: str) -> str:
        normalized = value.strip().lower()
        if normalized not in SLOT_ACTIONS:
            raise ValueError(f'Action must be one of: {", ".join(SLOT_ACTIONS)}.')
        return normalized

    @field_validator('slot')
    @classmethod
    def validate_slot(cls, value: str | None) -> str | None:
        if value is None:
            return None
        if value not in DEFAULT_TEMPLATE:
            raise ValueError(f'{value} is not a bookable time slot.')
        return DEFAULT_TEMPLATE.slot_for(value).label

    @model_validator(mode='after')
    def validate_arguments(self) -> 'SlotActionRequest':
        if self.action != 'undo' and self.date is None:
            raise ValueError('A date is required for this action.')
        if self.action == 'toggle_slot' and self.slot is None:
            raise ValueError('A slot is required to toggle a time slot.')
        return self


def schedule_response(doctor_id: str, record: LeaveRecord) -> LeaveScheduleResponse:
    full_day_leaves, leave_time_slots = encode_schedule(record)
    return LeaveScheduleResponse(
        doctor_id=doctor_id,
        full_day_leaves=[date_type.fromisoformat(value) for value in full_day_leaves],
        leave_time_slots=[datetime.fromisoformat(value) for value in leave_time_slots],
    )


def session_response(session: SlotManagerSession) -> SlotManagerSessionResponse:
    with session.lock:
        record = session.calendar.to_record()
        last_edit = session.calendar.last_edit
        can_undo = session.calendar.can_undo
        has_unsaved_changes = session.calendar.has_unsaved_changes

    schedule = schedule_response(session.doctor_id, record)
    return SlotManagerSessionResponse(
        **schedule.model_dump(),
        session_id=session.session_id,
        can_undo=can_undo,
        has_unsaved_changes=has_unsaved_changes,
        last_action=last_edit.action if last_edit else None,
    )


def get_owned_session(
    doctor_id: str,
    session_id: str,
    user: Principal,
    registry: SlotManagerRegistry,
    now: datetime,
) -> SlotManagerSession:
    ensure_doctor_owns_schedule(user, doctor_id)
    try:
        return registry.get(doctor_id, session_id, now=now)
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc


@router.get('/{doctor_id}', response_model=LeaveScheduleResponse)
def get_schedule(
    doctor_id: str,
    db: Session = Depends(get_db),
    cache: ScheduleCache | None = Depends(get_schedule_cache),
):
    ensure_database_ready()

    try:
        record = ScheduleStore(db, template=DEFAULT_TEMPLATE, cache=cache).get_doctor_schedule(doctor_id)
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc

    return schedule_response(doctor_id, record)


@router.post('/{doctor_id}/sessions', response_model=SlotManagerSessionResponse, status_code=status.HTTP_201_CREATED)
def open_slot_manager_session(
    doctor_id: str,
    user: Principal = Depends(get_current_user),
    db: Session = Depends(get_db),
    cache: ScheduleCache | None = Depends(get_schedule_cache),
    registry: SlotManagerRegistry = Depends(get_slot_manager_registry),
    now: datetime = Depends(get_now),
):
    ensure_doctor_owns_schedule(user, doctor_id)
    ensure_database_ready()

    try:
        session = registry.open(doctor_id, ScheduleStore(db, template=DEFAULT_TEMPLATE, cache=cache), now=now)
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc

    return session_response(session)


@router.get('/{doctor_id}/sessions/{session_id}', response_model=SlotManagerSessionResponse)
def get_slot_manager_session(
    doctor_id: str,
    session_id: str,
    user: Principal = Depends(get_current_user),
    registry: SlotManagerRegistry = Depends(get_slot_manager_registry),
    now: datetime = Depends(get_now),
):
    return session_response(get_owned_session(doctor_id, session_id, user, registry, now))


@router.post('/{doctor_id}/sessions/{session_id}/actions', response_model=SlotManagerSessionResponse)
def apply_slot_manager_action(
    doctor_id: str,
    session_id: str,
    data: SlotActionRequest,
    user: Principal = Depends(get_current_user),
    registry: SlotManagerRegistry = Depends(get_slot_manager_registry),
    now: datetime = Depends(get_now),
):
    session = get_owned_session(doctor_id, session_id, user, registry, now)

    applied = session.apply(data.action, day=data.date, slot=data.slot)
    if not applied:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail='There is nothing to undo.',
        )

    return session_response(session)


@router.post('/{doctor_id}/sessions/{session_id}/save', response_model=SlotManagerSessionResponse)
def save_slot_manager_session(
    doctor_id: str,
    session_id: str,
    user: Principal = Depends(get_current_user),
    db: Session = Depends(get_db),
    cache: ScheduleCache | None = Depends(get_schedule_cache),
    registry: SlotManagerRegistry = Depends(get_slot_manager_registry),
    now: datetime = Depends(get_now),
):
    session = get_owned_session(doctor_id, session_id, user, registry, now)
    ensure_database_ready()

    try:
        session.save(ScheduleStore(db, template=DEFAULT_TEMPLATE, cache=cache))
    except SchedulingError as exc:
        logger.warning('Saving slot manager session %s failed; edits kept for retry.', session_id)
        raise to_http_exception(exc) from exc

    return session_response(session)


@router.delete('/{doctor_id}/sessions/{session_id}', status_code=status.HTTP_204_NO_CONTENT)
def discard_slot_manager_session(
    doctor_id: str,
    session_id: str,
    user: Principal = Depends(get_current_user),
    registry: SlotManagerRegistry = Depends(get_slot_manager_registry),
):
    ensure_doctor_owns_schedule(user, doctor_id)

    try:
        registry.discard(doctor_id, session_id)
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc
