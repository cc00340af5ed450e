from datetime import date as date_type, datetime

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, field_validator
from sqlalchemy.orm import Session

from hms_scheduling.auth.dependencies import Principal, get_current_user, require_role
from hms_scheduling.core import config
from hms_scheduling.database import get_db
from hms_scheduling.models.appointment import Appointment, AppointmentStatus
from hms_scheduling.routes.common import build_resolver, ensure_database_ready, get_now, get_schedule_cache, to_http_exception
from hms_scheduling.scheduling.errors import SchedulingError
from hms_scheduling.scheduling.slot_template import DEFAULT_TEMPLATE
from hms_scheduling.services.appointment_store import AppointmentStore
from hms_scheduling.services.appointments import AppointmentService
from hms_scheduling.services.schedule_store import ScheduleCache

router = APIRouter(tags=['appointments'])


def _normalize_slot(value: str) -> str:
    if value not in DEFAULT_TEMPLATE:
        raise ValueError(f'{value} is not a bookable time slot.')
    return DEFAULT_TEMPLATE.slot_for(value).label


class CreateAppointmentRequest(BaseModel):
    doctor_id: str
    doctor_name: str | None = None
    patient_name: str | None = None
    date: date_type
    time: str
    reason: str

    @field_validator('doctor_id')
    @classmethod
    def validate_doctor_id(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('Doctor id is required.')
        return normalized

    @field_validator('time')
    @classmethod
    def validate_time(cls, value: str) -> str:
        return _normalize_slot(value)

    @field_validator('reason')
    @classmethod
    def validate_reason(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('A reason for the visit is required.')
        if len(normalized) > config.MAX_APPOINTMENT_REASON_LENGTH:
            raise ValueError(f'Reason must be {config.MAX_APPOINTMENT_REASON_LENGTH} characters or fewer.')
        return normalized


class RescheduleRequest(BaseModel):
    date: date_type
    time: str
    confirm_same_slot: bool = False

    @field_validator('time')
    @classmethod
    def validate_time(cls, value: str) -> str:
        return _normalize_slot(value)


class UpdateStatusRequest(BaseModel):
    status: AppointmentStatus
    reason: str | None = None

    @field_validator('status', mode='before')
    @classmethod
    def normalize_status(cls, value):
        if isinstance(value, str):
            return value.strip().upper()
        return value


class AppointmentResponse(BaseModel):
    id: str
    patient_id: str
    patient_name: str | None = None
    doctor_id: str
    doctor_name: str | None = None
    date: date_type
    time: str | None = None
    appointment_date_time: datetime
    duration_minutes: int
    status: str
    reason: str | None = None
    status_update_reason: str | None = None

    class Config:
        from_attributes = True


class StatusSweepResponse(BaseModel):
    cancelled_appointment_ids: list[str]


def get_appointment_service(
    db: Session = Depends(get_db),
    cache: ScheduleCache | None = Depends(get_schedule_cache),
) -> AppointmentService:
    return AppointmentService(AppointmentStore(db), build_resolver(db, cache))


def ensure_can_manage(user: Principal, appointment: Appointment) -> None:
    if user.role == 'admin':
        return
    if user.role == 'doctor' and user.subject == appointment.doctor_id:
        return
    if user.role == 'patient' and user.subject == appointment.patient_id:
        return
    raise HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail='Only the doctor, the patient or an admin can change this appointment.',
    )


def get_managed_appointment(service: AppointmentService, appointment_id: str, user: Principal) -> Appointment:
    try:
        appointment = service.store.get_appointment(appointment_id)
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc

    if appointment is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail='Appointment not found.',
        )
    ensure_can_manage(user, appointment)
    return appointment


@router.post('', response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
def create_appointment(
    data: CreateAppointmentRequest,
    user: Principal = Depends(require_role('patient')),
    service: AppointmentService = Depends(get_appointment_service),
    now: datetime = Depends(get_now),
):
    ensure_database_ready()

    try:
        return service.book(
            doctor_id=data.doctor_id,
            patient_id=user.subject,
            day=data.date,
            slot=data.time,
            now=now,
            reason=data.reason,
            doctor_name=data.doctor_name,
            patient_name=data.patient_name,
        )
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc


@router.get('/doctors/{doctor_id}', response_model=list[AppointmentResponse])
def list_doctor_appointments(
    doctor_id: str,
    day: date_type = Query(..., alias='date'),
    user: Principal = Depends(require_role('doctor', 'admin')),
    service: AppointmentService = Depends(get_appointment_service),
):
    if user.role == 'doctor' and user.subject != doctor_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail='Doctors can only view their own appointments.',
        )

    ensure_database_ready()

    try:
        return service.store.list_doctor_appointments(doctor_id, day)
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc


@router.patch('/{appointment_id}/status', response_model=AppointmentResponse)
def update_appointment_status(
    appointment_id: str,
    data: UpdateStatusRequest,
    user: Principal = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    ensure_database_ready()
    get_managed_appointment(service, appointment_id, user)

    try:
        return service.update_status(appointment_id, data.status, data.reason)
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc


@router.post('/{appointment_id}/reschedule', response_model=AppointmentResponse)
def reschedule_appointment(
    appointment_id: str,
    data: RescheduleRequest,
    user: Principal = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
    now: datetime = Depends(get_now),
):
    ensure_database_ready()
    get_managed_appointment(service, appointment_id, user)

    try:
        return service.reschedule(
            appointment_id,
            data.date,
            data.time,
            now,
            confirm_same_slot=data.confirm_same_slot,
        )
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc


@router.post('/status-sweep', response_model=StatusSweepResponse)
def sweep_unconfirmed_no_shows(
    user: Principal = Depends(require_role('admin')),
    service: AppointmentService = Depends(get_appointment_service),
    now: datetime = Depends(get_now),
):
    del user
    ensure_database_ready()

    try:
        cancelled = service.cancel_unconfirmed_no_shows(now)
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc

    return StatusSweepResponse(cancelled_appointment_ids=cancelled)
