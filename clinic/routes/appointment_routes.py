from datetime import date, datetime

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, field_validator
from sqlalchemy.orm import Session

from clinic.auth.dependencies import get_current_principal, get_db
from clinic.auth.principal import Principal
from clinic.core.errors import SchedulingError
from clinic.models.appointment import Appointment, AppointmentStatus
from clinic.routes.availability_routes import ensure_database_ready
from clinic.routes.errors import to_http_exception
from clinic.scheduling import appointments

router = APIRouter(tags=['appointments'])

MAX_TRIGGER_LENGTH = 64


class BookAppointmentRequest(BaseModel):
    doctor_id: int
    start_time: datetime


class RescheduleAppointmentRequest(BaseModel):
    doctor_id: int | None = None
    start_time: datetime | None = None
    status: AppointmentStatus | None = None


class CompleteAppointmentRequest(BaseModel):
    triggering_event: str = 'prescription_issued'

    @field_validator('triggering_event')
    @classmethod
    def validate_triggering_event(cls, value: str) -> str:
        normalized = value.strip().lower()
        if not normalized:
            raise ValueError('Triggering event is required.')
        if len(normalized) > MAX_TRIGGER_LENGTH:
            raise ValueError(f'Triggering event must be {MAX_TRIGGER_LENGTH} characters or fewer.')
        return normalized


class AppointmentResponse(BaseModel):
    id: int
    doctor_id: int
    patient_id: int
    start_time: datetime
    end_time: datetime
    duration_minutes: int
    status: AppointmentStatus


class MessageResponse(BaseModel):
    message: str
    appointment_id: int


def to_response(appointment: Appointment) -> AppointmentResponse:
    return AppointmentResponse(
        id=appointment.id,
        doctor_id=appointment.doctor_id,
        patient_id=appointment.patient_id,
        start_time=appointment.start_time,
        end_time=appointment.end_time,
        duration_minutes=appointment.duration_minutes,
        status=appointment.status,
    )


@router.post('', response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
def book_appointment(
    data: BookAppointmentRequest,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        appointment = appointments.book_appointment(db, principal, data.doctor_id, data.start_time)
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc

    return to_response(appointment)


@router.get('/doctor', response_model=list[AppointmentResponse])
def list_doctor_appointments(
    on_date: date = Query(..., alias='date'),
    doctor_id: int | None = Query(default=None),
    patient_name: str | None = Query(default=None),
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        results = appointments.list_doctor_appointments(
            db,
            principal,
            on_date,
            doctor_id=doctor_id,
            patient_name=patient_name,
        )
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc

    return [to_response(appointment) for appointment in results]


@router.get('/mine', response_model=list[AppointmentResponse])
def list_my_appointments(
    appointment_status: AppointmentStatus | None = Query(default=None, alias='status'),
    doctor_name: str | None = Query(default=None),
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        results = appointments.list_patient_appointments(
            db,
            principal,
            status=appointment_status,
            doctor_name=doctor_name,
        )
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc

    return [to_response(appointment) for appointment in results]


@router.put('/{appointment_id}', response_model=AppointmentResponse)
def reschedule_appointment(
    appointment_id: int,
    data: RescheduleAppointmentRequest,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        appointment = appointments.reschedule_appointment(
            db,
            principal,
            appointment_id,
            new_doctor_id=data.doctor_id,
            new_start_time=data.start_time,
            new_status=data.status,
        )
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc

    return to_response(appointment)


@router.delete('/{appointment_id}', response_model=MessageResponse)
def cancel_appointment(
    appointment_id: int,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        appointments.cancel_appointment(db, principal, appointment_id)
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc

    return MessageResponse(message='Appointment cancelled', appointment_id=appointment_id)


@router.post('/{appointment_id}/complete', response_model=MessageResponse)
def complete_appointment(
    appointment_id: int,
    data: CompleteAppointmentRequest,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        appointments.finalize_encounter(db, principal, appointment_id, data.triggering_event)
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc

    return MessageResponse(message='Appointment completed', appointment_id=appointment_id)
