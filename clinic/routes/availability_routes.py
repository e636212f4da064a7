from datetime import date, time

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from clinic.auth.dependencies import get_current_principal, get_db
from clinic.auth.principal import Principal
from clinic.core.errors import SchedulingError
from clinic.database import ensure_appointment_schema
from clinic.routes.errors import to_http_exception
from clinic.scheduling.availability import get_availability_report
from clinic.scheduling.windows import set_doctor_windows

router = APIRouter(tags=['availability'])

MAX_WINDOWS_PER_DOCTOR = 48


class AvailabilityResponse(BaseModel):
    doctor_id: int
    date: date
    available_slots: list[str]
    booked_starts: list[str]


class UpdateWindowsRequest(BaseModel):
    windows: list[str]

    @field_validator('windows')
    @classmethod
    def validate_windows(cls, value: list[str]) -> list[str]:
        if len(value) > MAX_WINDOWS_PER_DOCTOR:
            raise ValueError(f'A doctor can declare at most {MAX_WINDOWS_PER_DOCTOR} windows.')
        return [window.strip() for window in value if window and window.strip()]


class WindowsResponse(BaseModel):
    doctor_id: int
    windows: list[str]


def ensure_database_ready() -> None:
    try:
        ensure_appointment_schema()
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail='Database unavailable. Verify DATABASE_URL and database credentials.',
        ) from exc


def format_slot(slot: time) -> str:
    return slot.strftime('%H:%M')


@router.get('/doctors/{doctor_id}', response_model=AvailabilityResponse)
def get_doctor_availability(
    doctor_id: int,
    on_date: date = Query(..., alias='date'),
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    del principal
    ensure_database_ready()

    try:
        report = get_availability_report(db, doctor_id, on_date)
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc

    return AvailabilityResponse(
        doctor_id=report.doctor_id,
        date=report.date,
        available_slots=[format_slot(slot) for slot in report.available_slots],
        booked_starts=[format_slot(slot) for slot in report.booked_starts],
    )


@router.put('/doctors/{doctor_id}/windows', response_model=WindowsResponse)
def update_doctor_windows(
    doctor_id: int,
    data: UpdateWindowsRequest,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        windows = set_doctor_windows(db, principal, doctor_id, data.windows)
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc

    return WindowsResponse(doctor_id=doctor_id, windows=windows)
