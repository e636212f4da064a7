"""Booking conflict guard.

Decides whether a candidate interval is free for a doctor by comparing it
against the doctor's scheduled appointments with true interval overlap.
"""

from datetime import datetime, timedelta

from sqlalchemy.orm import Session

from clinic.core.errors import InvalidInputError
from clinic.models.appointment import Appointment, AppointmentStatus
from clinic.scheduling import store

# Appointments never last longer than this, so any reservation that can
# overlap a candidate started no earlier than candidate start minus this.
RESERVATION_LOOKBACK = timedelta(days=1)


def overlaps(start_a: datetime, end_a: datetime, start_b: datetime, end_b: datetime) -> bool:
    return start_a < end_b and end_a > start_b


def find_reservations(
    db: Session,
    doctor_id: int,
    start: datetime,
    end: datetime,
    exclude_appointment_id: int | None = None,
) -> list[Appointment]:
    candidates = store.find_by_doctor_and_time_range(
        db,
        doctor_id,
        start - RESERVATION_LOOKBACK,
        end,
        status=AppointmentStatus.SCHEDULED,
    )
    return [
        appointment
        for appointment in candidates
        if appointment.id != exclude_appointment_id
        and overlaps(appointment.start_time, appointment.end_time, start, end)
    ]


def is_interval_free(
    db: Session,
    doctor_id: int,
    start: datetime,
    end: datetime,
    exclude_appointment_id: int | None = None,
) -> bool:
    if end <= start:
        raise InvalidInputError('Interval end must be after its start.')
    return not find_reservations(db, doctor_id, start, end, exclude_appointment_id)
