"""Slot availability calculator."""

import logging
from datetime import date, datetime, time, timedelta
from typing import NamedTuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from clinic.core import config
from clinic.core.errors import InternalError, NotFoundError
from clinic.scheduling import guard, store
from clinic.scheduling.windows import parse_windows

logger = logging.getLogger(__name__)


class AvailabilityReport(NamedTuple):
    doctor_id: int
    date: date
    available_slots: list[time]
    booked_starts: list[time]


def day_bounds(on_date: date) -> tuple[datetime, datetime]:
    day_start = datetime.combine(on_date, time.min)
    return day_start, day_start + timedelta(days=1)


def get_availability_report(db: Session, doctor_id: int, on_date: date) -> AvailabilityReport:
    day_start, day_end = day_bounds(on_date)

    try:
        doctor = store.get_doctor(db, doctor_id)
        if doctor is None:
            raise NotFoundError('Doctor not found.')

        windows = parse_windows(doctor.time_slots)
        reservations = guard.find_reservations(db, doctor_id, day_start, day_end) if windows else []
    except SQLAlchemyError as exc:
        logger.exception('Availability lookup failed for doctor %s on %s', doctor_id, on_date)
        raise InternalError('Scheduling store unavailable.') from exc

    slot_length = timedelta(minutes=config.APPOINTMENT_DURATION_MINUTES)
    available_slots = []
    for slot_start in sorted({window.start for window in windows}):
        candidate_start = datetime.combine(on_date, slot_start)
        candidate_end = candidate_start + slot_length
        if any(
            guard.overlaps(candidate_start, candidate_end, reservation.start_time, reservation.end_time)
            for reservation in reservations
        ):
            continue
        available_slots.append(slot_start)

    booked_starts = sorted(
        {reservation.start_time.time() for reservation in reservations if reservation.start_time >= day_start}
    )
    return AvailabilityReport(doctor_id, on_date, available_slots, booked_starts)


def get_availability(db: Session, doctor_id: int, on_date: date) -> list[time]:
    return get_availability_report(db, doctor_id, on_date).available_slots
