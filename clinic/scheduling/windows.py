"""Doctor availability catalog.

Windows are persisted as ``"HH:MM-HH:MM"`` strings and parsed into
:class:`TimeWindow` values once, when they leave the store.
"""

import logging
import re
from datetime import time
from typing import Iterable, NamedTuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from clinic.auth.principal import Principal, Role
from clinic.core.errors import ForbiddenError, InternalError, InvalidInputError, NotFoundError
from clinic.models.doctor import DoctorAvailableTime
from clinic.scheduling import store

logger = logging.getLogger(__name__)

WINDOW_PATTERN = re.compile(r'^\s*(\d{2}):(\d{2})\s*-\s*(\d{2}):(\d{2})\s*$')


class TimeWindow(NamedTuple):
    """Recurring daily interval during which a doctor accepts appointments."""
    start: time
    end: time


def parse_window(raw: str | None) -> TimeWindow | None:
    if not raw:
        return None

    match = WINDOW_PATTERN.match(raw)
    if not match:
        return None

    start_hour, start_minute, end_hour, end_minute = (int(part) for part in match.groups())
    try:
        window = TimeWindow(time(start_hour, start_minute), time(end_hour, end_minute))
    except ValueError:
        return None

    if window.end <= window.start:
        return None
    return window


def format_window(window: TimeWindow) -> str:
    return f'{window.start:%H:%M}-{window.end:%H:%M}'


def parse_windows(raw_entries: Iterable[str | None]) -> list[TimeWindow]:
    windows: set[TimeWindow] = set()
    for raw in raw_entries:
        window = parse_window(raw)
        if window is None:
            logger.warning('Skipping malformed availability window %r', raw)
            continue
        windows.add(window)
    return sorted(windows)


def normalize_windows(raw_entries: Iterable[str]) -> list[str]:
    windows: set[TimeWindow] = set()
    for raw in raw_entries:
        window = parse_window(raw)
        if window is None:
            raise InvalidInputError(f'Availability window {raw!r} must look like HH:MM-HH:MM with end after start.')
        windows.add(window)
    return [format_window(window) for window in sorted(windows)]


def set_doctor_windows(
    db: Session,
    principal: Principal,
    doctor_id: int,
    raw_entries: Iterable[str],
) -> list[str]:
    """Replace a doctor's declared windows and return the stored strings.

    Doctors may only edit their own catalog; admins may edit any.
    """
    if not principal.can_act_as(Role.DOCTOR):
        raise ForbiddenError('Only doctors and admins can change availability.')
    if principal.role is Role.DOCTOR and principal.account_id != doctor_id:
        raise ForbiddenError('Doctors can only change their own availability.')

    normalized = normalize_windows(raw_entries)

    try:
        doctor = store.get_doctor(db, doctor_id)
        if doctor is None:
            raise NotFoundError('Doctor not found.')

        doctor.available_times = [
            DoctorAvailableTime(position=position, time_slot=time_slot)
            for position, time_slot in enumerate(normalized)
        ]
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Saving availability failed for doctor %s', doctor_id)
        raise InternalError('Scheduling store unavailable.') from exc

    logger.info('Doctor %s availability set to %s', doctor_id, normalized)
    return normalized
