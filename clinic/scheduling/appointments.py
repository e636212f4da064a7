"""Appointment lifecycle: book, reschedule, cancel and complete.

States are ``scheduled`` and ``completed``. Cancelling removes the record;
nothing moves out of ``completed``. Booking and rescheduling check and
write under the doctor's lock, and the store's unique index on scheduled
``(doctor_id, start_time)`` turns a lost race into a conflict. Reschedule
and cancel only write a row that is still scheduled.
"""

import logging
from datetime import date, datetime, timedelta

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from clinic.auth.principal import Principal, Role
from clinic.core import config
from clinic.core.errors import (
    ConflictError,
    ForbiddenError,
    InternalError,
    InvalidInputError,
    NotFoundError,
)
from clinic.models.appointment import Appointment, AppointmentStatus
from clinic.scheduling import guard, store
from clinic.scheduling.availability import day_bounds
from clinic.scheduling.locks import doctor_lock

logger = logging.getLogger(__name__)

STORE_UNAVAILABLE = 'Scheduling store unavailable.'
SLOT_TAKEN = 'Requested slot is not available.'


def _require_role(principal: Principal, role: Role, message: str) -> None:
    if not principal.can_act_as(role):
        raise ForbiddenError(message)


def _validate_start(start_time: datetime | None, now: datetime | None) -> datetime:
    if start_time is None:
        raise InvalidInputError('Appointment time is required.')
    if start_time.tzinfo is not None:
        raise InvalidInputError('Appointment time must be a clinic-local time without a time zone.')

    start = start_time.replace(second=0, microsecond=0)
    if start <= (now or datetime.now()):
        raise InvalidInputError('Appointments must be scheduled in the future.')
    return start


def _load_owned(db: Session, principal: Principal, appointment_id: int, action: str) -> Appointment:
    appointment = store.get_appointment(db, appointment_id)
    if appointment is None:
        raise NotFoundError('Appointment not found.')
    if not principal.owns(appointment.patient_id):
        raise ForbiddenError(f'Only the patient who booked this appointment can {action} it.')
    return appointment


def _raise_not_scheduled(db: Session, appointment_id: int, verb: str) -> None:
    if store.get_appointment(db, appointment_id) is None:
        raise NotFoundError('Appointment not found.')
    raise InvalidInputError(f'Completed appointments cannot be {verb}.')


def book_appointment(
    db: Session,
    principal: Principal,
    doctor_id: int,
    start_time: datetime | None,
    now: datetime | None = None,
) -> Appointment:
    _require_role(principal, Role.PATIENT, 'Only patients can book appointments.')
    start = _validate_start(start_time, now)
    duration_minutes = config.APPOINTMENT_DURATION_MINUTES
    end = start + timedelta(minutes=duration_minutes)

    try:
        doctor_found = store.doctor_exists(db, doctor_id)
    except SQLAlchemyError as exc:
        logger.exception('Doctor lookup failed for %s', doctor_id)
        raise InternalError(STORE_UNAVAILABLE) from exc
    if not doctor_found:
        raise NotFoundError('Doctor not found.')

    with doctor_lock(doctor_id):
        try:
            if not guard.is_interval_free(db, doctor_id, start, end):
                raise ConflictError(SLOT_TAKEN)

            appointment = Appointment(
                doctor_id=doctor_id,
                patient_id=principal.account_id,
                start_time=start,
                duration_minutes=duration_minutes,
                status=AppointmentStatus.SCHEDULED,
            )
            store.save(db, appointment)
        except IntegrityError as exc:
            db.rollback()
            logger.info('Booking for doctor %s at %s lost to a concurrent booking', doctor_id, start)
            raise ConflictError(SLOT_TAKEN) from exc
        except SQLAlchemyError as exc:
            db.rollback()
            logger.exception('Booking failed for doctor %s at %s', doctor_id, start)
            raise InternalError(STORE_UNAVAILABLE) from exc

    logger.info(
        'Patient %s booked appointment %s with doctor %s at %s',
        principal.account_id,
        appointment.id,
        doctor_id,
        start,
    )
    return appointment


def reschedule_appointment(
    db: Session,
    principal: Principal,
    appointment_id: int,
    new_doctor_id: int | None = None,
    new_start_time: datetime | None = None,
    new_status: AppointmentStatus | None = None,
    now: datetime | None = None,
) -> Appointment:
    _require_role(principal, Role.PATIENT, 'Only patients can change appointments.')
    requested_start = _validate_start(new_start_time, now) if new_start_time is not None else None

    try:
        appointment = _load_owned(db, principal, appointment_id, 'change')
        if not appointment.is_scheduled:
            raise InvalidInputError('Completed appointments cannot be changed.')
        if new_doctor_id is not None and not store.doctor_exists(db, new_doctor_id):
            raise NotFoundError('Target doctor not found.')
    except SQLAlchemyError as exc:
        logger.exception('Loading appointment %s failed', appointment_id)
        raise InternalError(STORE_UNAVAILABLE) from exc

    current_doctor_id = appointment.doctor_id
    target_doctor_id = new_doctor_id if new_doctor_id is not None else current_doctor_id
    target_start = requested_start or appointment.start_time
    target_end = target_start + timedelta(minutes=appointment.duration_minutes or config.APPOINTMENT_DURATION_MINUTES)

    changes = {Appointment.doctor_id: target_doctor_id, Appointment.start_time: target_start}
    if new_status is not None:
        changes[Appointment.status] = new_status

    with doctor_lock(current_doctor_id, target_doctor_id):
        try:
            if not guard.is_interval_free(
                db,
                target_doctor_id,
                target_start,
                target_end,
                exclude_appointment_id=appointment_id,
            ):
                raise ConflictError(SLOT_TAKEN)

            # A completion or cancellation may have landed since the load.
            if not store.update_scheduled(db, appointment_id, changes):
                _raise_not_scheduled(db, appointment_id, 'changed')
            db.refresh(appointment)
        except IntegrityError as exc:
            db.rollback()
            logger.info('Reschedule of appointment %s lost to a concurrent booking', appointment_id)
            raise ConflictError(SLOT_TAKEN) from exc
        except SQLAlchemyError as exc:
            db.rollback()
            logger.exception('Reschedule of appointment %s failed', appointment_id)
            raise InternalError(STORE_UNAVAILABLE) from exc

    logger.info(
        'Appointment %s moved to doctor %s at %s (status %s)',
        appointment.id,
        appointment.doctor_id,
        appointment.start_time,
        appointment.status.value,
    )
    return appointment


def cancel_appointment(db: Session, principal: Principal, appointment_id: int) -> None:
    _require_role(principal, Role.PATIENT, 'Only patients can cancel appointments.')

    try:
        appointment = _load_owned(db, principal, appointment_id, 'cancel')
        if not appointment.is_scheduled:
            raise InvalidInputError('Completed appointments cannot be cancelled.')

        doctor_id, start_time = appointment.doctor_id, appointment.start_time
        if not store.delete_scheduled(db, appointment_id):
            _raise_not_scheduled(db, appointment_id, 'cancelled')
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Cancelling appointment %s failed', appointment_id)
        raise InternalError(STORE_UNAVAILABLE) from exc

    logger.info(
        'Patient %s cancelled appointment %s with doctor %s at %s',
        principal.account_id,
        appointment_id,
        doctor_id,
        start_time,
    )


def complete_appointment(db: Session, appointment_id: int, triggering_event: str = 'encounter_finalized') -> None:
    try:
        updated = store.update_status(db, appointment_id, AppointmentStatus.COMPLETED)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Completing appointment %s failed', appointment_id)
        raise InternalError(STORE_UNAVAILABLE) from exc

    if not updated:
        raise NotFoundError('Appointment not found.')

    logger.info('Appointment %s completed (%s)', appointment_id, triggering_event)


def finalize_encounter(
    db: Session,
    principal: Principal,
    appointment_id: int,
    triggering_event: str = 'encounter_finalized',
) -> None:
    """Complete an appointment on behalf of the doctor who saw the patient."""
    _require_role(principal, Role.DOCTOR, 'Only doctors and admins can complete appointments.')

    try:
        appointment = store.get_appointment(db, appointment_id)
    except SQLAlchemyError as exc:
        logger.exception('Loading appointment %s failed', appointment_id)
        raise InternalError(STORE_UNAVAILABLE) from exc

    if appointment is None:
        raise NotFoundError('Appointment not found.')
    if principal.role is Role.DOCTOR and appointment.doctor_id != principal.account_id:
        raise ForbiddenError('Doctors can only complete their own appointments.')

    complete_appointment(db, appointment_id, triggering_event)


def list_doctor_appointments(
    db: Session,
    principal: Principal,
    on_date: date,
    doctor_id: int | None = None,
    patient_name: str | None = None,
) -> list[Appointment]:
    _require_role(principal, Role.DOCTOR, 'Only doctors and admins can view a doctor schedule.')

    if principal.role is Role.DOCTOR:
        if doctor_id is not None and doctor_id != principal.account_id:
            raise ForbiddenError('Doctors can only view their own schedule.')
        doctor_id = principal.account_id
    elif doctor_id is None:
        raise InvalidInputError('doctor_id is required.')

    day_start, day_end = day_bounds(on_date)
    normalized_name = (patient_name or '').strip() or None

    try:
        return store.find_by_doctor_and_time_range(
            db,
            doctor_id,
            day_start,
            day_end,
            patient_name=normalized_name,
        )
    except SQLAlchemyError as exc:
        logger.exception('Listing appointments failed for doctor %s on %s', doctor_id, on_date)
        raise InternalError(STORE_UNAVAILABLE) from exc


def list_patient_appointments(
    db: Session,
    principal: Principal,
    status: AppointmentStatus | None = None,
    doctor_name: str | None = None,
) -> list[Appointment]:
    _require_role(principal, Role.PATIENT, 'Only patients can view their own appointments.')
    normalized_name = (doctor_name or '').strip() or None

    try:
        return store.find_by_patient(db, principal.account_id, status=status, doctor_name=normalized_name)
    except SQLAlchemyError as exc:
        logger.exception('Listing appointments failed for patient %s', principal.account_id)
        raise InternalError(STORE_UNAVAILABLE) from exc
