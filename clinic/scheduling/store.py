"""Appointment store and doctor catalog lookups.

Thin query helpers over the ORM. They raise SQLAlchemy errors untouched;
callers decide how a storage failure is reported.
"""

from datetime import datetime

from sqlalchemy.orm import Session, selectinload

from clinic.models.appointment import Appointment, AppointmentStatus
from clinic.models.doctor import Doctor
from clinic.models.user import Patient


def get_doctor(db: Session, doctor_id: int) -> Doctor | None:
    return (
        db.query(Doctor)
        .options(selectinload(Doctor.available_times))
        .filter(Doctor.id == doctor_id)
        .first()
    )


def doctor_exists(db: Session, doctor_id: int) -> bool:
    return db.query(Doctor.id).filter(Doctor.id == doctor_id).first() is not None


def get_appointment(db: Session, appointment_id: int) -> Appointment | None:
    return db.query(Appointment).filter(Appointment.id == appointment_id).first()


def find_by_doctor_and_time_range(
    db: Session,
    doctor_id: int,
    start: datetime,
    end: datetime,
    status: AppointmentStatus | None = None,
    patient_name: str | None = None,
) -> list[Appointment]:
    """Appointments of a doctor whose start lies in ``[start, end)``."""
    query = db.query(Appointment).filter(
        Appointment.doctor_id == doctor_id,
        Appointment.start_time >= start,
        Appointment.start_time < end,
    )
    if status is not None:
        query = query.filter(Appointment.status == status)
    if patient_name:
        query = query.join(Patient, Appointment.patient_id == Patient.id).filter(
            Patient.name.ilike(f'%{patient_name}%')
        )
    return query.order_by(Appointment.start_time.asc()).all()


def find_by_patient(
    db: Session,
    patient_id: int,
    status: AppointmentStatus | None = None,
    doctor_name: str | None = None,
) -> list[Appointment]:
    query = db.query(Appointment).filter(Appointment.patient_id == patient_id)
    if status is not None:
        query = query.filter(Appointment.status == status)
    if doctor_name:
        query = query.join(Doctor, Appointment.doctor_id == Doctor.id).filter(
            Doctor.name.ilike(f'%{doctor_name}%')
        )
    return query.order_by(Appointment.start_time.asc()).all()


def save(db: Session, appointment: Appointment) -> int:
    db.add(appointment)
    db.commit()
    db.refresh(appointment)
    return appointment.id


def _scheduled(db: Session, appointment_id: int):
    return db.query(Appointment).filter(
        Appointment.id == appointment_id,
        Appointment.status == AppointmentStatus.SCHEDULED,
    )


def update_scheduled(db: Session, appointment_id: int, values: dict) -> int:
    """Apply ``values`` only while the appointment is still scheduled."""
    updated = _scheduled(db, appointment_id).update(values, synchronize_session='fetch')
    db.commit()
    return updated


def delete_scheduled(db: Session, appointment_id: int) -> int:
    deleted = _scheduled(db, appointment_id).delete(synchronize_session='fetch')
    db.commit()
    return deleted


def update_status(db: Session, appointment_id: int, status: AppointmentStatus) -> int:
    updated = (
        db.query(Appointment)
        .filter(Appointment.id == appointment_id)
        .update({Appointment.status: status}, synchronize_session='fetch')
    )
    db.commit()
    return updated
