import itertools
import os

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

os.environ.setdefault('DATABASE_URL', 'sqlite:///./test.db')
os.environ.setdefault('JWT_SECRET_KEY', 'test-secret-key-with-enough-length-for-hs256')

from clinic.auth.principal import Principal, Role  # noqa: E402
from clinic.database import Base  # noqa: E402
from clinic.models.appointment import Appointment, AppointmentStatus  # noqa: E402
from clinic.models.doctor import Doctor, DoctorAvailableTime  # noqa: E402
from clinic.models.user import Admin, Patient  # noqa: E402

_sequence = itertools.count(1)


@pytest.fixture
def db():
    engine = create_engine('sqlite:///:memory:')
    testing_session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)

    session = testing_session_local()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def make_doctor(db):
    def factory(windows=(), name=None) -> Doctor:
        number = next(_sequence)
        doctor = Doctor(
            name=name or f'Doctor {number}',
            specialty='General Practice',
            email=f'doctor{number}@clinic.test',
        )
        doctor.available_times = [
            DoctorAvailableTime(position=position, time_slot=time_slot)
            for position, time_slot in enumerate(windows)
        ]
        db.add(doctor)
        db.commit()
        db.refresh(doctor)
        return doctor

    return factory


@pytest.fixture
def make_patient(db):
    def factory(name=None) -> Patient:
        number = next(_sequence)
        patient = Patient(name=name or f'Patient {number}', email=f'patient{number}@clinic.test')
        db.add(patient)
        db.commit()
        db.refresh(patient)
        return patient

    return factory


@pytest.fixture
def make_admin(db):
    def factory() -> Admin:
        admin = Admin(username=f'admin{next(_sequence)}')
        db.add(admin)
        db.commit()
        db.refresh(admin)
        return admin

    return factory


@pytest.fixture
def make_appointment(db):
    def factory(doctor, patient, start_time, status=AppointmentStatus.SCHEDULED, duration_minutes=60) -> Appointment:
        appointment = Appointment(
            doctor_id=doctor.id,
            patient_id=patient.id,
            start_time=start_time,
            duration_minutes=duration_minutes,
            status=status,
        )
        db.add(appointment)
        db.commit()
        db.refresh(appointment)
        return appointment

    return factory


def as_patient(patient: Patient) -> Principal:
    return Principal(subject=patient.email, role=Role.PATIENT, account_id=patient.id)


def as_doctor(doctor: Doctor) -> Principal:
    return Principal(subject=doctor.email, role=Role.DOCTOR, account_id=doctor.id)


def as_admin(admin: Admin) -> Principal:
    return Principal(subject=admin.username, role=Role.ADMIN, account_id=admin.id)


@pytest.fixture
def principals():
    return {'patient': as_patient, 'doctor': as_doctor, 'admin': as_admin}
