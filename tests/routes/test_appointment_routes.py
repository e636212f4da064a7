from datetime import date, datetime, timedelta

import pytest
from fastapi import HTTPException
from fastapi.security import HTTPAuthorizationCredentials
from pydantic import ValidationError

from clinic.auth.dependencies import get_current_principal
from clinic.auth.jwt_handler import create_access_token
from clinic.core.errors import AuthenticationError, ConflictError, InternalError, NotFoundError
from clinic.models.appointment import Appointment, AppointmentStatus
from clinic.routes.appointment_routes import (
    BookAppointmentRequest,
    CompleteAppointmentRequest,
    RescheduleAppointmentRequest,
    book_appointment,
    cancel_appointment,
    complete_appointment,
    list_my_appointments,
    reschedule_appointment,
)
from clinic.routes.availability_routes import (
    UpdateWindowsRequest,
    get_doctor_availability,
    update_doctor_windows,
)
from clinic.routes.auth_routes import me
from clinic.routes.errors import to_http_exception

FUTURE_DAY = date.today() + timedelta(days=30)
FUTURE_NINE = datetime.combine(FUTURE_DAY, datetime.min.time()).replace(hour=9)


@pytest.fixture(autouse=True)
def skip_schema_check(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr('clinic.routes.availability_routes.ensure_database_ready', lambda: None)
    monkeypatch.setattr('clinic.routes.appointment_routes.ensure_database_ready', lambda: None)


@pytest.mark.parametrize(
    ('error', 'status_code'),
    [
        (NotFoundError('missing'), 404),
        (ConflictError('taken'), 409),
        (InternalError('down'), 503),
        (AuthenticationError('who'), 401),
    ],
)
def test_errors_map_to_status_codes(error, status_code) -> None:
    exception = to_http_exception(error)

    assert exception.status_code == status_code
    assert exception.detail == error.message


def test_availability_route_formats_slots(db, make_doctor, make_patient, principals) -> None:
    doctor = make_doctor(windows=['10:00-11:00', '09:00-10:00'])

    response = get_doctor_availability(
        doctor_id=doctor.id,
        on_date=FUTURE_DAY,
        principal=principals['patient'](make_patient()),
        db=db,
    )

    assert response.available_slots == ['09:00', '10:00']
    assert response.booked_starts == []


def test_availability_route_reports_missing_doctor(db, make_patient, principals) -> None:
    with pytest.raises(HTTPException) as exception_info:
        get_doctor_availability(doctor_id=5, on_date=FUTURE_DAY, principal=principals['patient'](make_patient()), db=db)

    assert exception_info.value.status_code == 404
    assert exception_info.value.detail == 'Doctor not found.'


def test_update_windows_route_rejects_malformed_entry(db, make_doctor, principals) -> None:
    doctor = make_doctor()

    with pytest.raises(HTTPException) as exception_info:
        update_doctor_windows(
            doctor_id=doctor.id,
            data=UpdateWindowsRequest(windows=['09:00-10:00', '9am-10am']),
            principal=principals['doctor'](doctor),
            db=db,
        )

    assert exception_info.value.status_code == 400


def test_update_windows_request_limits_catalog_size() -> None:
    with pytest.raises(ValidationError):
        UpdateWindowsRequest(windows=['09:00-10:00'] * 49)


def test_book_route_creates_appointment(db, make_doctor, make_patient, principals) -> None:
    doctor = make_doctor(windows=['09:00-10:00'])
    patient = make_patient()

    response = book_appointment(
        data=BookAppointmentRequest(doctor_id=doctor.id, start_time=FUTURE_NINE),
        principal=principals['patient'](patient),
        db=db,
    )

    assert response.patient_id == patient.id
    assert response.status is AppointmentStatus.SCHEDULED
    assert response.end_time - response.start_time == timedelta(minutes=60)


def test_book_route_reports_conflict(db, make_doctor, make_patient, make_appointment, principals) -> None:
    doctor = make_doctor(windows=['09:00-10:00'])
    make_appointment(doctor, make_patient(), FUTURE_NINE)

    with pytest.raises(HTTPException) as exception_info:
        book_appointment(
            data=BookAppointmentRequest(doctor_id=doctor.id, start_time=FUTURE_NINE),
            principal=principals['patient'](make_patient()),
            db=db,
        )

    assert exception_info.value.status_code == 409


def test_book_route_rejects_past_time(db, make_doctor, make_patient, principals) -> None:
    doctor = make_doctor()

    with pytest.raises(HTTPException) as exception_info:
        book_appointment(
            data=BookAppointmentRequest(doctor_id=doctor.id, start_time=datetime(2020, 1, 6, 9, 0)),
            principal=principals['patient'](make_patient()),
            db=db,
        )

    assert exception_info.value.status_code == 400
    assert exception_info.value.detail == 'Appointments must be scheduled in the future.'


def test_reschedule_route_forbids_non_owner(db, make_doctor, make_patient, make_appointment, principals) -> None:
    appointment = make_appointment(make_doctor(), make_patient(), FUTURE_NINE)

    with pytest.raises(HTTPException) as exception_info:
        reschedule_appointment(
            appointment_id=appointment.id,
            data=RescheduleAppointmentRequest(start_time=FUTURE_NINE + timedelta(hours=1)),
            principal=principals['patient'](make_patient()),
            db=db,
        )

    assert exception_info.value.status_code == 403
    assert exception_info.value.detail == 'Only the patient who booked this appointment can change it.'


def test_cancel_route_deletes_appointment(db, make_doctor, make_patient, make_appointment, principals) -> None:
    patient = make_patient()
    appointment = make_appointment(make_doctor(), patient, FUTURE_NINE)

    response = cancel_appointment(appointment_id=appointment.id, principal=principals['patient'](patient), db=db)

    assert response.appointment_id == appointment.id
    assert db.query(Appointment).filter(Appointment.id == appointment.id).first() is None


def test_complete_route_marks_appointment_completed(db, make_doctor, make_patient, make_appointment, principals) -> None:
    doctor = make_doctor()
    patient = make_patient()
    appointment = make_appointment(doctor, patient, FUTURE_NINE)

    complete_appointment(
        appointment_id=appointment.id,
        data=CompleteAppointmentRequest(triggering_event=' Prescription_Issued '),
        principal=principals['doctor'](doctor),
        db=db,
    )
    mine = list_my_appointments(
        appointment_status=AppointmentStatus.COMPLETED,
        doctor_name=None,
        principal=principals['patient'](patient),
        db=db,
    )

    assert [item.id for item in mine] == [appointment.id]


def test_complete_request_normalizes_trigger() -> None:
    assert CompleteAppointmentRequest(triggering_event=' Prescription_Issued ').triggering_event == 'prescription_issued'

    with pytest.raises(ValidationError):
        CompleteAppointmentRequest(triggering_event='   ')


def test_current_principal_dependency_rejects_garbled_token(db) -> None:
    credentials = HTTPAuthorizationCredentials(scheme='Bearer', credentials='garbage')

    with pytest.raises(HTTPException) as exception_info:
        get_current_principal(credentials=credentials, db=db)

    assert exception_info.value.status_code == 401
    assert exception_info.value.headers == {'WWW-Authenticate': 'Bearer'}


def test_me_route_echoes_resolved_principal(db, make_patient) -> None:
    patient = make_patient()
    credentials = HTTPAuthorizationCredentials(
        scheme='Bearer',
        credentials=create_access_token(subject=patient.email, role='patient'),
    )

    principal = get_current_principal(credentials=credentials, db=db)

    assert me(principal=principal) == {'subject': patient.email, 'role': 'patient', 'account_id': patient.id}
