"""Appointment model definitions."""

import enum
from datetime import timedelta

from sqlalchemy import Column, DateTime, Enum, ForeignKey, Index, Integer, text
from sqlalchemy.orm import relationship

from clinic.core import config
from clinic.database import Base


class AppointmentStatus(str, enum.Enum):
    SCHEDULED = "scheduled"
    COMPLETED = "completed"


class Appointment(Base):
    """Represents a reservation of one doctor for one patient."""
    __tablename__ = "appointments"
    __table_args__ = (
        Index("idx_appt_doctor_time", "doctor_id", "start_time"),
        Index("idx_appt_patient_time", "patient_id", "start_time"),
        # No two scheduled appointments may start at the same time for a doctor.
        Index(
            "uq_appt_doctor_start_scheduled",
            "doctor_id",
            "start_time",
            unique=True,
            sqlite_where=text("status = 'scheduled'"),
            postgresql_where=text("status = 'scheduled'"),
        ),
    )

    id = Column(Integer, primary_key=True)
    doctor_id = Column(Integer, ForeignKey("doctors.id", ondelete="CASCADE"), nullable=False)
    patient_id = Column(Integer, ForeignKey("patients.id", ondelete="CASCADE"), nullable=False)
    start_time = Column(DateTime, nullable=False)
    duration_minutes = Column(Integer, nullable=False, default=config.APPOINTMENT_DURATION_MINUTES)
    status = Column(
        Enum(
            AppointmentStatus,
            native_enum=False,
            length=16,
            values_callable=lambda statuses: [status.value for status in statuses],
        ),
        nullable=False,
        default=AppointmentStatus.SCHEDULED,
    )

    doctor = relationship("Doctor", back_populates="appointments")
    patient = relationship("Patient", back_populates="appointments")

    @property
    def end_time(self):
        duration = self.duration_minutes or config.APPOINTMENT_DURATION_MINUTES
        return self.start_time + timedelta(minutes=duration)

    @property
    def is_scheduled(self) -> bool:
        return self.status == AppointmentStatus.SCHEDULED
