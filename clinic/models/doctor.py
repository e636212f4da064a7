"""Doctor model definitions."""

from sqlalchemy import Column, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from clinic.database import Base


class Doctor(Base):
    """Represents a doctor who accepts appointments."""
    __tablename__ = "doctors"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    specialty = Column(String(50))
    email = Column(String, unique=True, index=True, nullable=False)

    available_times = relationship(
        "DoctorAvailableTime",
        back_populates="doctor",
        cascade="all, delete-orphan",
        order_by="DoctorAvailableTime.position",
    )
    appointments = relationship(
        "Appointment",
        back_populates="doctor",
        cascade="all, delete-orphan",
    )

    @property
    def time_slots(self) -> list[str]:
        return [available_time.time_slot for available_time in self.available_times]


class DoctorAvailableTime(Base):
    """One recurring daily window, stored as "HH:MM-HH:MM"."""
    __tablename__ = "doctor_available_times"

    id = Column(Integer, primary_key=True)
    doctor_id = Column(Integer, ForeignKey("doctors.id", ondelete="CASCADE"), nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)
    time_slot = Column(String(11), nullable=False)

    doctor = relationship("Doctor", back_populates="available_times")
