"""Account model definitions for the people a credential can resolve to."""

from sqlalchemy import Column, Integer, String
from sqlalchemy.orm import relationship

from clinic.database import Base


class Patient(Base):
    """Represents a registered patient."""
    __tablename__ = "patients"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)

    appointments = relationship("Appointment", back_populates="patient", cascade="all, delete-orphan")


class Admin(Base):
    """Represents a clinic administrator."""
    __tablename__ = "admins"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String, unique=True, index=True, nullable=False)
