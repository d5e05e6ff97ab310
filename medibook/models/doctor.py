from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Boolean, Text, Float, JSON
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship

from ..core.database import Base

DOCTOR_STATUSES = ("Available", "Busy", "On Leave")
WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")

def empty_availability():
    return {day: [] for day in WEEKDAYS}

class Doctor(Base):
    __tablename__ = "doctors"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), unique=True, nullable=False)

    # Professional information
    specialization = Column(String(100), nullable=False)
    license_number = Column(String(50), nullable=False, unique=True)
    qualifications = Column(JSON, nullable=False, default=list)
    experience = Column(Integer, nullable=False, default=0)  # years
    bio = Column(Text, nullable=False, default="")

    # Current fee; appointments keep their own copy taken at booking time
    consultation_fee = Column(Float, nullable=False)

    # Admin verification
    is_verified = Column(Boolean, nullable=False, default=False)
    verified_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    verified_at = Column(DateTime, nullable=True)

    # Availability
    availability = Column(JSON, nullable=False, default=empty_availability)
    status = Column(String(20), nullable=False, default="Available")

    # Timestamps
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    # Relationships
    user = relationship("User", back_populates="doctor_profile", foreign_keys=[user_id])
    verifier = relationship("User", foreign_keys=[verified_by])

    def __repr__(self):
        return f"<Doctor(id={self.id}, user_id={self.user_id}, specialization='{self.specialization}')>"
