from sqlalchemy import Column, Integer, String, ForeignKey, Date, DateTime, Float, Text, Index, text, Enum as SQLEnum
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
import enum

from ..core.database import Base

class AppointmentStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

class CancelledBy(str, enum.Enum):
    PATIENT = "patient"
    DOCTOR = "doctor"
    ADMIN = "admin"

# Statuses that hold a slot
ACTIVE_STATUSES = (AppointmentStatus.PENDING, AppointmentStatus.CONFIRMED)

TERMINAL_STATUSES = (AppointmentStatus.COMPLETED, AppointmentStatus.CANCELLED)

ALLOWED_TRANSITIONS = {
    AppointmentStatus.PENDING: {
        AppointmentStatus.CONFIRMED,
        AppointmentStatus.COMPLETED,
        AppointmentStatus.CANCELLED,
    },
    AppointmentStatus.CONFIRMED: {
        AppointmentStatus.COMPLETED,
        AppointmentStatus.CANCELLED,
    },
    AppointmentStatus.COMPLETED: set(),
    AppointmentStatus.CANCELLED: set(),
}

DEFAULT_CANCELLATION_REASON = "No reason provided"

# Matches ACTIVE_STATUSES; the partial indexes below need it as literal SQL
_ACTIVE_SLOT = text("status IN ('pending', 'confirmed')")

def _enum_values(enum_cls):
    return [member.value for member in enum_cls]

class Appointment(Base):
    __tablename__ = "appointments"
    __table_args__ = (
        # A doctor and a patient can each hold a given slot only once while active
        Index(
            "uq_appointments_doctor_active_slot",
            "doctor_id", "appointment_date", "appointment_time",
            unique=True,
            postgresql_where=_ACTIVE_SLOT,
            sqlite_where=_ACTIVE_SLOT,
        ),
        Index(
            "uq_appointments_patient_active_slot",
            "patient_id", "appointment_date", "appointment_time",
            unique=True,
            postgresql_where=_ACTIVE_SLOT,
            sqlite_where=_ACTIVE_SLOT,
        ),
    )

    id = Column(Integer, primary_key=True, index=True)

    # Relationships
    patient_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    doctor_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    doctor_profile_id = Column(Integer, ForeignKey("doctors.id"), nullable=False)

    # Slot
    appointment_date = Column(Date, nullable=False)
    appointment_time = Column(String(5), nullable=False)

    # Appointment details
    reason = Column(Text, nullable=False)
    notes = Column(Text, nullable=False, default="")
    consultation_fee = Column(Float, nullable=False)
    status = Column(
        SQLEnum(
            AppointmentStatus,
            native_enum=False,
            length=20,
            values_callable=_enum_values,
        ),
        nullable=False,
        default=AppointmentStatus.PENDING,
    )

    # Cancellation
    cancelled_by = Column(
        SQLEnum(CancelledBy, native_enum=False, length=20, values_callable=_enum_values),
        nullable=True,
    )
    cancellation_reason = Column(String(255), nullable=True)

    # Tracking
    created_at = Column(DateTime, nullable=False, server_default=func.now())
    updated_at = Column(DateTime, nullable=False, server_default=func.now(), onupdate=func.now())

    patient = relationship("User", foreign_keys=[patient_id])
    doctor = relationship("User", foreign_keys=[doctor_id])
    doctor_profile = relationship("Doctor")

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES

    def __repr__(self):
        return (
            f"<Appointment(id={self.id}, patient_id={self.patient_id}, doctor_id={self.doctor_id}, "
            f"slot='{self.appointment_date} {self.appointment_time}', status='{self.status}')>"
        )
