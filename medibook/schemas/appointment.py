from pydantic import BaseModel, field_validator
from typing import List, Optional
from datetime import date, datetime

from ..models.appointment import AppointmentStatus, CancelledBy

class AppointmentBook(BaseModel):
    # Presence is validated by the booking service so that a missing field
    # fails the same way as an empty one
    doctor_id: Optional[int] = None
    appointment_date: Optional[str] = None
    appointment_time: Optional[str] = None
    reason: Optional[str] = None
    notes: Optional[str] = None

    @field_validator("doctor_id", mode="before")
    @classmethod
    def blank_doctor_id(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value

class AppointmentCancel(BaseModel):
    cancellation_reason: Optional[str] = None

class AppointmentStatusUpdate(BaseModel):
    status: str

class Party(BaseModel):
    id: int
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None

class DoctorParty(Party):
    profile_id: int
    specialization: Optional[str] = None

class AppointmentResponse(BaseModel):
    id: int
    doctor: DoctorParty
    patient: Party
    appointment_date: date
    appointment_time: str
    reason: str
    notes: str
    status: AppointmentStatus
    consultation_fee: float
    cancelled_by: Optional[CancelledBy] = None
    cancellation_reason: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

class AppointmentList(BaseModel):
    count: int
    appointments: List[AppointmentResponse]

class CancellationResponse(BaseModel):
    id: int
    status: AppointmentStatus
    cancelled_by: CancelledBy
    cancellation_reason: str

class BookedSlots(BaseModel):
    doctor_id: int
    appointment_date: date
    booked_slots: List[str]
