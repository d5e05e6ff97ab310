from pydantic import BaseModel, field_validator
from typing import Dict, List, Optional
from datetime import datetime

from ..models.doctor import DOCTOR_STATUSES, WEEKDAYS

class TimeRange(BaseModel):
    start: str
    end: str

class DoctorResponse(BaseModel):
    id: int
    user_id: int
    name: str
    email: str
    phone: Optional[str] = None
    specialization: str
    license_number: Optional[str] = None
    qualifications: List[str]
    experience: int
    bio: str
    consultation_fee: float
    is_verified: bool
    verified_at: Optional[datetime] = None
    status: str
    availability: Optional[Dict[str, List[TimeRange]]] = None
    created_at: Optional[datetime] = None

class DoctorList(BaseModel):
    count: int
    doctors: List[DoctorResponse]

class AvailabilityUpdate(BaseModel):
    status: Optional[str] = None
    availability: Optional[Dict[str, List[TimeRange]]] = None

    @field_validator("status")
    @classmethod
    def known_status(cls, value):
        if value is not None and value not in DOCTOR_STATUSES:
            raise ValueError(f"Status must be one of: {', '.join(DOCTOR_STATUSES)}")
        return value

    @field_validator("availability")
    @classmethod
    def known_weekdays(cls, value):
        if value is not None:
            unknown = set(value) - set(WEEKDAYS)
            if unknown:
                raise ValueError(f"Unknown weekdays: {', '.join(sorted(unknown))}")
        return value

class VerificationDecision(BaseModel):
    status: str  # "approved" or "rejected"
