from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import Optional

from ...core.database import get_db
from ...api.deps import get_doctor_user
from ...services.appointment_service import AppointmentService
from ...services.doctor_service import DoctorService
from ...schemas.appointment import AppointmentList
from ...schemas.doctor import AvailabilityUpdate, DoctorList, DoctorResponse
from ...models.doctor import Doctor
from ...models.user import User
from .appointments import appointment_response

router = APIRouter(prefix="/doctors", tags=["Doctors"])

def doctor_response(doctor: Doctor, detailed: bool = False) -> DoctorResponse:
    """Flatten a doctor profile and its account; ``detailed`` adds license and schedule."""
    return DoctorResponse(
        id=doctor.id,
        user_id=doctor.user_id,
        name=doctor.user.username,
        email=doctor.user.email,
        phone=doctor.user.phone,
        specialization=doctor.specialization,
        license_number=doctor.license_number if detailed else None,
        qualifications=doctor.qualifications or [],
        experience=doctor.experience or 0,
        bio=doctor.bio or "",
        consultation_fee=doctor.consultation_fee,
        is_verified=doctor.is_verified,
        verified_at=doctor.verified_at,
        status=doctor.status,
        availability=doctor.availability if detailed else None,
        created_at=doctor.created_at,
    )

@router.get("/search", response_model=DoctorList)
async def search_doctors(
    specialization: Optional[str] = None,
    name: Optional[str] = None,
    db: Session = Depends(get_db)
):
    """Search verified, available doctors by specialization or name."""
    doctors = DoctorService(db).search(specialization=specialization, name=name)
    return DoctorList(
        count=len(doctors),
        doctors=[doctor_response(d) for d in doctors],
    )

@router.get("/me", response_model=DoctorResponse)
async def get_my_profile(
    current_user: User = Depends(get_doctor_user),
    db: Session = Depends(get_db)
):
    """Get the caller's own doctor profile."""
    return doctor_response(DoctorService(db).get_own_profile(current_user), detailed=True)

@router.put("/me/availability", response_model=DoctorResponse)
async def update_availability(
    update: AvailabilityUpdate,
    current_user: User = Depends(get_doctor_user),
    db: Session = Depends(get_db)
):
    """Update availability status and weekly schedule."""
    availability = None
    if update.availability is not None:
        availability = {
            day: [slot.model_dump() for slot in ranges]
            for day, ranges in update.availability.items()
        }

    doctor = DoctorService(db).update_availability(
        current_user, status=update.status, availability=availability
    )
    return doctor_response(doctor, detailed=True)

@router.get("/appointments/my", response_model=AppointmentList)
async def get_doctor_appointments(
    current_user: User = Depends(get_doctor_user),
    db: Session = Depends(get_db)
):
    """List appointments booked with the calling doctor."""
    appointments = AppointmentService(db).list_for_doctor(current_user)
    return AppointmentList(
        count=len(appointments),
        appointments=[appointment_response(a) for a in appointments],
    )

@router.get("/{doctor_id}", response_model=DoctorResponse)
async def get_doctor(
    doctor_id: int,
    db: Session = Depends(get_db)
):
    """Get a verified doctor's public profile."""
    return doctor_response(DoctorService(db).get_public(doctor_id), detailed=True)
