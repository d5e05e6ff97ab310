from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List, Optional

from ...core.database import get_db
from ...core.security import UserRole
from ...api.deps import get_admin_user
from ...services.doctor_service import DoctorService
from ...schemas.auth import UserResponse, UserStatusUpdate
from ...schemas.doctor import DoctorResponse, VerificationDecision
from ...models.user import User
from .doctors import doctor_response

router = APIRouter(prefix="/admin", tags=["Admin"])

@router.get("/pending-doctors", response_model=List[DoctorResponse])
async def get_pending_doctors(
    _: User = Depends(get_admin_user),
    db: Session = Depends(get_db)
):
    """List doctors waiting for credential verification."""
    return [doctor_response(d, detailed=True) for d in DoctorService(db).list_pending()]

@router.put("/verify-doctor/{doctor_id}")
async def verify_doctor(
    doctor_id: int,
    decision: VerificationDecision,
    current_user: User = Depends(get_admin_user),
    db: Session = Depends(get_db)
):
    """Approve or reject a doctor."""
    doctor = DoctorService(db).verify(current_user, doctor_id, decision.status)
    message = (
        "Doctor verified successfully" if doctor.is_verified
        else "Doctor verification rejected"
    )
    return {"message": message, "doctor": doctor_response(doctor, detailed=True)}

@router.get("/users", response_model=List[UserResponse])
async def list_users(
    role: Optional[UserRole] = None,
    _: User = Depends(get_admin_user),
    db: Session = Depends(get_db)
):
    """List all users, optionally filtered by role."""
    return [UserResponse.model_validate(u) for u in DoctorService(db).list_users(role)]

@router.put("/users/{user_id}/status")
async def update_user_status(
    user_id: int,
    status_data: UserStatusUpdate,
    _: User = Depends(get_admin_user),
    db: Session = Depends(get_db)
):
    """Enable or disable a non-admin account."""
    user = DoctorService(db).set_user_active(user_id, status_data.is_active)
    return {
        "message": "User enabled" if user.is_active else "User disabled",
        "user": {"id": user.id, "is_active": user.is_active}
    }
