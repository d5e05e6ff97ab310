from sqlalchemy.orm import Session, joinedload
from datetime import datetime
from typing import Dict, List, Optional
import logging

from ..core.exceptions import ForbiddenError, InvalidInputError, NotFoundError
from ..core.security import UserRole
from ..models.doctor import Doctor
from ..models.user import User

logger = logging.getLogger(__name__)

class DoctorService:
    """Doctor directory lookups plus the admin verification workflow."""

    def __init__(self, db: Session):
        self.db = db

    def get(self, profile_id: int) -> Doctor:
        doctor = self.db.query(Doctor).options(joinedload(Doctor.user)).filter(
            Doctor.id == profile_id
        ).first()
        if not doctor:
            raise NotFoundError("Doctor not found")
        return doctor

    def get_public(self, profile_id: int) -> Doctor:
        """Only verified doctors are visible to patients."""
        doctor = self.get(profile_id)
        if not doctor.is_verified:
            raise NotFoundError("Doctor not found")
        return doctor

    def search(self, specialization: Optional[str] = None, name: Optional[str] = None) -> List[Doctor]:
        query = self.db.query(Doctor).join(Doctor.user).options(joinedload(Doctor.user)).filter(
            Doctor.is_verified.is_(True),
            Doctor.status == "Available"
        )

        if specialization:
            query = query.filter(Doctor.specialization.ilike(f"%{specialization}%"))

        if name:
            pattern = f"%{name}%"
            query = query.filter(
                User.username.ilike(pattern) | Doctor.specialization.ilike(pattern)
            )

        return query.order_by(Doctor.id).all()

    def get_own_profile(self, caller: User) -> Doctor:
        doctor = self.db.query(Doctor).filter(Doctor.user_id == caller.id).first()
        if not doctor:
            raise NotFoundError("Doctor profile not found")
        return doctor

    def update_availability(
        self,
        caller: User,
        status: Optional[str] = None,
        availability: Optional[Dict[str, list]] = None,
    ) -> Doctor:
        doctor = self.get_own_profile(caller)

        if status:
            doctor.status = status
        if availability is not None:
            merged = dict(doctor.availability or {})
            merged.update(availability)
            doctor.availability = merged

        self.db.commit()
        self.db.refresh(doctor)
        return doctor

    # Admin operations

    def list_pending(self) -> List[Doctor]:
        return self.db.query(Doctor).options(joinedload(Doctor.user)).filter(
            Doctor.is_verified.is_(False)
        ).order_by(Doctor.created_at.asc(), Doctor.id.asc()).all()

    def verify(self, admin: User, profile_id: int, decision: str) -> Doctor:
        """Approve or reject a doctor's credentials.

        Rejection leaves the profile unverified rather than removing it.
        """
        if decision not in ("approved", "rejected"):
            raise InvalidInputError("Invalid status")

        doctor = self.get(profile_id)

        if decision == "approved":
            doctor.is_verified = True
            doctor.verified_at = datetime.utcnow()
            doctor.verified_by = admin.id
        else:
            doctor.is_verified = False

        self.db.commit()
        self.db.refresh(doctor)
        logger.info(f"Doctor profile {doctor.id} {decision} by admin {admin.id}")
        return doctor

    def list_users(self, role: Optional[UserRole] = None) -> List[User]:
        query = self.db.query(User)
        if role:
            query = query.filter(User.role == role)
        return query.order_by(User.created_at.desc(), User.id.desc()).all()

    def set_user_active(self, user_id: int, is_active: bool) -> User:
        user = self.db.query(User).filter(User.id == user_id).first()
        if not user:
            raise NotFoundError("User not found")
        if user.role == UserRole.ADMIN:
            raise ForbiddenError("Cannot change admin account status")

        user.is_active = is_active
        self.db.commit()
        self.db.refresh(user)
        logger.info(f"User {user.id} {'enabled' if is_active else 'disabled'}")
        return user
