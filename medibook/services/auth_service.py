from sqlalchemy.orm import Session
from fastapi import HTTPException, status
from datetime import datetime, timedelta
from typing import Optional
import hashlib
import logging

from ..core.config import settings
from ..models.doctor import Doctor
from ..models.user import User, RefreshToken
from ..core.security import (
    verify_password, get_password_hash, create_token_pair,
    verify_token, normalize_email, UserRole, SELF_REGISTERABLE_ROLES
)
from ..schemas.auth import UserRegister, UserLogin, TokenResponse, UserResponse, DoctorInfo

logger = logging.getLogger(__name__)

class AuthService:
    def __init__(self, db: Session):
        self.db = db

    def register_user(self, user_data: UserRegister) -> User:
        """Register a patient or doctor; doctors get an unverified profile."""
        if user_data.role not in SELF_REGISTERABLE_ROLES:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Admin accounts cannot be registered"
            )

        email = normalize_email(user_data.email)

        existing_user = self.db.query(User).filter(User.email == email).first()
        if existing_user:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Email already registered"
            )

        if user_data.role == UserRole.DOCTOR:
            self._check_doctor_fields(user_data)

        new_user = User(
            username=user_data.username,
            email=email,
            password_hash=get_password_hash(user_data.password),
            role=user_data.role,
            phone=user_data.phone.strip() if user_data.phone else None,
            address=user_data.address.strip() if user_data.address else None,
            is_active=True,
        )
        self.db.add(new_user)

        if user_data.role == UserRole.DOCTOR:
            # Flush to get the user id; both rows commit together
            self.db.flush()
            fee = user_data.consultation_fee
            self.db.add(Doctor(
                user_id=new_user.id,
                specialization=user_data.specialization.strip(),
                license_number=user_data.license_number.strip(),
                qualifications=list(user_data.qualifications),
                experience=user_data.experience,
                bio=user_data.bio,
                consultation_fee=fee if fee is not None else settings.MIN_CONSULTATION_FEE,
                is_verified=False,
            ))

        self.db.commit()
        self.db.refresh(new_user)

        logger.info(f"Registered {new_user.role.value} {new_user.email} (id={new_user.id})")
        return new_user

    def _check_doctor_fields(self, user_data: UserRegister):
        if not user_data.specialization or not user_data.license_number:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Specialization and license number are required for doctor registration"
            )

        fee = user_data.consultation_fee
        if fee is not None and fee < settings.MIN_CONSULTATION_FEE:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Consultation fee must be at least {settings.MIN_CONSULTATION_FEE:g}"
            )

        existing_license = self.db.query(Doctor).filter(
            Doctor.license_number == user_data.license_number.strip()
        ).first()
        if existing_license:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="License number already registered"
            )

    def authenticate_user(self, login_data: UserLogin) -> TokenResponse:
        """Authenticate user and return tokens."""
        email = normalize_email(login_data.email)
        user = self.db.query(User).filter(User.email == email).first()

        if not user:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid email or password"
            )

        # Check account lockout
        if user.locked_until and user.locked_until > datetime.utcnow():
            raise HTTPException(
                status_code=status.HTTP_423_LOCKED,
                detail="Account is temporarily locked due to multiple failed login attempts"
            )

        if not verify_password(login_data.password, user.password_hash):
            self._handle_failed_login(user)
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid email or password"
            )

        if not user.is_active:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Account is deactivated. Please contact admin."
            )

        # Reset failed login attempts
        user.failed_login_attempts = 0
        user.locked_until = None
        user.last_login = datetime.utcnow()

        tokens = create_token_pair(user.id, user.email, user.role)
        self._store_refresh_token(user.id, tokens.refresh_token)

        self.db.commit()
        self.db.refresh(user)

        return self._token_response(user, tokens)

    def refresh_access_token(self, refresh_token: str) -> TokenResponse:
        """Refresh access token using refresh token."""
        token_payload = verify_token(refresh_token)
        if not token_payload or token_payload.token_type != "refresh":
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid refresh token"
            )

        token_hash = hashlib.sha256(refresh_token.encode()).hexdigest()
        stored_token = self.db.query(RefreshToken).filter(
            RefreshToken.token_hash == token_hash,
            RefreshToken.is_revoked.is_(False),
            RefreshToken.expires_at > datetime.utcnow()
        ).first()

        if not stored_token:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid or expired refresh token"
            )

        user = self.db.query(User).filter(User.id == token_payload.user_id).first()

        if not user or not user.is_active:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="User not found or inactive"
            )

        new_tokens = create_token_pair(user.id, user.email, user.role)

        # Revoke old refresh token and store new one
        stored_token.is_revoked = True
        self._store_refresh_token(user.id, new_tokens.refresh_token)

        self.db.commit()

        return self._token_response(user, new_tokens)

    def logout_user(self, refresh_token: str) -> bool:
        """Logout user by revoking refresh token."""
        token_hash = hashlib.sha256(refresh_token.encode()).hexdigest()
        stored_token = self.db.query(RefreshToken).filter(
            RefreshToken.token_hash == token_hash
        ).first()

        if not stored_token:
            return False

        stored_token.is_revoked = True
        self.db.commit()
        return True

    def change_password(self, user: User, current_password: str, new_password: str):
        if not verify_password(current_password, user.password_hash):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Current password is incorrect"
            )

        user.password_hash = get_password_hash(new_password)

        # Force re-login everywhere else
        self.db.query(RefreshToken).filter(
            RefreshToken.user_id == user.id
        ).update({"is_revoked": True})

        self.db.commit()

    def doctor_info(self, user: User) -> Optional[DoctorInfo]:
        if user.role != UserRole.DOCTOR:
            return None
        profile = self.db.query(Doctor).filter(Doctor.user_id == user.id).first()
        if not profile:
            return None
        return DoctorInfo(
            profile_id=profile.id,
            is_verified=profile.is_verified,
            specialization=profile.specialization,
        )

    def _token_response(self, user: User, tokens) -> TokenResponse:
        return TokenResponse(
            access_token=tokens.access_token,
            refresh_token=tokens.refresh_token,
            token_type=tokens.token_type,
            expires_in=tokens.expires_in,
            user=UserResponse.model_validate(user),
            doctor_info=self.doctor_info(user),
        )

    def _handle_failed_login(self, user: User):
        """Count a failed login and lock the account past the threshold."""
        user.failed_login_attempts = (user.failed_login_attempts or 0) + 1

        if user.failed_login_attempts >= settings.MAX_FAILED_LOGINS:
            user.locked_until = datetime.utcnow() + timedelta(minutes=settings.LOCKOUT_MINUTES)
            logger.warning(f"Account {user.email} locked after {user.failed_login_attempts} failed logins")

        self.db.commit()

    def _store_refresh_token(self, user_id: int, refresh_token: str):
        """Store refresh token in database."""
        token_hash = hashlib.sha256(refresh_token.encode()).hexdigest()

        token_payload = verify_token(refresh_token)
        if token_payload and token_payload.exp:
            expires_at = datetime.utcfromtimestamp(token_payload.exp)
        else:
            expires_at = datetime.utcnow() + timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS)

        # One live refresh token per user
        self.db.query(RefreshToken).filter(
            RefreshToken.user_id == user_id
        ).update({"is_revoked": True})

        self.db.add(RefreshToken(
            user_id=user_id,
            token_hash=token_hash,
            expires_at=expires_at
        ))
