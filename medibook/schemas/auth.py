from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from typing import List, Optional
from datetime import datetime

from ..core.security import UserRole

class UserRegister(BaseModel):
    username: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    password: str = Field(..., min_length=6)
    role: UserRole = UserRole.PATIENT
    phone: Optional[str] = None
    address: Optional[str] = None

    # Doctor profile, required when role is doctor
    specialization: Optional[str] = None
    license_number: Optional[str] = None
    qualifications: List[str] = []
    experience: int = Field(0, ge=0)
    bio: str = ""
    consultation_fee: Optional[float] = None

    @field_validator("username")
    @classmethod
    def strip_username(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Username must not be blank")
        return value

class UserLogin(BaseModel):
    email: EmailStr
    password: str

class UserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    username: str
    email: str
    role: UserRole
    phone: Optional[str] = None
    address: Optional[str] = None
    is_active: bool
    last_login: Optional[datetime] = None
    created_at: Optional[datetime] = None

class DoctorInfo(BaseModel):
    profile_id: int
    is_verified: bool
    specialization: str

class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int
    user: UserResponse
    doctor_info: Optional[DoctorInfo] = None

class ProfileResponse(BaseModel):
    user: UserResponse
    doctor_info: Optional[DoctorInfo] = None

class RefreshTokenRequest(BaseModel):
    refresh_token: str

class ChangePassword(BaseModel):
    current_password: str
    new_password: str = Field(..., min_length=6)

class UserStatusUpdate(BaseModel):
    is_active: bool
