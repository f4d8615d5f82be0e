import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from docnotes.models.user import UserRole


class UserRegister(BaseModel):
    """Schema for account registration."""

    email: EmailStr = Field(..., description="User email address")
    password: str = Field(..., min_length=8, max_length=128, description="Password (8-128 characters)")
    full_name: str = Field(..., min_length=1, max_length=255, description="Display name")


class UserLogin(BaseModel):
    """Schema for user login."""

    email: EmailStr = Field(..., description="User email address")
    password: str = Field(..., min_length=1, description="User password")


class UserResponse(BaseModel):
    """Schema for user response."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    email: str
    full_name: str
    role: UserRole
    is_active: bool


class AuthResponse(BaseModel):
    """Session issued at login or registration."""

    user: UserResponse
    token: str = Field(..., description="Opaque bearer token")
    expires_at: datetime


class LogoutResponse(BaseModel):
    success: bool = True
    sessions_revoked: int = Field(0, ge=0)


class ProfileUpdate(BaseModel):
    """Fields a user may change on their own account."""

    full_name: str = Field(..., min_length=1, max_length=255)


class UserAdminUpdate(BaseModel):
    """Fields an admin may change on any account."""

    full_name: Optional[str] = Field(None, min_length=1, max_length=255)
    role: Optional[UserRole] = None
    is_active: Optional[bool] = None
