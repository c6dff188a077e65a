"""Account schemas - Pydantic models for validation"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, field_validator

from ...models import Profile
from ...shared.validators import validate_br_phone, validate_email


class RegisterRequest(BaseModel):
    name: str
    email: str
    password: str
    phone: Optional[str] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        v = (v or "").strip()
        if len(v) < 2:
            raise ValueError("Nome deve ter pelo menos 2 caracteres")
        return v

    @field_validator("email")
    @classmethod
    def validate_email_format(cls, v):
        if not v or not v.strip():
            raise ValueError("E-mail é obrigatório")
        return validate_email(v)

    @field_validator("password")
    @classmethod
    def validate_password(cls, v):
        if not v or len(v) < 6:
            raise ValueError("Senha deve ter pelo menos 6 caracteres")
        return v

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, v):
        if v:
            return validate_br_phone(v)
        return v


class LoginRequest(BaseModel):
    email: str
    password: str

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v):
        return (v or "").strip().lower()


class ResendVerificationRequest(BaseModel):
    email: Optional[str] = None


class VerifyEmailRequest(BaseModel):
    token: Optional[str] = None


class ForgotPasswordRequest(BaseModel):
    email: Optional[str] = None


class ResetPasswordRequest(BaseModel):
    token: Optional[str] = None
    password: str

    @field_validator("password")
    @classmethod
    def validate_password(cls, v):
        if not v or len(v) < 6:
            raise ValueError("Senha deve ter pelo menos 6 caracteres")
        return v


class ProfileResponse(BaseModel):
    id: str
    name: str
    email: str
    phone: Optional[str] = None
    role: str
    status: str
    emailVerified: bool
    emailVerifiedAt: Optional[datetime] = None
    createdAt: Optional[datetime] = None

    @classmethod
    def from_profile(cls, profile: Profile) -> "ProfileResponse":
        return cls(
            id=profile.id,
            name=profile.name,
            email=profile.email,
            phone=profile.phone,
            role=profile.role,
            status=profile.status,
            emailVerified=profile.is_email_verified,
            emailVerifiedAt=profile.email_verified_at,
            createdAt=profile.created_at,
        )
