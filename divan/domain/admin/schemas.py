"""Admin schemas"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, field_validator

from ...models import Profile
from ...shared.validators import validate_br_phone, validate_email


class AdminUserUpdate(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    status: Optional[Literal["active", "blocked", "pending_email"]] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        if v is None:
            return v
        v = v.strip()
        if len(v) < 2:
            raise ValueError("Nome deve ter pelo menos 2 caracteres")
        return v

    @field_validator("email")
    @classmethod
    def validate_email_format(cls, v):
        if v is None:
            return v
        if not v.strip():
            raise ValueError("E-mail inválido")
        return validate_email(v)

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, v):
        if v:
            return validate_br_phone(v)
        return v


class AdminUserResponse(BaseModel):
    id: str
    name: str
    email: str
    phone: Optional[str] = None
    status: str
    emailVerifiedAt: Optional[datetime] = None
    createdAt: datetime

    @classmethod
    def from_profile(cls, profile: Profile) -> "AdminUserResponse":
        return cls(
            id=profile.id,
            name=profile.name,
            email=profile.email,
            phone=profile.phone,
            status=profile.status,
            emailVerifiedAt=profile.email_verified_at,
            createdAt=profile.created_at,
        )
