"""Catalog schemas - Pydantic models for products"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator

from ...models import Product

AppointmentType = Literal["video", "chat"]


class ProductCreate(BaseModel):
    title: str
    description: Optional[str] = None
    appointmentType: AppointmentType
    sessionsCount: int = Field(gt=0, le=100)
    priceCents: int = Field(gt=0)
    isActive: bool = True

    @field_validator("title")
    @classmethod
    def validate_title(cls, v):
        v = (v or "").strip()
        if len(v) < 2:
            raise ValueError("Título deve ter pelo menos 2 caracteres")
        return v


class ProductUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    sessionsCount: Optional[int] = Field(default=None, gt=0, le=100)
    priceCents: Optional[int] = Field(default=None, gt=0)
    isActive: Optional[bool] = None


class ProductResponse(BaseModel):
    id: str
    professionalId: str
    title: str
    description: Optional[str] = None
    appointmentType: str
    sessionsCount: int
    priceCents: int
    isActive: bool
    createdAt: Optional[datetime] = None

    @classmethod
    def from_product(cls, product: Product) -> "ProductResponse":
        return cls(
            id=product.id,
            professionalId=product.professional_id,
            title=product.title,
            description=product.description,
            appointmentType=product.appointment_type,
            sessionsCount=product.sessions_count,
            priceCents=product.price_cents,
            isActive=product.is_active,
            createdAt=product.created_at,
        )
