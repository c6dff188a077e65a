"""Scheduling schemas - Pydantic models for availability and appointments"""

from datetime import datetime, time
from typing import Literal, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, Field, field_validator, model_validator

from ...models import Appointment, AvailabilityBlock, AvailabilityRule, ProfessionalSettings
from ...shared.clock import to_iso

AppointmentType = Literal["video", "chat"]


class SettingsUpdate(BaseModel):
    timezone: Optional[str] = None
    sessionDurationVideoMin: Optional[int] = Field(default=None, ge=10, le=240)
    sessionDurationChatMin: Optional[int] = Field(default=None, ge=10, le=240)
    minCancelHours: Optional[int] = Field(default=None, ge=0, le=168)

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v):
        if v is None:
            return v
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError("Fuso horário inválido") from e
        return v


class SettingsResponse(BaseModel):
    timezone: str
    sessionDurationVideoMin: int
    sessionDurationChatMin: int
    minCancelHours: int

    @classmethod
    def from_settings(cls, settings: ProfessionalSettings) -> "SettingsResponse":
        return cls(
            timezone=settings.timezone,
            sessionDurationVideoMin=settings.session_duration_video_min,
            sessionDurationChatMin=settings.session_duration_chat_min,
            minCancelHours=settings.min_cancel_hours,
        )


class RuleCreate(BaseModel):
    weekday: int = Field(ge=0, le=6)
    startTime: time
    endTime: time
    appointmentType: AppointmentType
    isActive: bool = True

    @model_validator(mode="after")
    def check_window(self):
        if self.startTime >= self.endTime:
            raise ValueError("Horário inicial deve ser anterior ao final")
        return self


class RuleUpdate(BaseModel):
    isActive: bool


class RuleResponse(BaseModel):
    id: str
    weekday: int
    startTime: time
    endTime: time
    appointmentType: str
    isActive: bool

    @classmethod
    def from_rule(cls, rule: AvailabilityRule) -> "RuleResponse":
        return cls(
            id=rule.id,
            weekday=rule.weekday,
            startTime=rule.start_time,
            endTime=rule.end_time,
            appointmentType=rule.appointment_type,
            isActive=rule.is_active,
        )


class BlockCreate(BaseModel):
    startAt: datetime
    endAt: datetime
    reason: Optional[str] = Field(default=None, max_length=255)

    @model_validator(mode="after")
    def check_window(self):
        if self.startAt >= self.endAt:
            raise ValueError("Início deve ser anterior ao fim")
        return self


class BlockResponse(BaseModel):
    id: str
    startAt: Optional[str]
    endAt: Optional[str]
    reason: Optional[str] = None

    @classmethod
    def from_block(cls, block: AvailabilityBlock) -> "BlockResponse":
        return cls(id=block.id, startAt=to_iso(block.start_at), endAt=to_iso(block.end_at), reason=block.reason)


class BookRequest(BaseModel):
    professionalId: str
    appointmentType: AppointmentType
    startAt: datetime
    endAt: Optional[datetime] = None


class RescheduleRequest(BaseModel):
    startAt: datetime
    endAt: Optional[datetime] = None


class StatusUpdate(BaseModel):
    status: Literal["completed", "cancelled"]


class AppointmentResponse(BaseModel):
    id: str
    userId: str
    professionalId: str
    appointmentType: str
    status: str
    startAt: Optional[str]
    endAt: Optional[str]
    creditId: Optional[str] = None
    clientName: Optional[str] = None
    professionalName: Optional[str] = None

    @classmethod
    def from_appointment(cls, appointment: Appointment) -> "AppointmentResponse":
        return cls(
            id=appointment.id,
            userId=appointment.user_id,
            professionalId=appointment.professional_id,
            appointmentType=appointment.appointment_type,
            status=appointment.status,
            startAt=to_iso(appointment.start_at),
            endAt=to_iso(appointment.end_at),
            creditId=appointment.credit_id,
            clientName=appointment.client.name if appointment.client else None,
            professionalName=appointment.professional.name if appointment.professional else None,
        )
