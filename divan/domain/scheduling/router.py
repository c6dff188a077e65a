"""Scheduling router - slots, booking, availability and agenda"""

import logging
from datetime import date, datetime
from typing import Literal, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_current_user, require_professional
from ...config import Settings, get_settings
from ...database import get_db
from ...models import Profile
from ...services.outbox import dispatch_pending_events
from ...shared.clock import to_iso
from .schemas import (
    AppointmentResponse,
    BlockCreate,
    BlockResponse,
    BookRequest,
    RescheduleRequest,
    RuleCreate,
    RuleResponse,
    RuleUpdate,
    SettingsResponse,
    SettingsUpdate,
    StatusUpdate,
)
from .service import SchedulingService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/scheduling", tags=["Scheduling"])


def get_scheduling_service(db: Session = Depends(get_db)) -> SchedulingService:
    return SchedulingService(db)


# ============================================================================
# SLOTS
# ============================================================================


@router.get("/slots")
async def list_slots(
    professionalId: str = Query(...),
    day: date = Query(..., alias="date"),
    type: Optional[Literal["video", "chat"]] = Query(None),
    withStatus: bool = Query(False),
    service: SchedulingService = Depends(get_scheduling_service),
):
    """Bookable windows for one local day of the professional"""
    slots = service.list_slots(professionalId, type, day, include_unavailable=withStatus)
    return {
        "slots": [
            {"startAt": to_iso(s.start_at), "endAt": to_iso(s.end_at), "status": s.status} for s in slots
        ]
    }


# ============================================================================
# APPOINTMENTS
# ============================================================================


@router.post("/appointments", status_code=201)
async def book_appointment(
    data: BookRequest,
    background_tasks: BackgroundTasks,
    current_user: Profile = Depends(get_current_user),
    service: SchedulingService = Depends(get_scheduling_service),
    settings: Settings = Depends(get_settings),
):
    appointment = service.book(current_user, data.professionalId, data.appointmentType, data.startAt, data.endAt)
    background_tasks.add_task(dispatch_pending_events, settings)
    return {"success": True, "appointment": AppointmentResponse.from_appointment(appointment)}


@router.get("/appointments")
async def list_my_appointments(
    current_user: Profile = Depends(get_current_user),
    service: SchedulingService = Depends(get_scheduling_service),
):
    appointments = service.list_for_client(current_user)
    return {"appointments": [AppointmentResponse.from_appointment(a) for a in appointments]}


@router.post("/appointments/{appointment_id}/cancel")
async def cancel_appointment(
    appointment_id: str,
    background_tasks: BackgroundTasks,
    current_user: Profile = Depends(get_current_user),
    service: SchedulingService = Depends(get_scheduling_service),
    settings: Settings = Depends(get_settings),
):
    appointment, refunded = service.cancel(current_user, appointment_id)
    background_tasks.add_task(dispatch_pending_events, settings)
    return {
        "success": True,
        "creditRefunded": refunded,
        "appointment": AppointmentResponse.from_appointment(appointment),
    }


@router.post("/appointments/{appointment_id}/reschedule")
async def reschedule_appointment(
    appointment_id: str,
    data: RescheduleRequest,
    current_user: Profile = Depends(get_current_user),
    service: SchedulingService = Depends(get_scheduling_service),
):
    appointment = service.reschedule(current_user, appointment_id, data.startAt, data.endAt)
    return {"success": True, "appointment": AppointmentResponse.from_appointment(appointment)}


@router.post("/appointments/{appointment_id}/status")
async def update_appointment_status(
    appointment_id: str,
    data: StatusUpdate,
    professional: Profile = Depends(require_professional),
    service: SchedulingService = Depends(get_scheduling_service),
):
    appointment = service.update_status(professional, appointment_id, data.status)
    return {"success": True, "appointment": AppointmentResponse.from_appointment(appointment)}


@router.get("/agenda")
async def professional_agenda(
    start: datetime = Query(...),
    end: datetime = Query(...),
    professional: Profile = Depends(require_professional),
    service: SchedulingService = Depends(get_scheduling_service),
):
    appointments = service.agenda(professional, start, end)
    return {"appointments": [AppointmentResponse.from_appointment(a) for a in appointments]}


# ============================================================================
# SETTINGS, RULES & BLOCKS
# ============================================================================


@router.get("/settings")
async def get_settings_endpoint(
    professional: Profile = Depends(require_professional),
    service: SchedulingService = Depends(get_scheduling_service),
):
    return SettingsResponse.from_settings(service.get_professional_settings(professional.id))


@router.put("/settings")
async def update_settings_endpoint(
    data: SettingsUpdate,
    professional: Profile = Depends(require_professional),
    service: SchedulingService = Depends(get_scheduling_service),
):
    settings = service.update_professional_settings(professional, data)
    return {"success": True, "settings": SettingsResponse.from_settings(settings)}


@router.get("/rules")
async def list_rules(
    professional: Profile = Depends(require_professional),
    service: SchedulingService = Depends(get_scheduling_service),
):
    return {"rules": [RuleResponse.from_rule(r) for r in service.list_rules(professional)]}


@router.post("/rules", status_code=201)
async def create_rule(
    data: RuleCreate,
    professional: Profile = Depends(require_professional),
    service: SchedulingService = Depends(get_scheduling_service),
):
    rule = service.create_rule(professional, data)
    return {"success": True, "rule": RuleResponse.from_rule(rule)}


@router.patch("/rules/{rule_id}")
async def update_rule(
    rule_id: str,
    data: RuleUpdate,
    professional: Profile = Depends(require_professional),
    service: SchedulingService = Depends(get_scheduling_service),
):
    rule = service.set_rule_active(professional, rule_id, data.isActive)
    return {"success": True, "rule": RuleResponse.from_rule(rule)}


@router.delete("/rules/{rule_id}")
async def delete_rule(
    rule_id: str,
    professional: Profile = Depends(require_professional),
    service: SchedulingService = Depends(get_scheduling_service),
):
    service.delete_rule(professional, rule_id)
    return {"success": True}


@router.get("/blocks")
async def list_blocks(
    professional: Profile = Depends(require_professional),
    service: SchedulingService = Depends(get_scheduling_service),
):
    return {"blocks": [BlockResponse.from_block(b) for b in service.list_blocks(professional)]}


@router.post("/blocks", status_code=201)
async def create_block(
    data: BlockCreate,
    professional: Profile = Depends(require_professional),
    service: SchedulingService = Depends(get_scheduling_service),
):
    block = service.create_block(professional, data)
    return {"success": True, "block": BlockResponse.from_block(block)}


@router.delete("/blocks/{block_id}")
async def delete_block(
    block_id: str,
    professional: Profile = Depends(require_professional),
    service: SchedulingService = Depends(get_scheduling_service),
):
    service.delete_block(professional, block_id)
    return {"success": True}
