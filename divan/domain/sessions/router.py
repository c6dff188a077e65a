"""Session room router - room info, video access, chat and notes"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...auth import get_current_user, require_professional
from ...config import Settings, get_settings
from ...database import get_db
from ...models import Profile
from ..scheduling.schemas import AppointmentResponse
from .schemas import ChatMessageResponse, NotesResponse, NotesUpdate, SendMessageRequest
from .service import SessionService

router = APIRouter(prefix="/api/sessions", tags=["Sessions"])


def get_session_service(
    db: Session = Depends(get_db), settings: Settings = Depends(get_settings)
) -> SessionService:
    return SessionService(db, settings)


@router.get("/{appointment_id}")
async def get_room(
    appointment_id: str,
    current_user: Profile = Depends(get_current_user),
    service: SessionService = Depends(get_session_service),
):
    room = service.get_room(current_user, appointment_id)
    return {
        "appointment": AppointmentResponse.from_appointment(room["appointment"]),
        "clientName": room["clientName"],
        "professionalName": room["professionalName"],
        "isWithinWindow": room["isWithinWindow"],
        "canJoin": room["canJoin"],
        "role": room["role"],
    }


@router.post("/{appointment_id}/video-room")
async def video_room(
    appointment_id: str,
    current_user: Profile = Depends(get_current_user),
    service: SessionService = Depends(get_session_service),
):
    """Room URL and a meeting token for the caller"""
    return await service.ensure_video_room(current_user, appointment_id)


@router.get("/{appointment_id}/messages")
async def list_messages(
    appointment_id: str,
    current_user: Profile = Depends(get_current_user),
    service: SessionService = Depends(get_session_service),
):
    messages = service.list_messages(current_user, appointment_id)
    return {"messages": [ChatMessageResponse.from_message(m) for m in messages]}


@router.post("/{appointment_id}/messages", status_code=201)
async def send_message(
    appointment_id: str,
    data: SendMessageRequest,
    current_user: Profile = Depends(get_current_user),
    service: SessionService = Depends(get_session_service),
):
    chat_message = service.send_message(current_user, appointment_id, data.message)
    return {"success": True, "message": ChatMessageResponse.from_message(chat_message)}


@router.get("/{appointment_id}/notes")
async def get_notes(
    appointment_id: str,
    professional: Profile = Depends(require_professional),
    service: SessionService = Depends(get_session_service),
):
    notes = service.get_notes(professional, appointment_id)
    return {"notes": NotesResponse.from_notes(notes) if notes else None}


@router.put("/{appointment_id}/notes")
async def upsert_notes(
    appointment_id: str,
    data: NotesUpdate,
    professional: Profile = Depends(require_professional),
    service: SessionService = Depends(get_session_service),
):
    notes = service.upsert_notes(professional, appointment_id, data)
    return {"success": True, "notes": NotesResponse.from_notes(notes)}
