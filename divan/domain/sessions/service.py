"""Session room service - room state, video provisioning, chat and clinical notes"""

import logging
from datetime import datetime, timedelta
from typing import Callable, Optional

from sqlalchemy.orm import Session

from ...config import Settings
from ...errors import NotFound, SessionNotOpen, ValidationFailed
from ...models import Appointment, ChatMessage, Profile, SessionNotes
from ...policy import enforce
from ...services.daily_service import DailyService, room_name_for
from ...services.notification_service import notify
from ...shared.clock import to_iso, utcnow
from .repository import SessionRepository
from .schemas import MAX_MESSAGE_LENGTH, NotesUpdate

logger = logging.getLogger(__name__)

EARLY_JOIN = timedelta(minutes=10)
ROOM_GRACE = timedelta(hours=2)
TOKEN_GRACE = timedelta(minutes=20)
OPEN_STATUSES = ("scheduled", "rescheduled")
NOTE_FIELDS = ("complaint", "associations", "interventions", "plan", "observations")


class SessionService:
    def __init__(
        self,
        db: Session,
        settings: Settings,
        daily: Optional[DailyService] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.db = db
        self.settings = settings
        self.daily = daily or DailyService(settings)
        self.clock = clock
        self.repo = SessionRepository()

    def _get_for(self, caller: Profile, appointment_id: str, action: str = "participate") -> Appointment:
        appointment = self.repo.get_appointment(self.db, appointment_id)
        if not appointment:
            raise NotFound("Sessão não encontrada")
        enforce(caller, appointment, action)
        return appointment

    def _is_within_window(self, appointment: Appointment, now: datetime) -> bool:
        return appointment.start_at <= now <= appointment.end_at

    def _can_join(self, appointment: Appointment, now: datetime) -> bool:
        if appointment.status not in OPEN_STATUSES:
            return False
        return appointment.start_at - EARLY_JOIN <= now <= appointment.end_at

    # ========================================================================
    # ROOM
    # ========================================================================

    def get_room(self, caller: Profile, appointment_id: str) -> dict:
        appointment = self._get_for(caller, appointment_id, "view")
        now = self.clock()
        return {
            "appointment": appointment,
            "clientName": appointment.client.name if appointment.client else None,
            "professionalName": appointment.professional.name if appointment.professional else None,
            "isWithinWindow": self._is_within_window(appointment, now),
            "canJoin": self._can_join(appointment, now),
            "role": "professional" if caller.id == appointment.professional_id else "client",
        }

    async def ensure_video_room(self, caller: Profile, appointment_id: str) -> dict:
        """
        Provision (or reuse) the private Daily room for a video appointment and
        issue a meeting token for the caller.

        Returns:
            {"roomName": ..., "roomUrl": ..., "token": ...}
        """
        appointment = self._get_for(caller, appointment_id)

        if appointment.appointment_type != "video":
            raise ValidationFailed("Esta sessão não é por vídeo")
        if not self._can_join(appointment, self.clock()):
            raise SessionNotOpen()

        room_name = appointment.video_room_name or room_name_for(appointment.id)
        room = await self.daily.ensure_room(
            room_name,
            not_before=appointment.start_at - EARLY_JOIN,
            expires_at=appointment.end_at + ROOM_GRACE,
        )

        if appointment.video_room_name != room["name"]:
            appointment.video_room_name = room["name"]
            self.db.commit()
            logger.info(f"🎥 Video room {room['name']} linked to appointment {appointment.id}")

        is_professional = caller.id == appointment.professional_id
        token = await self.daily.create_meeting_token(
            room["name"],
            user_name=caller.name,
            is_owner=is_professional,
            expires_at=appointment.end_at + TOKEN_GRACE,
        )
        return {"roomName": room["name"], "roomUrl": room["url"], "token": token}

    # ========================================================================
    # CHAT
    # ========================================================================

    def list_messages(self, caller: Profile, appointment_id: str) -> list[ChatMessage]:
        appointment = self._get_for(caller, appointment_id)
        return self.repo.list_messages(self.db, appointment.id)

    def send_message(self, caller: Profile, appointment_id: str, message: str) -> ChatMessage:
        appointment = self._get_for(caller, appointment_id)

        text = (message or "").strip()
        if not text:
            raise ValidationFailed("Mensagem vazia")
        if len(text) > MAX_MESSAGE_LENGTH:
            raise ValidationFailed(f"Mensagem excede {MAX_MESSAGE_LENGTH} caracteres")
        if not self._can_join(appointment, self.clock()):
            raise SessionNotOpen()

        is_professional = caller.id == appointment.professional_id
        sender_role = "professional" if is_professional else "client"
        counterpart = appointment.user_id if is_professional else appointment.professional_id

        try:
            chat_message = self.repo.add_message(self.db, appointment.id, caller.id, sender_role, text)
            notify(
                self.db,
                counterpart,
                "chat_message",
                f"Nova mensagem de {caller.name}",
                text[:140],
                {
                    "chat_appointment_id": appointment.id,
                    "sender_name": caller.name,
                    "session_start_at": to_iso(appointment.start_at),
                },
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(chat_message)
        return chat_message

    # ========================================================================
    # NOTES
    # ========================================================================

    def get_notes(self, professional: Profile, appointment_id: str) -> Optional[SessionNotes]:
        appointment = self._get_for(professional, appointment_id, "write_notes")
        return self.repo.get_notes(self.db, appointment.id)

    def upsert_notes(self, professional: Profile, appointment_id: str, data: NotesUpdate) -> SessionNotes:
        appointment = self._get_for(professional, appointment_id, "write_notes")

        notes = self.repo.get_notes(self.db, appointment.id)
        if notes is None:
            notes = SessionNotes(
                appointment_id=appointment.id,
                professional_id=appointment.professional_id,
                user_id=appointment.user_id,
            )
            self.db.add(notes)
        else:
            enforce(professional, notes, "write")

        for field in NOTE_FIELDS:
            value = getattr(data, field)
            if value is not None:
                setattr(notes, field, value)

        self.db.commit()
        self.db.refresh(notes)
        logger.info(f"📝 Notes saved for appointment {appointment.id}")
        return notes
