"""Session room repository - appointments, chat messages and notes"""

from typing import Optional

from sqlalchemy.orm import Session, joinedload

from ...models import Appointment, ChatMessage, SessionNotes


class SessionRepository:
    """Repository for session room database operations"""

    @staticmethod
    def get_appointment(db: Session, appointment_id: str) -> Optional[Appointment]:
        return (
            db.query(Appointment)
            .options(joinedload(Appointment.client), joinedload(Appointment.professional))
            .filter(Appointment.id == appointment_id)
            .first()
        )

    @staticmethod
    def list_messages(db: Session, appointment_id: str) -> list[ChatMessage]:
        return (
            db.query(ChatMessage)
            .filter(ChatMessage.appointment_id == appointment_id)
            .order_by(ChatMessage.created_at.asc(), ChatMessage.id.asc())
            .all()
        )

    @staticmethod
    def add_message(db: Session, appointment_id: str, sender_id: str, sender_role: str, message: str) -> ChatMessage:
        chat_message = ChatMessage(
            appointment_id=appointment_id,
            sender_id=sender_id,
            sender_role=sender_role,
            message=message,
        )
        db.add(chat_message)
        db.flush()
        return chat_message

    @staticmethod
    def get_notes(db: Session, appointment_id: str) -> Optional[SessionNotes]:
        return db.query(SessionNotes).filter(SessionNotes.appointment_id == appointment_id).first()
