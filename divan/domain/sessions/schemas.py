"""Session room schemas"""

from typing import Optional

from pydantic import BaseModel, Field

from ...models import ChatMessage, SessionNotes
from ...shared.clock import to_iso

MAX_MESSAGE_LENGTH = 4000


class SendMessageRequest(BaseModel):
    message: str = Field(max_length=MAX_MESSAGE_LENGTH)


class ChatMessageResponse(BaseModel):
    id: str
    appointmentId: str
    senderId: str
    senderRole: str
    message: str
    createdAt: Optional[str]

    @classmethod
    def from_message(cls, chat_message: ChatMessage) -> "ChatMessageResponse":
        return cls(
            id=chat_message.id,
            appointmentId=chat_message.appointment_id,
            senderId=chat_message.sender_id,
            senderRole=chat_message.sender_role,
            message=chat_message.message,
            createdAt=to_iso(chat_message.created_at),
        )


class NotesUpdate(BaseModel):
    complaint: Optional[str] = None
    associations: Optional[str] = None
    interventions: Optional[str] = None
    plan: Optional[str] = None
    observations: Optional[str] = None


class NotesResponse(BaseModel):
    appointmentId: str
    complaint: Optional[str] = None
    associations: Optional[str] = None
    interventions: Optional[str] = None
    plan: Optional[str] = None
    observations: Optional[str] = None
    updatedAt: Optional[str] = None

    @classmethod
    def from_notes(cls, notes: SessionNotes) -> "NotesResponse":
        return cls(
            appointmentId=notes.appointment_id,
            complaint=notes.complaint,
            associations=notes.associations,
            interventions=notes.interventions,
            plan=notes.plan,
            observations=notes.observations,
            updatedAt=to_iso(notes.updated_at),
        )
