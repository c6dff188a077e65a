"""Scheduling service - availability, slots, booking, cancellation and agenda"""

import logging
from datetime import date, datetime, timedelta
from typing import Callable, Optional

from sqlalchemy.orm import Session

from ...errors import (
    CancellationWindowClosed,
    InsufficientCredits,
    NotFound,
    SlotTaken,
    ValidationFailed,
)
from ...models import Appointment, AvailabilityBlock, AvailabilityRule, ProfessionalSettings, Profile
from ...policy import enforce
from ...services.notification_service import notify
from ...services.outbox import enqueue
from ...shared.clock import DEFAULT_TIMEZONE, as_utc_naive, format_local, to_iso, utcnow
from . import slots as slot_engine
from .repository import LIVE_STATUSES, SchedulingRepository
from .schemas import BlockCreate, RuleCreate, SettingsUpdate

logger = logging.getLogger(__name__)

REMINDER_LEAD = timedelta(hours=1)


def default_settings(professional_id: str) -> ProfessionalSettings:
    return ProfessionalSettings(
        professional_id=professional_id,
        timezone=DEFAULT_TIMEZONE,
        session_duration_video_min=50,
        session_duration_chat_min=50,
        min_cancel_hours=24,
    )


class SchedulingService:
    """Service layer for the booking workflow"""

    def __init__(self, db: Session, clock: Callable[[], datetime] = utcnow):
        self.db = db
        self.clock = clock
        self.repo = SchedulingRepository()

    # ========================================================================
    # PROFESSIONAL SETTINGS & AVAILABILITY
    # ========================================================================

    def get_professional_settings(self, professional_id: str) -> ProfessionalSettings:
        return self.repo.get_settings(self.db, professional_id) or default_settings(professional_id)

    def update_professional_settings(self, professional: Profile, data: SettingsUpdate) -> ProfessionalSettings:
        settings = self.repo.get_settings(self.db, professional.id)
        if not settings:
            settings = default_settings(professional.id)
            self.db.add(settings)

        if data.timezone is not None:
            settings.timezone = data.timezone
        if data.sessionDurationVideoMin is not None:
            settings.session_duration_video_min = data.sessionDurationVideoMin
        if data.sessionDurationChatMin is not None:
            settings.session_duration_chat_min = data.sessionDurationChatMin
        if data.minCancelHours is not None:
            settings.min_cancel_hours = data.minCancelHours

        self.db.commit()
        self.db.refresh(settings)
        return settings

    def list_rules(self, professional: Profile) -> list[AvailabilityRule]:
        return self.repo.list_rules(self.db, professional.id)

    def create_rule(self, professional: Profile, data: RuleCreate) -> AvailabilityRule:
        rule = AvailabilityRule(
            professional_id=professional.id,
            weekday=data.weekday,
            start_time=data.startTime,
            end_time=data.endTime,
            appointment_type=data.appointmentType,
            is_active=data.isActive,
        )
        self.db.add(rule)
        self.db.commit()
        self.db.refresh(rule)
        return rule

    def set_rule_active(self, professional: Profile, rule_id: str, is_active: bool) -> AvailabilityRule:
        rule = self.repo.get_rule(self.db, rule_id, professional.id)
        if not rule:
            raise NotFound("Regra não encontrada")
        rule.is_active = is_active
        self.db.commit()
        self.db.refresh(rule)
        return rule

    def delete_rule(self, professional: Profile, rule_id: str) -> None:
        rule = self.repo.get_rule(self.db, rule_id, professional.id)
        if not rule:
            raise NotFound("Regra não encontrada")
        self.db.delete(rule)
        self.db.commit()

    def list_blocks(self, professional: Profile) -> list[AvailabilityBlock]:
        return self.repo.list_blocks(self.db, professional.id)

    def create_block(self, professional: Profile, data: BlockCreate) -> AvailabilityBlock:
        block = AvailabilityBlock(
            professional_id=professional.id,
            start_at=as_utc_naive(data.startAt),
            end_at=as_utc_naive(data.endAt),
            reason=data.reason,
        )
        self.db.add(block)
        self.db.commit()
        self.db.refresh(block)
        return block

    def delete_block(self, professional: Profile, block_id: str) -> None:
        block = self.repo.get_block(self.db, block_id, professional.id)
        if not block:
            raise NotFound("Bloqueio não encontrado")
        self.db.delete(block)
        self.db.commit()

    # ========================================================================
    # SLOTS
    # ========================================================================

    def list_slots(
        self,
        professional_id: str,
        appointment_type: Optional[str],
        day: date,
        include_unavailable: bool = False,
        exclude_appointment_id: Optional[str] = None,
    ) -> list[slot_engine.Slot]:
        settings = self.get_professional_settings(professional_id)
        day_start, day_end = slot_engine.local_day_bounds(day, settings.timezone)
        # Slots may run past local midnight
        window_end = day_end + timedelta(hours=6)

        rules = self.repo.list_rules(self.db, professional_id, active_only=True)
        blocks = [(b.start_at, b.end_at) for b in self.repo.list_blocks(self.db, professional_id, day_start, window_end)]
        booked = [
            (a.start_at, a.end_at)
            for a in self.repo.live_overlapping(self.db, professional_id, day_start, window_end)
            if a.id != exclude_appointment_id
        ]

        # Without a type filter a slot length must still be chosen per rule
        if appointment_type:
            types = [appointment_type]
        else:
            types = sorted({r.appointment_type for r in rules})

        result: list[slot_engine.Slot] = []
        for current_type in types:
            result.extend(
                slot_engine.generate_slots(
                    day,
                    rules,
                    settings.timezone,
                    settings.duration_for(current_type),
                    blocks,
                    booked,
                    self.clock(),
                    appointment_type=current_type,
                )
            )

        if not include_unavailable:
            result = [s for s in result if s.is_available]
        return sorted(result, key=lambda s: s.start_at)

    def _require_offered_slot(
        self,
        professional_id: str,
        appointment_type: str,
        start_at: datetime,
        end_at: Optional[datetime],
        exclude_appointment_id: Optional[str] = None,
    ) -> slot_engine.Slot:
        settings = self.get_professional_settings(professional_id)
        day = slot_engine.local_day_of(start_at, settings.timezone)
        candidates = self.list_slots(
            professional_id,
            appointment_type,
            day,
            include_unavailable=True,
            exclude_appointment_id=exclude_appointment_id,
        )
        slot = next((s for s in candidates if s.start_at == start_at), None)

        if slot is None:
            raise ValidationFailed("Horário fora da disponibilidade do profissional")
        if end_at is not None and end_at != slot.end_at:
            raise ValidationFailed("Duração da sessão não corresponde ao horário oferecido")
        if slot.status == slot_engine.PAST:
            raise ValidationFailed("Este horário já passou")
        if slot.status == slot_engine.BLOCKED:
            raise ValidationFailed("Horário indisponível")
        if slot.status == slot_engine.BOOKED:
            raise SlotTaken()
        return slot

    # ========================================================================
    # BOOKING
    # ========================================================================

    def book(
        self,
        client: Profile,
        professional_id: str,
        appointment_type: str,
        start_at: datetime,
        end_at: Optional[datetime] = None,
    ) -> Appointment:
        """
        Consume one credit unit and create the appointment in one transaction.
        Raises InsufficientCredits when no active credit with balance exists
        (including when a concurrent booking took the last unit).
        """
        start_at = as_utc_naive(start_at)
        end_at = as_utc_naive(end_at) if end_at else None

        if not self.repo.usable_credit_ids(self.db, client.id, professional_id, appointment_type):
            raise InsufficientCredits()

        slot = self._require_offered_slot(professional_id, appointment_type, start_at, end_at)

        try:
            if self.repo.live_overlapping(self.db, professional_id, slot.start_at, slot.end_at, lock=True):
                raise SlotTaken()

            credit_id = None
            for candidate_id in self.repo.usable_credit_ids(self.db, client.id, professional_id, appointment_type):
                if self.repo.consume_credit(self.db, candidate_id):
                    credit_id = candidate_id
                    break
            if credit_id is None:
                raise InsufficientCredits()

            appointment = Appointment(
                user_id=client.id,
                professional_id=professional_id,
                appointment_type=appointment_type,
                status="scheduled",
                start_at=slot.start_at,
                end_at=slot.end_at,
                credit_id=credit_id,
            )
            self.db.add(appointment)
            self.db.flush()

            settings = self.get_professional_settings(professional_id)
            when = format_local(slot.start_at, settings.timezone)
            notify(
                self.db,
                professional_id,
                "appointment_new",
                "Nova sessão agendada",
                f"{client.name} agendou uma sessão ({appointment_type}) para {when}.",
                {
                    "appointment_id": appointment.id,
                    "session_start_at": to_iso(slot.start_at),
                    "link": f"/profissional/sessoes/{appointment.id}",
                },
            )
            enqueue(
                self.db,
                "email.appointment_confirmation",
                {
                    "to": client.email,
                    "user_name": client.name,
                    "when": when,
                    "appointment_type": appointment_type,
                    "appointment_id": appointment.id,
                },
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(appointment)
        logger.info(f"📅 Appointment {appointment.id} booked by {client.id} using credit {credit_id}")
        return appointment

    def cancel(self, caller: Profile, appointment_id: str) -> tuple[Appointment, bool]:
        """Returns (appointment, credit_refunded)"""
        try:
            appointment = self.repo.lock_appointment(self.db, appointment_id)
            if not appointment:
                raise NotFound("Sessão não encontrada")
            enforce(caller, appointment, "cancel")

            if appointment.status not in LIVE_STATUSES:
                raise ValidationFailed(f"Sessão não pode ser cancelada (status: {appointment.status})")

            settings = self.get_professional_settings(appointment.professional_id)
            now = self.clock()
            cancelled_by_professional = caller.id == appointment.professional_id
            deadline = appointment.start_at - timedelta(hours=settings.min_cancel_hours)

            if not cancelled_by_professional and now > deadline:
                raise CancellationWindowClosed(
                    f"Cancelamento permitido até {settings.min_cancel_hours}h antes da sessão; você pode reagendar"
                )

            refunded = False
            if appointment.credit_id:
                refunded = self.repo.refund_credit(self.db, appointment.credit_id)

            appointment.status = "cancelled"
            appointment.cancelled_at = now

            when = format_local(appointment.start_at, settings.timezone)
            counterpart = appointment.user_id if cancelled_by_professional else appointment.professional_id
            notify(
                self.db,
                counterpart,
                "appointment_cancelled",
                "Sessão cancelada",
                f"A sessão de {when} foi cancelada.",
                {"appointment_id": appointment.id, "session_start_at": to_iso(appointment.start_at)},
            )
            enqueue(
                self.db,
                "email.appointment_cancelled",
                {
                    "to": appointment.client.email,
                    "user_name": appointment.client.name,
                    "when": when,
                    "credit_refunded": refunded,
                },
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(f"🚫 Appointment {appointment_id} cancelled by {caller.id} (refunded={refunded})")
        return appointment, refunded

    def reschedule(
        self, caller: Profile, appointment_id: str, start_at: datetime, end_at: Optional[datetime] = None
    ) -> Appointment:
        start_at = as_utc_naive(start_at)
        end_at = as_utc_naive(end_at) if end_at else None

        appointment = self.repo.get_appointment(self.db, appointment_id)
        if not appointment:
            raise NotFound("Sessão não encontrada")
        enforce(caller, appointment, "reschedule")
        if appointment.status not in LIVE_STATUSES:
            raise ValidationFailed(f"Sessão não pode ser reagendada (status: {appointment.status})")

        slot = self._require_offered_slot(
            appointment.professional_id,
            appointment.appointment_type,
            start_at,
            end_at,
            exclude_appointment_id=appointment.id,
        )

        try:
            appointment = self.repo.lock_appointment(self.db, appointment_id)
            if self.repo.live_overlapping(
                self.db, appointment.professional_id, slot.start_at, slot.end_at, exclude_id=appointment.id, lock=True
            ):
                raise SlotTaken()

            appointment.start_at = slot.start_at
            appointment.end_at = slot.end_at
            appointment.status = "rescheduled"
            # Room validity is tied to the old window
            appointment.video_room_name = None
            appointment.reminder_sent_at = None

            settings = self.get_professional_settings(appointment.professional_id)
            when = format_local(slot.start_at, settings.timezone)
            counterpart = appointment.user_id if caller.id == appointment.professional_id else appointment.professional_id
            notify(
                self.db,
                counterpart,
                "appointment_rescheduled",
                "Sessão reagendada",
                f"A sessão foi reagendada para {when}.",
                {"appointment_id": appointment.id, "session_start_at": to_iso(slot.start_at)},
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(appointment)
        logger.info(f"🔁 Appointment {appointment.id} rescheduled to {slot.start_at} by {caller.id}")
        return appointment

    # ========================================================================
    # AGENDA
    # ========================================================================

    def list_for_client(self, client: Profile) -> list[Appointment]:
        return self.repo.list_for_client(self.db, client.id)

    def agenda(self, professional: Profile, start: datetime, end: datetime) -> list[Appointment]:
        start, end = as_utc_naive(start), as_utc_naive(end)
        if start >= end:
            raise ValidationFailed("Período inválido")
        if end - start > timedelta(days=62):
            raise ValidationFailed("Período máximo de 62 dias")
        return self.repo.list_agenda(self.db, professional.id, start, end)

    def update_status(self, professional: Profile, appointment_id: str, status: str) -> Appointment:
        """Professional closes a session; no credit movement"""
        appointment = self.repo.get_appointment(self.db, appointment_id)
        if not appointment:
            raise NotFound("Sessão não encontrada")
        enforce(professional, appointment, "update_status")
        if appointment.status not in LIVE_STATUSES:
            raise ValidationFailed(f"Sessão já encerrada (status: {appointment.status})")

        appointment.status = status
        if status == "cancelled":
            appointment.cancelled_at = self.clock()
        self.db.commit()
        self.db.refresh(appointment)
        logger.info(f"📝 Appointment {appointment.id} marked {status} by {professional.id}")
        return appointment

    # ========================================================================
    # REMINDERS
    # ========================================================================

    def send_due_reminders(self) -> int:
        """Notify both parties of sessions starting within the next hour, once per appointment"""
        now = self.clock()
        appointments = self.repo.due_for_reminder(self.db, now, now + REMINDER_LEAD)

        for appointment in appointments:
            settings = self.get_professional_settings(appointment.professional_id)
            when = format_local(appointment.start_at, settings.timezone)
            for user_id, link in (
                (appointment.user_id, f"/sessoes/{appointment.id}"),
                (appointment.professional_id, f"/profissional/sessoes/{appointment.id}"),
            ):
                notify(
                    self.db,
                    user_id,
                    "session_reminder",
                    "Sua sessão começa em breve",
                    f"Sessão às {when}. A sala abre 10 minutos antes.",
                    {
                        "appointment_id": appointment.id,
                        "session_start_at": to_iso(appointment.start_at),
                        "link": link,
                    },
                )
            appointment.reminder_sent_at = now

        self.db.commit()
        if appointments:
            logger.info(f"⏰ Sent reminders for {len(appointments)} appointment(s)")
        return len(appointments)
