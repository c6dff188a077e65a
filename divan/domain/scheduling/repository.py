"""Scheduling repository - availability, appointments and credit consumption"""

from datetime import datetime
from typing import Optional

from sqlalchemy import and_, update
from sqlalchemy.orm import Session, joinedload

from ...models import (
    Appointment,
    AvailabilityBlock,
    AvailabilityRule,
    ProfessionalSettings,
    SessionCredit,
)

LIVE_STATUSES = ("scheduled", "rescheduled")


class SchedulingRepository:
    """Repository for scheduling database operations"""

    # ========================================================================
    # SETTINGS & AVAILABILITY
    # ========================================================================

    @staticmethod
    def get_settings(db: Session, professional_id: str) -> Optional[ProfessionalSettings]:
        return (
            db.query(ProfessionalSettings)
            .filter(ProfessionalSettings.professional_id == professional_id)
            .first()
        )

    @staticmethod
    def list_rules(db: Session, professional_id: str, active_only: bool = False) -> list[AvailabilityRule]:
        query = db.query(AvailabilityRule).filter(AvailabilityRule.professional_id == professional_id)
        if active_only:
            query = query.filter(AvailabilityRule.is_active.is_(True))
        return query.order_by(AvailabilityRule.weekday, AvailabilityRule.start_time).all()

    @staticmethod
    def get_rule(db: Session, rule_id: str, professional_id: str) -> Optional[AvailabilityRule]:
        return (
            db.query(AvailabilityRule)
            .filter(AvailabilityRule.id == rule_id, AvailabilityRule.professional_id == professional_id)
            .first()
        )

    @staticmethod
    def list_blocks(
        db: Session, professional_id: str, start: Optional[datetime] = None, end: Optional[datetime] = None
    ) -> list[AvailabilityBlock]:
        query = db.query(AvailabilityBlock).filter(AvailabilityBlock.professional_id == professional_id)
        if start and end:
            query = query.filter(AvailabilityBlock.start_at < end, AvailabilityBlock.end_at > start)
        return query.order_by(AvailabilityBlock.start_at).all()

    @staticmethod
    def get_block(db: Session, block_id: str, professional_id: str) -> Optional[AvailabilityBlock]:
        return (
            db.query(AvailabilityBlock)
            .filter(AvailabilityBlock.id == block_id, AvailabilityBlock.professional_id == professional_id)
            .first()
        )

    # ========================================================================
    # APPOINTMENTS
    # ========================================================================

    @staticmethod
    def get_appointment(db: Session, appointment_id: str) -> Optional[Appointment]:
        return (
            db.query(Appointment)
            .options(joinedload(Appointment.client), joinedload(Appointment.professional))
            .filter(Appointment.id == appointment_id)
            .first()
        )

    @staticmethod
    def lock_appointment(db: Session, appointment_id: str) -> Optional[Appointment]:
        return db.query(Appointment).filter(Appointment.id == appointment_id).with_for_update().first()

    @staticmethod
    def live_overlapping(
        db: Session,
        professional_id: str,
        start: datetime,
        end: datetime,
        exclude_id: Optional[str] = None,
        lock: bool = False,
    ) -> list[Appointment]:
        query = db.query(Appointment).filter(
            Appointment.professional_id == professional_id,
            Appointment.status.in_(LIVE_STATUSES),
            Appointment.start_at < end,
            Appointment.end_at > start,
        )
        if exclude_id:
            query = query.filter(Appointment.id != exclude_id)
        if lock:
            query = query.with_for_update()
        return query.all()

    @staticmethod
    def list_for_client(db: Session, user_id: str) -> list[Appointment]:
        return (
            db.query(Appointment)
            .options(joinedload(Appointment.professional))
            .filter(Appointment.user_id == user_id)
            .order_by(Appointment.start_at.desc())
            .all()
        )

    @staticmethod
    def list_agenda(db: Session, professional_id: str, start: datetime, end: datetime) -> list[Appointment]:
        return (
            db.query(Appointment)
            .options(joinedload(Appointment.client))
            .filter(
                Appointment.professional_id == professional_id,
                Appointment.start_at < end,
                Appointment.end_at > start,
            )
            .order_by(Appointment.start_at.asc())
            .all()
        )

    @staticmethod
    def due_for_reminder(db: Session, now: datetime, until: datetime) -> list[Appointment]:
        return (
            db.query(Appointment)
            .options(joinedload(Appointment.client), joinedload(Appointment.professional))
            .filter(
                Appointment.status.in_(LIVE_STATUSES),
                Appointment.reminder_sent_at.is_(None),
                Appointment.start_at > now,
                Appointment.start_at <= until,
            )
            .all()
        )

    # ========================================================================
    # CREDITS
    # ========================================================================

    @staticmethod
    def usable_credit_ids(db: Session, user_id: str, professional_id: str, appointment_type: str) -> list[str]:
        """Active credits with balance for the triple, oldest first"""
        rows = (
            db.query(SessionCredit.id)
            .filter(
                SessionCredit.user_id == user_id,
                SessionCredit.professional_id == professional_id,
                SessionCredit.appointment_type == appointment_type,
                SessionCredit.status == "active",
                SessionCredit.used < SessionCredit.total,
            )
            .order_by(SessionCredit.created_at.asc())
            .all()
        )
        return [row[0] for row in rows]

    @staticmethod
    def consume_credit(db: Session, credit_id: str) -> bool:
        """
        Take one unit with a conditional UPDATE; False when another booking got
        the last unit first.
        """
        result = db.execute(
            update(SessionCredit)
            .where(
                and_(
                    SessionCredit.id == credit_id,
                    SessionCredit.status == "active",
                    SessionCredit.used < SessionCredit.total,
                )
            )
            .values(used=SessionCredit.used + 1)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            return False

        db.execute(
            update(SessionCredit)
            .where(SessionCredit.id == credit_id, SessionCredit.used >= SessionCredit.total)
            .values(status="consumed")
            .execution_options(synchronize_session=False)
        )
        return True

    @staticmethod
    def refund_credit(db: Session, credit_id: str) -> bool:
        result = db.execute(
            update(SessionCredit)
            .where(SessionCredit.id == credit_id, SessionCredit.used > 0)
            .values(used=SessionCredit.used - 1, status="active")
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1
