"""Account repository - Database operations for profiles, verification and reset tokens"""

from datetime import datetime
from typing import Optional

from sqlalchemy import update
from sqlalchemy.orm import Session

from ...models import EmailVerification, PasswordReset, Profile


class AccountRepository:
    """Repository for profile and email-verification database operations"""

    @staticmethod
    def get_profile_by_email(db: Session, email: str) -> Optional[Profile]:
        return db.query(Profile).filter(Profile.email == email.strip().lower()).first()

    @staticmethod
    def add_profile(db: Session, **profile_data) -> Profile:
        """Stage a new profile in the current transaction"""
        profile = Profile(**profile_data)
        db.add(profile)
        db.flush()
        return profile

    @staticmethod
    def discard_unused_tokens(db: Session, user_id: str) -> int:
        """Rotation: earlier unused tokens stop working once a new one is issued"""
        return (
            db.query(EmailVerification)
            .filter(EmailVerification.user_id == user_id, EmailVerification.used_at.is_(None))
            .delete(synchronize_session=False)
        )

    @staticmethod
    def add_verification(db: Session, user_id: str, token_hash: str, expires_at: datetime) -> EmailVerification:
        verification = EmailVerification(user_id=user_id, token_hash=token_hash, expires_at=expires_at)
        db.add(verification)
        db.flush()
        return verification

    @staticmethod
    def get_verification_by_hash(db: Session, token_hash: str) -> Optional[EmailVerification]:
        return db.query(EmailVerification).filter(EmailVerification.token_hash == token_hash).first()

    @staticmethod
    def consume_verification(db: Session, verification_id: str, used_at: datetime) -> bool:
        """Mark the token used only if still unused; False means a concurrent request won"""
        result = db.execute(
            update(EmailVerification)
            .where(EmailVerification.id == verification_id, EmailVerification.used_at.is_(None))
            .values(used_at=used_at)
        )
        return result.rowcount == 1

    # ========================================================================
    # PASSWORD RESETS
    # ========================================================================

    @staticmethod
    def discard_unused_resets(db: Session, user_id: str) -> int:
        return (
            db.query(PasswordReset)
            .filter(PasswordReset.user_id == user_id, PasswordReset.used_at.is_(None))
            .delete(synchronize_session=False)
        )

    @staticmethod
    def add_password_reset(db: Session, user_id: str, token_hash: str, expires_at: datetime) -> PasswordReset:
        reset = PasswordReset(user_id=user_id, token_hash=token_hash, expires_at=expires_at)
        db.add(reset)
        db.flush()
        return reset

    @staticmethod
    def get_reset_by_hash(db: Session, token_hash: str) -> Optional[PasswordReset]:
        return db.query(PasswordReset).filter(PasswordReset.token_hash == token_hash).first()

    @staticmethod
    def consume_reset(db: Session, reset_id: str, used_at: datetime) -> bool:
        result = db.execute(
            update(PasswordReset)
            .where(PasswordReset.id == reset_id, PasswordReset.used_at.is_(None))
            .values(used_at=used_at)
        )
        return result.rowcount == 1
