"""Account service - registration, login, email verification and password recovery"""

import logging
from datetime import timedelta
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...config import Settings
from ...email_service import send_password_reset_email, send_signup_notification, send_verification_email
from ...errors import (
    Conflict,
    DomainError,
    Forbidden,
    InvalidToken,
    TokenAlreadyUsed,
    TokenExpired,
    Unauthorized,
    ValidationFailed,
)
from ...models import Profile
from ...security_utils import (
    generate_verification_token,
    hash_password_bcrypt,
    hash_verification_token,
    verify_password_bcrypt,
)
from ...shared.clock import utcnow
from ...shared.validators import email_domain_accepts_mail, is_valid_email
from .repository import AccountRepository
from .schemas import RegisterRequest

logger = logging.getLogger(__name__)


class AccountService:
    """Service layer for account lifecycle"""

    def __init__(self, db: Session, settings: Settings):
        self.db = db
        self.settings = settings
        self.repo = AccountRepository()

    # ========================================================================
    # REGISTRATION & LOGIN
    # ========================================================================

    async def register(self, data: RegisterRequest) -> tuple[Profile, bool]:
        """Create a client profile pending email verification; returns (profile, email_sent)"""
        if self.settings.CHECK_EMAIL_MX and not email_domain_accepts_mail(data.email):
            raise ValidationFailed("O domínio do e-mail não recebe mensagens")

        if self.repo.get_profile_by_email(self.db, data.email):
            raise Conflict("E-mail já cadastrado")

        try:
            profile = self.repo.add_profile(
                self.db,
                name=data.name,
                email=data.email,
                phone=data.phone,
                password_hash=hash_password_bcrypt(data.password),
                role="client",
                status="pending_email",
            )
            raw_token = self._issue_token(profile)
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            logger.warning(f"⚠️ Duplicate registration for {data.email}: {e.orig}")
            raise Conflict("E-mail já cadastrado") from e

        logger.info(f"✅ Registered profile {profile.id}")

        email_sent = await self._send_verification(profile, raw_token)

        try:
            await send_signup_notification(profile.name, profile.email, profile.phone, self.settings)
        except DomainError as e:
            logger.warning(f"⚠️ Signup notification failed for {profile.id}: {e.message}")

        return profile, email_sent

    def authenticate(self, email: str, password: str) -> Profile:
        profile = self.repo.get_profile_by_email(self.db, email)
        if not profile or not verify_password_bcrypt(password, profile.password_hash):
            logger.info(f"🔐 Failed login for {email}")
            raise Unauthorized("E-mail ou senha inválidos")
        if profile.is_blocked_or_deleted:
            logger.warning(f"🚫 Login attempt on blocked/deleted profile {profile.id}")
            raise Forbidden("Conta bloqueada ou removida")
        return profile

    # ========================================================================
    # EMAIL VERIFICATION
    # ========================================================================

    async def request_verification(self, email: Optional[str]) -> None:
        """
        Issue a fresh verification link when the account needs one.
        Missing, verified, blocked and deleted accounts get the same silent success.
        """
        if not is_valid_email(email):
            raise ValidationFailed("E-mail inválido")

        profile = self.repo.get_profile_by_email(self.db, email)
        if not profile or profile.is_email_verified or profile.is_blocked_or_deleted:
            logger.info("📧 Verification resend skipped (no eligible account)")
            return

        raw_token = self._issue_token(profile)
        self.db.commit()
        await self._send_verification(profile, raw_token)

    def verify(self, token: Optional[str]) -> Profile:
        token = (token or "").strip()
        if not token:
            raise ValidationFailed("Token ausente")

        token_hash = hash_verification_token(token, self.settings.secret_key)
        verification = self.repo.get_verification_by_hash(self.db, token_hash)
        if not verification:
            raise InvalidToken("Token inválido")
        if verification.used_at is not None:
            raise TokenAlreadyUsed("Token já utilizado")

        now = utcnow()
        if verification.expires_at <= now:
            raise TokenExpired("Token expirado")

        try:
            if not self.repo.consume_verification(self.db, verification.id, now):
                raise TokenAlreadyUsed("Token já utilizado")

            profile = verification.user
            profile.email_verified_at = now
            if profile.status == "pending_email":
                profile.status = "active"
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(f"✅ Email verified for profile {profile.id}")
        return profile

    # ========================================================================
    # PASSWORD RECOVERY
    # ========================================================================

    async def request_password_reset(self, email: Optional[str]) -> None:
        """Send a reset link when the account exists; unknown accounts get the same silent success"""
        if not is_valid_email(email):
            raise ValidationFailed("E-mail inválido")

        profile = self.repo.get_profile_by_email(self.db, email)
        if not profile or profile.is_blocked_or_deleted:
            logger.info("🔑 Password reset skipped (no eligible account)")
            return

        self.repo.discard_unused_resets(self.db, profile.id)
        raw_token = generate_verification_token()
        self.repo.add_password_reset(
            self.db,
            user_id=profile.id,
            token_hash=hash_verification_token(raw_token, self.settings.secret_key),
            expires_at=utcnow() + timedelta(minutes=self.settings.PASSWORD_RESET_TTL_MINUTES),
        )
        self.db.commit()

        try:
            await send_password_reset_email(profile.email, profile.name, raw_token, self.settings)
            logger.info(f"🔑 Password reset link sent to profile {profile.id}")
        except DomainError as e:
            logger.error(f"❌ Password reset email failed for {profile.id}: {e.message}")

    def reset_password(self, token: Optional[str], password: str) -> Profile:
        token = (token or "").strip()
        if not token:
            raise ValidationFailed("Token ausente")

        reset = self.repo.get_reset_by_hash(self.db, hash_verification_token(token, self.settings.secret_key))
        if not reset:
            raise InvalidToken("Token inválido")
        if reset.used_at is not None:
            raise TokenAlreadyUsed("Token já utilizado")

        now = utcnow()
        if reset.expires_at <= now:
            raise TokenExpired("Token expirado")

        try:
            if not self.repo.consume_reset(self.db, reset.id, now):
                raise TokenAlreadyUsed("Token já utilizado")

            profile = reset.user
            if profile.is_blocked_or_deleted:
                raise Forbidden("Conta bloqueada ou removida")
            profile.password_hash = hash_password_bcrypt(password)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(f"✅ Password reset for profile {profile.id}")
        return profile

    # ========================================================================
    # HELPERS
    # ========================================================================

    def _issue_token(self, profile: Profile) -> str:
        """Rotate: discard unused tokens, store the digest of a new one (caller commits)"""
        self.repo.discard_unused_tokens(self.db, profile.id)
        raw_token = generate_verification_token()
        self.repo.add_verification(
            self.db,
            user_id=profile.id,
            token_hash=hash_verification_token(raw_token, self.settings.secret_key),
            expires_at=utcnow() + timedelta(hours=self.settings.EMAIL_VERIFICATION_TTL_HOURS),
        )
        return raw_token

    async def _send_verification(self, profile: Profile, raw_token: str) -> bool:
        try:
            await send_verification_email(profile.email, profile.name, raw_token, self.settings)
            return True
        except DomainError as e:
            logger.error(f"❌ Verification email failed for {profile.id}: {e.message}")
            return False
