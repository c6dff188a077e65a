import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, Request, Response
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from .config import Settings, get_settings
from .database import get_db
from .errors import Forbidden, Unauthorized
from .models import Profile
from .policy import ACCOUNT, CLIENT_AREA, PROFESSIONAL_AREA, authorize
from .security_utils import create_jwt_token, verify_jwt_token

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


# ============================================================================
# SESSION TOKENS
# ============================================================================


def issue_session_token(profile_id: str, settings: Settings) -> str:
    return create_jwt_token(
        {"sub": profile_id},
        settings.secret_key,
        expires_delta=timedelta(hours=settings.SESSION_TTL_HOURS),
    )


def set_session_cookie(response: Response, token: str, settings: Settings) -> None:
    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=token,
        httponly=True,
        secure=settings.COOKIE_SECURE,
        samesite="lax",
        max_age=settings.SESSION_TTL_HOURS * 3600,
        path="/",
    )


def clear_session_cookie(response: Response, settings: Settings) -> None:
    response.delete_cookie(key=settings.SESSION_COOKIE_NAME, path="/")


def read_session_token(request: Request, settings: Settings) -> Optional[str]:
    """Session token from the cookie, falling back to an Authorization: Bearer header"""
    token = request.cookies.get(settings.SESSION_COOKIE_NAME)
    if token:
        return token
    header = request.headers.get("authorization", "")
    if header.lower().startswith("bearer "):
        return header[7:].strip() or None
    return None


def decode_session(token: Optional[str], settings: Settings) -> Optional[dict]:
    if not token:
        return None
    payload = verify_jwt_token(token, settings.secret_key)
    if not payload or not payload.get("sub"):
        return None
    return payload


def should_rotate(payload: dict, settings: Settings) -> bool:
    """True once the token has used up half of its lifetime"""
    exp = payload.get("exp")
    if not exp:
        return False
    remaining = datetime.fromtimestamp(exp, tz=timezone.utc) - datetime.now(timezone.utc)
    return remaining < timedelta(hours=settings.SESSION_TTL_HOURS) / 2


def load_profile(db: Session, profile_id: str) -> Optional[Profile]:
    return db.query(Profile).filter(Profile.id == profile_id).first()


# ============================================================================
# DEPENDENCIES
# ============================================================================


async def get_current_profile(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> Profile:
    """Authenticated caller; unverified accounts are allowed, blocked/deleted are not"""
    token = request.cookies.get(settings.SESSION_COOKIE_NAME)
    if not token and credentials:
        token = credentials.credentials

    payload = decode_session(token, settings)
    if not payload:
        raise Unauthorized()

    profile = load_profile(db, payload["sub"])
    if not profile:
        logger.warning(f"⚠️ Session for unknown profile {payload['sub']}")
        raise Unauthorized()

    if not authorize(profile, ACCOUNT):
        logger.warning(f"🚫 Blocked or deleted profile {profile.id} attempted access")
        raise Forbidden("Conta bloqueada ou removida")

    return profile


async def get_current_user(profile: Profile = Depends(get_current_profile)) -> Profile:
    """Authenticated, verified and active caller"""
    if not authorize(profile, CLIENT_AREA):
        raise Forbidden("Confirme seu e-mail para continuar")
    return profile


async def require_professional(profile: Profile = Depends(get_current_user)) -> Profile:
    if not authorize(profile, PROFESSIONAL_AREA):
        raise Forbidden("Acesso restrito ao profissional")
    return profile
