"""Account router - registration, login, email verification and password recovery endpoints"""

import logging

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from ...auth import clear_session_cookie, get_current_profile, issue_session_token, set_session_cookie
from ...config import Settings, get_settings
from ...database import get_db
from ...models import Profile
from ...rate_limiter import create_rate_limiter, enforce_rate_limit
from .schemas import (
    ForgotPasswordRequest,
    LoginRequest,
    ProfileResponse,
    RegisterRequest,
    ResendVerificationRequest,
    ResetPasswordRequest,
    VerifyEmailRequest,
)
from .service import AccountService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["Auth"])

register_limit = create_rate_limiter(limit=10, window_seconds=3600, key_prefix="register")
login_limit = create_rate_limiter(limit=20, window_seconds=900, key_prefix="login")
resend_limit = create_rate_limiter(limit=5, window_seconds=3600, key_prefix="resend_verification")
forgot_limit = create_rate_limiter(limit=5, window_seconds=3600, key_prefix="forgot_password")


def get_account_service(
    db: Session = Depends(get_db), settings: Settings = Depends(get_settings)
) -> AccountService:
    return AccountService(db, settings)


@router.post("/register", status_code=201)
async def register(
    data: RegisterRequest,
    _: None = Depends(register_limit),
    service: AccountService = Depends(get_account_service),
):
    profile, email_sent = await service.register(data)
    return {
        "success": True,
        "message": "Cadastro realizado. Verifique seu e-mail para ativar a conta.",
        "userId": profile.id,
        "emailSent": email_sent,
    }


@router.post("/login")
async def login(
    data: LoginRequest,
    response: Response,
    _: None = Depends(login_limit),
    service: AccountService = Depends(get_account_service),
    settings: Settings = Depends(get_settings),
):
    profile = service.authenticate(data.email, data.password)
    token = issue_session_token(profile.id, settings)
    set_session_cookie(response, token, settings)
    return {
        "success": True,
        "token": token,
        "user": ProfileResponse.from_profile(profile),
    }


@router.post("/logout")
async def logout(response: Response, settings: Settings = Depends(get_settings)):
    clear_session_cookie(response, settings)
    return {"success": True}


@router.get("/me", response_model=ProfileResponse)
async def me(profile: Profile = Depends(get_current_profile)):
    return ProfileResponse.from_profile(profile)


@router.post("/resend-verification")
async def resend_verification(
    data: ResendVerificationRequest,
    _: None = Depends(resend_limit),
    service: AccountService = Depends(get_account_service),
):
    """Always answers the same way for existing and unknown accounts"""
    enforce_rate_limit(f"resend_verification_email:{(data.email or '').strip().lower()}", limit=3, window_seconds=3600)
    await service.request_verification(data.email)
    return {"success": True}


@router.post("/verify-email")
async def verify_email(
    data: VerifyEmailRequest,
    service: AccountService = Depends(get_account_service),
):
    service.verify(data.token)
    return {"success": True, "message": "E-mail verificado com sucesso"}


@router.post("/forgot-password")
async def forgot_password(
    data: ForgotPasswordRequest,
    _: None = Depends(forgot_limit),
    service: AccountService = Depends(get_account_service),
):
    """Same answer whether or not the e-mail has an account"""
    enforce_rate_limit(f"forgot_password_email:{(data.email or '').strip().lower()}", limit=3, window_seconds=3600)
    await service.request_password_reset(data.email)
    return {"success": True}


@router.post("/reset-password")
async def reset_password(
    data: ResetPasswordRequest,
    service: AccountService = Depends(get_account_service),
):
    service.reset_password(data.token, data.password)
    return {"success": True, "message": "Senha redefinida com sucesso"}
