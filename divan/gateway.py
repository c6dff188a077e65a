"""
Session gateway for browser navigation
Resolves the caller from the session cookie and redirects page requests that
the caller may not see. JSON API routes guard themselves through the auth
dependencies and are passed through untouched (apart from cookie rotation).
"""

import logging
from urllib.parse import quote

from fastapi import Request
from fastapi.responses import RedirectResponse
from starlette.middleware.base import BaseHTTPMiddleware

from .auth import (
    decode_session,
    issue_session_token,
    load_profile,
    read_session_token,
    set_session_cookie,
    should_rotate,
)
from .config import Settings
from .database import SessionLocal
from .policy import ADMIN_AREA, PROFESSIONAL_AREA, authorize

logger = logging.getLogger(__name__)

PUBLIC_PATHS = {
    "/",
    "/login",
    "/cadastro",
    "/recuperar",
    "/resetar-senha",
    "/auth/callback",
    "/verificar-email",
    "/acesso-negado",
    "/politica-de-privacidade",
    "/termos-de-uso",
    "/logout",
    "/health",
    "/docs",
    "/redoc",
    "/openapi.json",
}

PUBLIC_PREFIXES = ("/blog", "/static", "/favicon", "/robots", "/sitemap")

STATIC_EXTENSIONS = (
    ".svg",
    ".png",
    ".jpg",
    ".jpeg",
    ".gif",
    ".webp",
    ".ico",
    ".css",
    ".js",
    ".map",
    ".txt",
    ".woff",
    ".woff2",
)

# Verification pages an unverified account may still reach
VERIFICATION_PATHS = ("/verificar-email", "/logout")

CLIENT_ONLY_PREFIXES = ("/dashboard", "/minhas-sessoes", "/agenda")

PROFESSIONAL_HOME = "/profissional/agenda"


def is_public_path(path: str) -> bool:
    if path in PUBLIC_PATHS:
        return True
    if path.startswith(PUBLIC_PREFIXES):
        return True
    return path.lower().endswith(STATIC_EXTENSIONS)


def _matches(path: str, prefixes) -> bool:
    return any(path == p or path.startswith(p + "/") for p in prefixes)


class SessionGatewayMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, settings: Settings, session_factory=SessionLocal):
        super().__init__(app)
        self.settings = settings
        self.session_factory = session_factory

    async def dispatch(self, request: Request, call_next):
        path = request.url.path
        token = read_session_token(request, self.settings)
        payload = decode_session(token, self.settings)

        if path.startswith("/api/") or is_public_path(path):
            response = await call_next(request)
            return self._maybe_rotate(request, response, payload)

        if not payload:
            return self._redirect(f"/login?redirect={quote(path)}")

        try:
            target = self._resolve_redirect(path, payload["sub"])
        except Exception as e:
            # Lookup failures deny, never allow
            logger.error(f"❌ Session gateway lookup failed for {path}: {e}")
            return self._redirect(f"/login?redirect={quote(path)}")

        if target:
            return self._redirect(target)

        response = await call_next(request)
        return self._maybe_rotate(request, response, payload)

    def _resolve_redirect(self, path: str, profile_id: str):
        db = self.session_factory()
        try:
            profile = load_profile(db, profile_id)
            if not profile:
                return f"/login?redirect={quote(path)}"

            if profile.is_blocked_or_deleted:
                logger.warning(f"🚫 Gateway denied blocked/deleted profile {profile.id} on {path}")
                return "/acesso-negado"

            if not profile.is_email_verified:
                if _matches(path, VERIFICATION_PATHS):
                    return None
                return f"/verificar-email?email={quote(profile.email)}"

            if _matches(path, ("/profissional",)) and not authorize(profile, PROFESSIONAL_AREA):
                return "/"
            if _matches(path, ("/admin",)) and not authorize(profile, ADMIN_AREA):
                return "/"

            if profile.is_professional and _matches(path, CLIENT_ONLY_PREFIXES):
                return PROFESSIONAL_HOME

            return None
        finally:
            db.close()

    def _redirect(self, url: str) -> RedirectResponse:
        return RedirectResponse(url=url, status_code=307)

    def _maybe_rotate(self, request: Request, response, payload):
        if not payload or not request.cookies.get(self.settings.SESSION_COOKIE_NAME):
            return response
        if response.status_code >= 400 or not should_rotate(payload, self.settings):
            return response
        set_session_cookie(response, issue_session_token(payload["sub"], self.settings), self.settings)
        logger.debug(f"🔄 Rotated session cookie for {payload['sub']}")
        return response
