import logging
import warnings
from functools import lru_cache
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

INSECURE_DEV_SECRET = "INSECURE-DEV-KEY-CHANGE-IN-PRODUCTION"  # noqa: S105 - Dev fallback only


class Settings(BaseSettings):
    """Process-wide configuration, built once at startup and injected where needed"""

    ENVIRONMENT: str = "development"

    # Database
    DATABASE_URL: str = "sqlite:///./divan.db"
    DB_POOL_SIZE: int = 20
    DB_MAX_OVERFLOW: int = 30
    DB_POOL_TIMEOUT: int = 30
    DB_POOL_RECYCLE: int = 300
    DB_LOG_SLOW_QUERIES: bool = True
    DB_SLOW_QUERY_THRESHOLD: float = 1.0

    # Security - CRITICAL: No default secret key in production
    SECRET_KEY: Optional[str] = None
    SESSION_COOKIE_NAME: str = "divan_session"
    SESSION_TTL_HOURS: int = 24 * 7
    COOKIE_SECURE: bool = True

    # Site base URL used in email links and redirects
    SITE_URL: str = "http://localhost:3000"
    ALLOWED_ORIGINS: str = "http://localhost:3000"

    # Resend Email Configuration
    RESEND_API_KEY: Optional[str] = None
    EMAIL_FROM_ADDRESS: str = "Divan <nao-responda@divan.com.br>"
    PROFESSIONAL_EMAIL: Optional[str] = None

    # Stripe (card payments)
    STRIPE_SECRET_KEY: Optional[str] = None
    STRIPE_WEBHOOK_SECRET: Optional[str] = None

    # Daily (video rooms)
    DAILY_API_KEY: Optional[str] = None
    DAILY_DOMAIN: Optional[str] = None
    DAILY_API_URL: str = "https://api.daily.co/v1"

    # Redis (rate limiting and arq worker)
    REDIS_URL: Optional[str] = None

    # Verification email
    EMAIL_VERIFICATION_TTL_HOURS: int = 24
    PASSWORD_RESET_TTL_MINUTES: int = 60
    CHECK_EMAIL_MX: bool = True

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    @property
    def allowed_origins(self) -> list[str]:
        return [origin.strip() for origin in self.ALLOWED_ORIGINS.split(",") if origin.strip()]

    @property
    def secret_key(self) -> str:
        return self.SECRET_KEY or INSECURE_DEV_SECRET


@lru_cache
def get_settings() -> Settings:
    settings = Settings()
    if not settings.SECRET_KEY:
        warnings.warn(
            "SECRET_KEY not set! Using insecure default - DO NOT USE IN PRODUCTION",
            RuntimeWarning,
            stacklevel=2,
        )
    return settings
