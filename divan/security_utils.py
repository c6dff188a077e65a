"""
Security Utilities
Password hashing, session tokens, verification-token digests and HTML sanitization
"""

import hashlib
import hmac
import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

# Input sanitization
import bleach
from bleach.css_sanitizer import CSSSanitizer

# Token generation and validation
from jose import JWTError
from jose import jwt as jose_jwt

# Password hashing
from passlib.context import CryptContext

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"

# Password hashing context
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


# ============================================================================
# PASSWORD SECURITY
# ============================================================================


def hash_password_bcrypt(password: str) -> str:
    """Hash password using bcrypt"""
    return pwd_context.hash(password)


def verify_password_bcrypt(plain_password: str, hashed_password: Optional[str]) -> bool:
    """Verify password against bcrypt hash"""
    if not hashed_password:
        return False
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except ValueError as e:
        logger.error(f"Password verification error: {e}")
        return False


# ============================================================================
# TOKENS
# ============================================================================


def generate_verification_token() -> str:
    """32 random bytes, hex encoded - sent to the user, never stored"""
    return secrets.token_hex(32)


def hash_verification_token(token: str, secret: str) -> str:
    """Keyed digest stored in place of the raw token"""
    return hmac.new(secret.encode("utf-8"), token.encode("utf-8"), hashlib.sha256).hexdigest()


def generate_pix_reference() -> str:
    millis = int(datetime.now(timezone.utc).timestamp() * 1000)
    return f"PIX{millis}{secrets.token_hex(4).upper()}"


def create_jwt_token(
    data: dict[str, Any], secret: str, expires_delta: Optional[timedelta] = None
) -> str:
    """
    Create a session JWT

    Args:
        data: Claims to encode in the token
        secret: Signing key
        expires_delta: Token lifetime (default 15 minutes)
    """
    to_encode = data.copy()
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(minutes=15))
    to_encode.update({"exp": expire, "iat": now})
    return jose_jwt.encode(to_encode, secret, algorithm=ALGORITHM)


def verify_jwt_token(token: str, secret: str) -> Optional[dict[str, Any]]:
    """
    Verify and decode a JWT token

    Returns:
        Decoded payload if valid, None if invalid or expired
    """
    try:
        return jose_jwt.decode(token, secret, algorithms=[ALGORITHM])
    except JWTError as e:
        logger.warning(f"JWT verification failed: {e}")
        return None


# ============================================================================
# INPUT SANITIZATION
# ============================================================================

BLOG_ALLOWED_TAGS = [
    "p",
    "br",
    "strong",
    "em",
    "u",
    "a",
    "ul",
    "ol",
    "li",
    "h2",
    "h3",
    "h4",
    "blockquote",
    "code",
    "pre",
    "img",
    "span",
]


def sanitize_html(html_content: str, allowed_tags: Optional[list] = None) -> str:
    """
    Sanitize HTML content to prevent XSS attacks

    Args:
        html_content: Raw HTML content
        allowed_tags: List of allowed HTML tags (default: blog-safe subset)
    """
    if allowed_tags is None:
        allowed_tags = BLOG_ALLOWED_TAGS

    allowed_attributes = {
        "a": ["href", "title", "target", "rel"],
        "img": ["src", "alt", "title"],
        "*": ["class", "style"],
    }

    css_sanitizer = CSSSanitizer(allowed_css_properties=["color", "font-weight", "text-align"])

    return bleach.clean(
        html_content,
        tags=allowed_tags,
        attributes=allowed_attributes,
        protocols=["http", "https", "mailto"],
        css_sanitizer=css_sanitizer,
        strip=True,
    )
