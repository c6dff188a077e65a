"""Shared validation utilities"""

import re
import unicodedata
from typing import Optional

import dns.exception
import dns.resolver

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def is_valid_email(email: Optional[str]) -> bool:
    return bool(email) and bool(EMAIL_PATTERN.match(email.strip()))


def validate_email(email: Optional[str]) -> Optional[str]:
    """
    Validate email format.

    Returns:
        Lowercase, trimmed email address

    Raises:
        ValueError: If email format is invalid
    """
    if not email:
        return email

    email = email.strip().lower()
    if not EMAIL_PATTERN.match(email):
        raise ValueError("E-mail inválido")
    return email


def email_domain_accepts_mail(email: str) -> bool:
    """Check that the email's domain publishes at least one MX record"""
    domain = email.rsplit("@", 1)[-1]
    try:
        answers = dns.resolver.resolve(domain, "MX")
        return len(answers) > 0
    except (dns.resolver.NXDOMAIN, dns.resolver.NoAnswer, dns.resolver.NoNameservers):
        return False
    except dns.exception.Timeout:
        # Resolver outage should not block signups
        return True


def validate_br_phone(phone: Optional[str]) -> Optional[str]:
    """
    Normalize a Brazilian phone number to digits with country code (55DDNNNNNNNNN).

    Raises:
        ValueError: If the number does not have 10 or 11 national digits
    """
    if not phone:
        return phone

    digits = re.sub(r"\D", "", phone)
    if digits.startswith("55") and len(digits) in (12, 13):
        digits = digits[2:]

    if len(digits) not in (10, 11):
        raise ValueError("Telefone deve ter DDD + número")

    return f"55{digits}"


def generate_slug(text: str) -> str:
    """Build a URL slug: lowercase, accents stripped, words joined by hyphens"""
    normalized = unicodedata.normalize("NFD", text.lower())
    without_accents = "".join(ch for ch in normalized if unicodedata.category(ch) != "Mn")
    cleaned = re.sub(r"[^\w\s-]", "", without_accents).strip()
    slug = re.sub(r"[\s_]+", "-", cleaned)
    slug = re.sub(r"-+", "-", slug)
    return slug.strip("-")
