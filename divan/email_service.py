"""
Email Service using Resend
Provides email functionality using MJML templates for responsive design
"""

import logging
from typing import Optional, Union

import resend
from mjml import mjml_to_html

from .config import Settings
from .email_templates import (
    appointment_cancelled_template,
    appointment_confirmation_template,
    email_verification_template,
    new_signup_notification_template,
    password_reset_template,
    payment_confirmed_template,
)
from .errors import UpstreamFailure

logger = logging.getLogger(__name__)


def compile_mjml_to_html(mjml_content: str) -> str:
    """Compile MJML template to production-ready HTML"""
    try:
        result = mjml_to_html(mjml_content)
    except Exception as e:
        logger.error(f"MJML compilation error: {e}")
        raise UpstreamFailure(f"Failed to compile MJML template: {str(e)}") from e

    # mjml_to_html returns an object exposing .html and .errors
    errors = getattr(result, "errors", None)
    if errors:
        logger.warning(f"MJML compilation warnings: {errors}")
    html = getattr(result, "html", None)
    if html is None and isinstance(result, dict):
        html = result.get("html", "")
    return html or ""


async def send_email(
    to: Union[str, list[str]],
    subject: str,
    mjml_content: str,
    settings: Settings,
    from_address: Optional[str] = None,
) -> dict:
    """
    Send an email through Resend

    Args:
        to: Recipient email(s)
        subject: Email subject line
        mjml_content: MJML template content (will be compiled to HTML)
        settings: Application settings (API key, sender)
        from_address: Optional custom from address

    Raises:
        UpstreamFailure: when the provider is not configured or rejects the message
    """
    if not settings.RESEND_API_KEY:
        logger.error("❌ No email service configured - RESEND_API_KEY missing")
        raise UpstreamFailure("Serviço de e-mail não configurado")

    html_content = compile_mjml_to_html(mjml_content)
    recipients = [to] if isinstance(to, str) else to

    resend.api_key = settings.RESEND_API_KEY
    try:
        logger.info(f"📧 Sending email via Resend to: {recipients}")
        response = resend.Emails.send(
            {
                "from": from_address or settings.EMAIL_FROM_ADDRESS,
                "to": recipients,
                "subject": subject,
                "html": html_content,
            }
        )
        logger.info(f"✅ Email sent successfully via Resend: {response}")
        return response
    except Exception as e:
        logger.error(f"❌ Email send error to {recipients}: {e}")
        raise UpstreamFailure(f"Failed to send email: {str(e)}") from e


# ============================================
# Pre-built emails for workflow events
# ============================================


async def send_verification_email(to: str, user_name: str, raw_token: str, settings: Settings) -> dict:
    verify_url = f"{settings.SITE_URL.rstrip('/')}/verificar-email?token={raw_token}"
    return await send_email(
        to=to,
        subject="Confirme seu e-mail",
        mjml_content=email_verification_template(user_name, verify_url, settings.EMAIL_VERIFICATION_TTL_HOURS),
        settings=settings,
    )


async def send_password_reset_email(to: str, user_name: str, raw_token: str, settings: Settings) -> dict:
    reset_url = f"{settings.SITE_URL.rstrip('/')}/resetar-senha?token={raw_token}"
    return await send_email(
        to=to,
        subject="Redefinição de senha",
        mjml_content=password_reset_template(user_name, reset_url, settings.PASSWORD_RESET_TTL_MINUTES),
        settings=settings,
    )


async def send_signup_notification(name: str, email: str, phone: Optional[str], settings: Settings) -> Optional[dict]:
    if not settings.PROFESSIONAL_EMAIL:
        logger.debug("PROFESSIONAL_EMAIL not set, skipping signup notification")
        return None
    return await send_email(
        to=settings.PROFESSIONAL_EMAIL,
        subject=f"Novo cadastro: {name}",
        mjml_content=new_signup_notification_template(name, email, phone),
        settings=settings,
    )


async def send_payment_confirmed_email(
    to: str, user_name: str, product_title: str, sessions_count: int, settings: Settings
) -> dict:
    return await send_email(
        to=to,
        subject="Pagamento confirmado",
        mjml_content=payment_confirmed_template(
            user_name, product_title, sessions_count, f"{settings.SITE_URL.rstrip('/')}/agenda"
        ),
        settings=settings,
    )


async def send_appointment_confirmation(
    to: str, user_name: str, when: str, appointment_type: str, appointment_id: str, settings: Settings
) -> dict:
    return await send_email(
        to=to,
        subject="Sessão agendada",
        mjml_content=appointment_confirmation_template(
            user_name, when, appointment_type, f"{settings.SITE_URL.rstrip('/')}/sessoes/{appointment_id}"
        ),
        settings=settings,
    )


async def send_appointment_cancelled(
    to: str, user_name: str, when: str, credit_refunded: bool, settings: Settings
) -> dict:
    return await send_email(
        to=to,
        subject="Sessão cancelada",
        mjml_content=appointment_cancelled_template(user_name, when, credit_refunded),
        settings=settings,
    )
