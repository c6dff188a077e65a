"""
MJML Email Templates
All transactional emails share one responsive base layout
"""

from html import escape
from typing import Optional

# Divan theme colors - Terracotta/Sand
THEME = {
    "primary": "#b45f3c",
    "primary_dark": "#8f4a2e",
    "background": "#f7f3ee",
    "card_bg": "#ffffff",
    "text_primary": "#2b211c",
    "text_secondary": "#4a3f38",
    "text_muted": "#85786f",
    "border": "#e8dfd6",
}

BRAND_NAME = "Divan"


def get_base_template(
    title: str,
    preview_text: str,
    content_sections: str,
    cta_url: Optional[str] = None,
    cta_label: Optional[str] = None,
) -> str:
    """Base MJML template wrapper for all emails"""

    cta_section = ""
    if cta_url and cta_label:
        cta_section = f"""
        <mj-section padding="20px 0">
          <mj-column>
            <mj-button
              href="{escape(cta_url, quote=True)}"
              background-color="{THEME['primary']}"
              color="#ffffff"
              font-weight="600"
              border-radius="8px"
              padding="18px 40px"
              font-size="16px">
              {cta_label}
            </mj-button>
          </mj-column>
        </mj-section>
        """

    return f"""
    <mjml>
      <mj-head>
        <mj-title>{title}</mj-title>
        <mj-preview>{preview_text}</mj-preview>
        <mj-attributes>
          <mj-all font-family="Georgia, 'Times New Roman', serif" />
          <mj-text font-size="16px" line-height="1.6" color="{THEME['text_secondary']}" />
        </mj-attributes>
      </mj-head>
      <mj-body background-color="{THEME['background']}">
        <mj-section background-color="{THEME['card_bg']}" padding="32px 40px 48px 40px">
          <mj-column>
            <mj-text font-size="22px" font-weight="600" color="{THEME['text_primary']}" padding="0 0 16px 0">
              {title}
            </mj-text>
            {content_sections}
          </mj-column>
        </mj-section>

        {cta_section}

        <mj-section padding="32px 20px">
          <mj-column>
            <mj-text align="center" font-size="13px" color="{THEME['text_muted']}" padding="0">
              {BRAND_NAME} · Atendimento psicanalítico online
            </mj-text>
          </mj-column>
        </mj-section>
      </mj-body>
    </mjml>
    """


def email_verification_template(user_name: str, verify_url: str, ttl_hours: int) -> str:
    content = f"""
    <mj-text>Olá, {escape(user_name)}.</mj-text>
    <mj-text>
      Para ativar sua conta, confirme seu e-mail clicando no botão abaixo.
      O link é válido por {ttl_hours} horas e pode ser usado uma única vez.
    </mj-text>
    <mj-text color="{THEME['text_muted']}" font-size="14px">
      Se você não criou uma conta, ignore esta mensagem.
    </mj-text>
    """
    return get_base_template(
        title="Confirme seu e-mail",
        preview_text="Confirme seu e-mail para ativar sua conta",
        content_sections=content,
        cta_url=verify_url,
        cta_label="Confirmar e-mail",
    )


def password_reset_template(user_name: str, reset_url: str, ttl_minutes: int) -> str:
    content = f"""
    <mj-text>Olá, {escape(user_name)}.</mj-text>
    <mj-text>
      Recebemos um pedido para redefinir a senha da sua conta.
      O link vale por {ttl_minutes} minutos e pode ser usado uma única vez.
    </mj-text>
    <mj-text color="{THEME['text_muted']}" font-size="14px">
      Se não foi você, ignore esta mensagem. Sua senha continua a mesma.
    </mj-text>
    """
    return get_base_template(
        title="Redefinir senha",
        preview_text="Redefina a senha da sua conta Divan",
        content_sections=content,
        cta_url=reset_url,
        cta_label="Criar nova senha",
    )


def new_signup_notification_template(name: str, email: str, phone: Optional[str]) -> str:
    content = f"""
    <mj-text>Um novo paciente se cadastrou:</mj-text>
    <mj-text>
      <strong>Nome:</strong> {escape(name)}<br/>
      <strong>E-mail:</strong> {escape(email)}<br/>
      <strong>Telefone:</strong> {escape(phone or "-")}
    </mj-text>
    """
    return get_base_template(
        title="Novo cadastro",
        preview_text=f"Novo cadastro: {escape(name)}",
        content_sections=content,
    )


def payment_confirmed_template(user_name: str, product_title: str, sessions_count: int, agenda_url: str) -> str:
    content = f"""
    <mj-text>Olá, {escape(user_name)}.</mj-text>
    <mj-text>
      Seu pagamento do pacote <strong>{escape(product_title)}</strong> foi confirmado.
      {sessions_count} sessão(ões) já estão disponíveis para agendamento.
    </mj-text>
    """
    return get_base_template(
        title="Pagamento confirmado",
        preview_text="Seus créditos de sessão foram liberados",
        content_sections=content,
        cta_url=agenda_url,
        cta_label="Agendar sessão",
    )


def appointment_confirmation_template(user_name: str, when: str, appointment_type: str, session_url: str) -> str:
    kind = "vídeo" if appointment_type == "video" else "chat"
    content = f"""
    <mj-text>Olá, {escape(user_name)}.</mj-text>
    <mj-text>
      Sua sessão por {kind} está agendada para <strong>{when}</strong>.
      A sala abre 10 minutos antes do horário.
    </mj-text>
    <mj-text color="{THEME['text_muted']}" font-size="14px">
      Cancelamentos com menos de 24 horas de antecedência não devolvem o crédito; nesse caso é possível reagendar.
    </mj-text>
    """
    return get_base_template(
        title="Sessão agendada",
        preview_text=f"Sessão agendada para {when}",
        content_sections=content,
        cta_url=session_url,
        cta_label="Ver sessão",
    )


def appointment_cancelled_template(user_name: str, when: str, credit_refunded: bool) -> str:
    refund_line = (
        "O crédito da sessão foi devolvido ao seu saldo."
        if credit_refunded
        else "Por ter sido cancelada com menos antecedência que o mínimo, o crédito não foi devolvido."
    )
    content = f"""
    <mj-text>Olá, {escape(user_name)}.</mj-text>
    <mj-text>A sessão de <strong>{when}</strong> foi cancelada. {refund_line}</mj-text>
    """
    return get_base_template(
        title="Sessão cancelada",
        preview_text=f"Sessão de {when} cancelada",
        content_sections=content,
    )
