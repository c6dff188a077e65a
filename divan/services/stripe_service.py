"""Stripe service - card PaymentIntents and webhook verification through the stripe SDK"""

import json
import logging
from typing import Optional

import stripe

from ..config import Settings
from ..errors import Unauthorized, UpstreamFailure, ValidationFailed

logger = logging.getLogger(__name__)


class StripeService:
    def __init__(self, settings: Settings):
        self.api_key = settings.STRIPE_SECRET_KEY
        self.webhook_secret = settings.STRIPE_WEBHOOK_SECRET

        if not self.api_key:
            logger.warning("STRIPE_SECRET_KEY not set; card payments will fail until configured")

    def is_available(self) -> bool:
        return bool(self.api_key)

    def create_payment_intent(self, amount_cents: int, metadata: dict, idempotency_key: str) -> dict:
        """
        Create a BRL PaymentIntent.

        Returns:
            {"id": ..., "client_secret": ...}
        """
        if not self.is_available():
            raise UpstreamFailure("Pagamento com cartão não configurado")

        try:
            intent = stripe.PaymentIntent.create(
                amount=amount_cents,
                currency="brl",
                automatic_payment_methods={"enabled": True},
                metadata={key: str(value) for key, value in metadata.items()},
                idempotency_key=idempotency_key,
                api_key=self.api_key,
            )
        except stripe.StripeError as e:
            logger.error(f"❌ Stripe PaymentIntent failed: {e}")
            raise UpstreamFailure(f"Falha ao iniciar pagamento: {e.user_message or str(e)}") from e

        logger.info(f"✅ Stripe PaymentIntent created: {intent.id}")
        return {"id": intent.id, "client_secret": intent.client_secret}

    def construct_event(self, payload: bytes, signature: Optional[str]) -> dict:
        """
        Verify the Stripe-Signature header against the raw body.

        Raises:
            Unauthorized when the secret is missing or the signature is invalid or stale
        """
        if not self.webhook_secret:
            logger.error("❌ STRIPE_WEBHOOK_SECRET not configured, refusing webhook")
            raise Unauthorized("Webhook não configurado")
        if not signature:
            logger.warning("🚫 Card webhook without a Stripe-Signature header")
            raise Unauthorized("Assinatura do webhook ausente")

        try:
            stripe.Webhook.construct_event(payload, signature, self.webhook_secret)
        except stripe.SignatureVerificationError as e:
            logger.warning(f"🚫 Card webhook signature verification failed: {e}")
            raise Unauthorized("Assinatura do webhook inválida") from e
        except ValueError as e:
            raise ValidationFailed("Invalid JSON payload") from e

        # Plain dict view of the verified event
        return json.loads(payload)
