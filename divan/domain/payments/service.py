"""Payment service - order creation, settlement and credit balance"""

import logging
from typing import Optional

from fastapi.concurrency import run_in_threadpool
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...config import Settings
from ...errors import Forbidden, NotFound, UpstreamFailure, ValidationFailed
from ...models import Order, Profile, SessionCredit
from ...policy import enforce
from ...security_utils import generate_pix_reference
from ...services.notification_service import notify
from ...services.outbox import enqueue
from ...services.stripe_service import StripeService
from ...shared.clock import utcnow
from .repository import PaymentRepository

logger = logging.getLogger(__name__)

SETTLEABLE_STATUSES = ("pending", "pending_pix")
CANCELLABLE_STATUSES = ("pending", "pending_pix")


class PaymentService:
    """Service layer for orders and session credits"""

    def __init__(self, db: Session, settings: Settings, stripe: Optional[StripeService] = None):
        self.db = db
        self.settings = settings
        self.stripe = stripe or StripeService(settings)
        self.repo = PaymentRepository()

    # ========================================================================
    # ORDERS
    # ========================================================================

    async def create_order(self, product_id: str, payment_method: str, buyer: Profile) -> dict:
        product = self.repo.get_active_product(self.db, product_id)
        if not product:
            raise NotFound("Produto não encontrado ou inativo")

        if payment_method == "card" and not self.stripe.is_available():
            raise UpstreamFailure("Pagamento com cartão não configurado")

        order = self.repo.add_order_with_item(
            self.db,
            product,
            user_id=buyer.id,
            status="pending_pix" if payment_method == "pix" else "pending",
            amount_cents=product.price_cents,
            payment_method=payment_method,
            pix_reference=generate_pix_reference() if payment_method == "pix" else None,
        )
        self.db.commit()
        logger.info(f"🧾 Order {order.id} created ({payment_method}) for {buyer.id}")

        if payment_method == "pix":
            return {
                "order": order,
                "pixData": {
                    "reference": order.pix_reference,
                    "amount": order.amount_cents / 100,
                    "orderId": order.id,
                    "qrCode": "",
                },
            }

        try:
            intent = await run_in_threadpool(
                self.stripe.create_payment_intent,
                order.amount_cents,
                metadata={"order_id": order.id, "product_id": product.id, "user_id": buyer.id},
                idempotency_key=f"order-{order.id}",
            )
        except UpstreamFailure:
            order.status = "failed"
            self.db.commit()
            raise

        order.stripe_payment_intent_id = intent["id"]
        self.db.commit()
        return {"order": order, "clientSecret": intent["client_secret"]}

    def list_my_orders(self, buyer: Profile) -> list[Order]:
        return self.repo.list_user_orders(self.db, buyer.id)

    def list_pending_pix(self, professional: Profile) -> list[Order]:
        return self.repo.list_pending_pix(self.db, professional.id)

    def cancel_order(self, order_id: str, caller: Profile) -> Order:
        order = self.repo.lock_order(self.db, order_id)
        if not order:
            raise NotFound("Pedido não encontrado")
        enforce(caller, order, "cancel")

        if order.status not in CANCELLABLE_STATUSES:
            raise ValidationFailed(f"Pedido não pode ser cancelado (status: {order.status})")

        order.status = "cancelled"
        self.db.commit()
        logger.info(f"🚫 Order {order.id} cancelled by {caller.id}")
        return order

    # ========================================================================
    # SETTLEMENT
    # ========================================================================

    def validate_pix(self, order_id: Optional[str], professional_id: Optional[str], caller: Profile) -> dict:
        """Professional confirms a PIX transfer; idempotent per order"""
        if not order_id or not professional_id:
            raise ValidationFailed("orderId e professionalId são obrigatórios")
        if professional_id != caller.id:
            raise Forbidden("Profissional inválido para este pedido")

        order = self.repo.get_order(self.db, order_id)
        if not order:
            raise ValidationFailed("Pedido não encontrado")
        enforce(caller, order, "validate")
        if order.payment_method != "pix":
            raise ValidationFailed("Pedido não é um pagamento PIX")

        credit, already_processed = self.settle_order(order_id)
        return {
            "orderId": order_id,
            "creditId": credit.id,
            "sessionsAdded": credit.total,
            "alreadyProcessed": already_processed,
        }

    def settle_order(self, order_id: str) -> tuple[SessionCredit, bool]:
        """
        Mark the order paid and grant its session credit in one transaction.

        Returns:
            (credit, already_processed) - a paid order returns its existing credit
        """
        try:
            order = self.repo.lock_order(self.db, order_id)
            if not order:
                raise ValidationFailed("Pedido não encontrado")

            if order.status == "paid":
                credit = self.repo.get_credit_by_order(self.db, order.id)
                if credit:
                    self.db.rollback()
                    logger.info(f"🔁 Order {order.id} already settled, returning credit {credit.id}")
                    return credit, True

            elif order.status not in SETTLEABLE_STATUSES:
                raise ValidationFailed(f"Pedido não pode ser validado (status: {order.status})")

            item = order.items[0]
            now = utcnow()
            order.status = "paid"
            order.paid_at = now

            credit = self.repo.add_credit(
                self.db,
                user_id=order.user_id,
                professional_id=order.professional_id,
                appointment_type=item.appointment_type,
                total=item.sessions_count,
                used=0,
                status="active",
                order_id=order.id,
            )

            if order.payment_method == "pix":
                notify(
                    self.db,
                    order.user_id,
                    "payment_pix_validated",
                    "Pagamento PIX confirmado",
                    f"Seu pagamento de {item.title} foi confirmado.",
                    {"order_id": order.id},
                )
            notify(
                self.db,
                order.user_id,
                "credits_released",
                "Créditos liberados",
                f"{item.sessions_count} sessão(ões) disponíveis para agendamento.",
                {"order_id": order.id, "credits_added": item.sessions_count, "link": "/agenda"},
            )
            enqueue(
                self.db,
                "email.payment_confirmed",
                {
                    "to": order.user.email,
                    "user_name": order.user.name,
                    "product_title": item.title,
                    "sessions_count": item.sessions_count,
                },
            )
            self.db.commit()
        except IntegrityError as e:
            # Unique order_id on session_credits: a concurrent settlement already granted it
            self.db.rollback()
            credit = self.repo.get_credit_by_order(self.db, order_id)
            if not credit:
                raise
            logger.warning(f"⚠️ Concurrent settlement of order {order_id} detected: {e.orig}")
            return credit, True
        except Exception:
            self.db.rollback()
            raise

        logger.info(f"✅ Order {order.id} paid; credit {credit.id} granted ({credit.total} sessions)")
        return credit, False

    def handle_card_event(self, event: dict) -> Optional[str]:
        """Apply a verified card-processor webhook event; returns the affected order id"""
        event_type = event.get("type")
        intent = (event.get("data") or {}).get("object") or {}
        intent_id = intent.get("id")
        order_id = (intent.get("metadata") or {}).get("order_id")

        if event_type not in ("payment_intent.succeeded", "payment_intent.payment_failed"):
            logger.debug(f"Ignoring card event {event_type}")
            return None

        order = None
        if intent_id:
            order = self.repo.lock_order_by_payment_intent(self.db, intent_id)
        if not order and order_id:
            order = self.repo.lock_order(self.db, order_id)
        if not order:
            logger.warning(f"⚠️ Card event {event_type} for unknown order (intent {intent_id})")
            self.db.rollback()
            return None

        if event_type == "payment_intent.succeeded":
            if order.status not in SETTLEABLE_STATUSES + ("paid",):
                # Acknowledged so the processor stops retrying; the charge needs a manual refund
                logger.error(
                    f"❌ Card payment {intent_id} succeeded for order {order.id} in status {order.status}, refund manually"
                )
                self.db.rollback()
                return None
            self.db.rollback()
            self.settle_order(order.id)
            return order.id

        if order.status == "pending":
            order.status = "failed"
            self.db.commit()
            logger.info(f"❌ Order {order.id} marked failed by card processor")
        else:
            self.db.rollback()
        return order.id

    # ========================================================================
    # CREDITS
    # ========================================================================

    def credit_balance(
        self, buyer: Profile, professional_id: Optional[str], appointment_type: Optional[str]
    ) -> dict:
        credits = self.repo.list_credits(self.db, buyer.id, professional_id, appointment_type)
        active = [c for c in credits if c.status == "active"]
        total = sum(c.total for c in active)
        used = sum(c.used for c in active)
        return {"total": total, "used": used, "available": total - used, "credits": credits}
