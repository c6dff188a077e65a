"""
Tests for order creation, PIX validation, card settlement and credit balance.
Validates that settlement is idempotent and grants exactly one credit per order.
"""

import json
import time
from unittest.mock import MagicMock, patch

import pytest
import stripe
from conftest import auth_headers, make_credit, make_pix_order, make_product, make_profile, stripe_signature

from divan.domain.payments.service import PaymentService
from divan.errors import Unauthorized, UpstreamFailure
from divan.models import Notification, Order, OutboxEvent, SessionCredit
from divan.services.stripe_service import StripeService


def _validate(client, professional, order_id, professional_id=None):
    return client.post(
        "/api/payments/validate-pix",
        json={"orderId": order_id, "professionalId": professional_id or professional.id},
        headers=auth_headers(professional),
    )


class TestCreateOrder:
    """Clients buy session packages by PIX or card."""

    def test_pix_order(self, client, db, professional, client_profile):
        product = make_product(db, professional, sessions_count=4, price_cents=20000)
        response = client.post(
            "/api/payments/create-order",
            json={"productId": product.id, "paymentMethod": "pix"},
            headers=auth_headers(client_profile),
        )

        assert response.status_code == 201
        body = response.json()
        assert body["order"]["status"] == "pending_pix"
        assert body["order"]["sessionsCount"] == 4
        assert body["pixData"]["amount"] == 200.0
        assert body["pixData"]["reference"].startswith("PIX")

    def test_inactive_product_is_404(self, client, db, professional, client_profile):
        product = make_product(db, professional)
        product.is_active = False
        db.commit()
        response = client.post(
            "/api/payments/create-order",
            json={"productId": product.id, "paymentMethod": "pix"},
            headers=auth_headers(client_profile),
        )
        assert response.status_code == 404

    def test_card_without_processor_is_upstream_failure(self, client, db, professional, client_profile):
        product = make_product(db, professional)
        response = client.post(
            "/api/payments/create-order",
            json={"productId": product.id, "paymentMethod": "card"},
            headers=auth_headers(client_profile),
        )
        assert response.status_code == 500
        assert response.json()["code"] == "UPSTREAM_FAILURE"

    async def test_card_order_returns_client_secret(self, db, settings, professional, client_profile):
        product = make_product(db, professional)
        processor = MagicMock()
        processor.is_available.return_value = True
        processor.create_payment_intent = MagicMock(return_value={"id": "pi_123", "client_secret": "cs_abc"})

        result = await PaymentService(db, settings, stripe=processor).create_order(product.id, "card", client_profile)

        assert result["clientSecret"] == "cs_abc"
        assert result["order"].stripe_payment_intent_id == "pi_123"
        assert result["order"].status == "pending"
        assert processor.create_payment_intent.call_args.kwargs["idempotency_key"] == f"order-{result['order'].id}"

    async def test_card_intent_failure_marks_order_failed(self, db, settings, professional, client_profile):
        product = make_product(db, professional)
        processor = MagicMock()
        processor.is_available.return_value = True
        processor.create_payment_intent = MagicMock(side_effect=UpstreamFailure("card declined"))

        with pytest.raises(UpstreamFailure):
            await PaymentService(db, settings, stripe=processor).create_order(product.id, "card", client_profile)

        assert db.query(Order).one().status == "failed"


class TestValidatePix:
    """The professional attests a PIX transfer; credits are granted once."""

    def test_scenario_four_session_package(self, client, db, professional, client_profile):
        product = make_product(db, professional, sessions_count=4, price_cents=20000)
        order = make_pix_order(db, client_profile, product)

        response = _validate(client, professional, order.id)

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["message"] == "Pagamento validado e créditos adicionados com sucesso!"
        assert body["data"]["sessionsAdded"] == 4
        assert body["data"]["alreadyProcessed"] is False

        db.expire_all()
        assert db.get(Order, order.id).status == "paid"
        assert db.get(Order, order.id).paid_at is not None
        credit = db.query(SessionCredit).one()
        assert (credit.total, credit.used, credit.status) == (4, 0, "active")
        assert credit.professional_id == professional.id
        assert credit.user_id == client_profile.id

    def test_retry_does_not_grant_second_credit(self, client, db, professional, client_profile):
        order = make_pix_order(db, client_profile, make_product(db, professional))

        first = _validate(client, professional, order.id).json()["data"]
        second = _validate(client, professional, order.id).json()["data"]

        assert second["alreadyProcessed"] is True
        assert second["creditId"] == first["creditId"]
        assert db.query(SessionCredit).count() == 1

    def test_settlement_notifies_client_and_queues_email(self, client, db, professional, client_profile):
        order = make_pix_order(db, client_profile, make_product(db, professional))
        _validate(client, professional, order.id)

        types = {n.type for n in db.query(Notification).filter(Notification.user_id == client_profile.id)}
        assert types == {"payment_pix_validated", "credits_released"}
        event = db.query(OutboxEvent).one()
        assert event.kind == "email.payment_confirmed"
        assert event.payload["to"] == client_profile.email

    def test_mismatched_professional_is_forbidden(self, client, db, professional, client_profile):
        order = make_pix_order(db, client_profile, make_product(db, professional))
        response = _validate(client, professional, order.id, professional_id="someone-else")
        assert response.status_code == 403
        assert db.query(SessionCredit).count() == 0

    def test_other_professional_cannot_validate(self, client, db, professional, client_profile):
        order = make_pix_order(db, client_profile, make_product(db, professional))
        other = make_profile(db, name="Outro", email="outro@divan.com.br", role="professional")
        response = _validate(client, other, order.id)
        assert response.status_code == 403

    def test_missing_fields(self, client, professional):
        response = client.post("/api/payments/validate-pix", json={}, headers=auth_headers(professional))
        assert response.status_code == 400

    def test_client_cannot_validate(self, client, db, professional, client_profile):
        order = make_pix_order(db, client_profile, make_product(db, professional))
        response = _validate(client, client_profile, order.id, professional_id=professional.id)
        assert response.status_code == 403

    def test_cancelled_order_cannot_be_validated(self, client, db, professional, client_profile):
        order = make_pix_order(db, client_profile, make_product(db, professional), status="cancelled")
        response = _validate(client, professional, order.id)
        assert response.status_code == 400


class TestCardWebhook:
    """Signed processor events settle card orders."""

    def _card_order(self, db, professional, client_profile):
        order = make_pix_order(db, client_profile, make_product(db, professional), status="pending")
        order.payment_method = "card"
        order.pix_reference = None
        order.stripe_payment_intent_id = "pi_card_1"
        db.commit()
        return order

    def _post(self, client, settings, event, signature=None):
        payload = json.dumps(event).encode()
        return client.post(
            "/api/payments/webhook",
            content=payload,
            headers={
                "Content-Type": "application/json",
                "Stripe-Signature": signature or stripe_signature(payload, settings.STRIPE_WEBHOOK_SECRET),
            },
        )

    def test_succeeded_event_grants_credit(self, client, db, settings, professional, client_profile):
        order = self._card_order(db, professional, client_profile)
        event = {"type": "payment_intent.succeeded", "data": {"object": {"id": "pi_card_1", "metadata": {}}}}

        response = self._post(client, settings, event)
        assert response.status_code == 200
        assert response.json() == {"received": True}

        db.expire_all()
        assert db.get(Order, order.id).status == "paid"
        assert db.query(SessionCredit).count() == 1
        # Card settlements do not send the PIX notification
        types = {n.type for n in db.query(Notification)}
        assert types == {"credits_released"}

    def test_duplicate_delivery_is_idempotent(self, client, db, settings, professional, client_profile):
        self._card_order(db, professional, client_profile)
        event = {"type": "payment_intent.succeeded", "data": {"object": {"id": "pi_card_1"}}}
        self._post(client, settings, event)
        self._post(client, settings, event)
        assert db.query(SessionCredit).count() == 1

    def test_failed_event_marks_order_failed(self, client, db, settings, professional, client_profile):
        order = self._card_order(db, professional, client_profile)
        event = {"type": "payment_intent.payment_failed", "data": {"object": {"id": "pi_card_1"}}}
        self._post(client, settings, event)
        db.expire_all()
        assert db.get(Order, order.id).status == "failed"

    def test_bad_signature_is_rejected(self, client, db, settings, professional, client_profile):
        self._card_order(db, professional, client_profile)
        event = {"type": "payment_intent.succeeded", "data": {"object": {"id": "pi_card_1"}}}
        response = self._post(client, settings, event, signature="t=1,v1=deadbeef")
        assert response.status_code == 401
        assert db.query(SessionCredit).count() == 0

    def test_replayed_old_event_is_rejected(self, client, db, settings, professional, client_profile):
        self._card_order(db, professional, client_profile)
        event = {"type": "payment_intent.succeeded", "data": {"object": {"id": "pi_card_1"}}}
        stale = stripe_signature(json.dumps(event).encode(), settings.STRIPE_WEBHOOK_SECRET, timestamp=int(time.time()) - 3600)

        response = self._post(client, settings, event, signature=stale)

        assert response.status_code == 401
        assert response.json()["code"] == "UNAUTHORIZED"
        assert db.query(SessionCredit).count() == 0

    def test_missing_signature_header_is_rejected(self, client, db, professional, client_profile):
        self._card_order(db, professional, client_profile)
        response = client.post("/api/payments/webhook", content=b"{}", headers={"Content-Type": "application/json"})
        assert response.status_code == 401

    @pytest.mark.parametrize("status", ["cancelled", "failed"])
    def test_success_for_closed_order_is_acknowledged(self, client, db, settings, professional, client_profile, status):
        """A late success on a closed order is logged for refund instead of retried forever"""
        order = self._card_order(db, professional, client_profile)
        order.status = status
        db.commit()
        event = {"type": "payment_intent.succeeded", "data": {"object": {"id": "pi_card_1"}}}

        response = self._post(client, settings, event)

        assert response.status_code == 200
        db.expire_all()
        assert db.get(Order, order.id).status == status
        assert db.query(SessionCredit).count() == 0


class TestStripeService:
    """SDK calls with stripe.PaymentIntent.create patched."""

    def _service(self, settings):
        return StripeService(settings.model_copy(update={"STRIPE_SECRET_KEY": "sk_test_123"}))

    def test_payment_intent_uses_idempotency_key(self, settings):
        intent = MagicMock(id="pi_1", client_secret="cs_1")
        with patch("divan.services.stripe_service.stripe.PaymentIntent.create", return_value=intent) as create:
            result = self._service(settings).create_payment_intent(20000, {"order_id": "o-1"}, "order-o-1")

        assert result == {"id": "pi_1", "client_secret": "cs_1"}
        kwargs = create.call_args.kwargs
        assert kwargs["idempotency_key"] == "order-o-1"
        assert kwargs["amount"] == 20000
        assert kwargs["currency"] == "brl"
        assert kwargs["metadata"] == {"order_id": "o-1"}

    def test_processor_error_is_upstream_failure(self, settings):
        error = stripe.StripeError("Your card was declined.")
        with patch("divan.services.stripe_service.stripe.PaymentIntent.create", side_effect=error):
            with pytest.raises(UpstreamFailure):
                self._service(settings).create_payment_intent(20000, {}, "order-x")

    def test_unconfigured_webhook_secret_is_unauthorized(self, settings):
        service = StripeService(settings.model_copy(update={"STRIPE_WEBHOOK_SECRET": None}))
        with pytest.raises(Unauthorized):
            service.construct_event(b"{}", "t=1,v1=abc")

    def test_verified_event_is_returned_as_dict(self, settings):
        payload = json.dumps({"type": "payment_intent.succeeded", "data": {"object": {"id": "pi_9"}}}).encode()
        event = StripeService(settings).construct_event(payload, stripe_signature(payload, settings.STRIPE_WEBHOOK_SECRET))
        assert event["data"]["object"]["id"] == "pi_9"


class TestOrdersAndCredits:
    def test_client_cancels_pending_order(self, client, db, professional, client_profile):
        order = make_pix_order(db, client_profile, make_product(db, professional))
        response = client.post(f"/api/payments/orders/{order.id}/cancel", headers=auth_headers(client_profile))
        assert response.status_code == 200
        assert response.json()["order"]["status"] == "cancelled"

    def test_paid_order_cannot_be_cancelled(self, client, db, professional, client_profile):
        order = make_pix_order(db, client_profile, make_product(db, professional), status="paid")
        response = client.post(f"/api/payments/orders/{order.id}/cancel", headers=auth_headers(client_profile))
        assert response.status_code == 400

    def test_pending_pix_list_for_professional(self, client, db, professional, client_profile):
        make_pix_order(db, client_profile, make_product(db, professional))
        response = client.get("/api/payments/pending-pix", headers=auth_headers(professional))
        orders = response.json()["orders"]
        assert len(orders) == 1
        assert orders[0]["clientEmail"] == client_profile.email

    def test_credit_balance(self, client, db, professional, client_profile):
        make_credit(db, client_profile, professional, "video", total=4, used=1)
        make_credit(db, client_profile, professional, "chat", total=2, used=0)

        response = client.get("/api/payments/credits?type=video", headers=auth_headers(client_profile))
        body = response.json()
        assert (body["total"], body["used"], body["available"]) == (4, 1, 3)
        assert len(body["credits"]) == 1
