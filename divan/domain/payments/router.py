"""Payment router - orders, PIX validation, card webhook and credits"""

import logging
from typing import Literal, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Request
from sqlalchemy.orm import Session

from ...auth import get_current_user, require_professional
from ...config import Settings, get_settings
from ...database import get_db
from ...errors import DomainError, UpstreamFailure
from ...models import Profile
from ...services.outbox import dispatch_pending_events
from .schemas import (
    CreateOrderRequest,
    CreditResponse,
    OrderResponse,
    PendingPixOrderResponse,
    ValidatePixRequest,
)
from .service import PaymentService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/payments", tags=["Payments"])

PIX_VALIDATED_MESSAGE = "Pagamento validado e créditos adicionados com sucesso!"


def get_payment_service(
    db: Session = Depends(get_db), settings: Settings = Depends(get_settings)
) -> PaymentService:
    return PaymentService(db, settings)


# ============================================================================
# ORDERS
# ============================================================================


@router.post("/create-order", status_code=201)
async def create_order(
    data: CreateOrderRequest,
    current_user: Profile = Depends(get_current_user),
    service: PaymentService = Depends(get_payment_service),
):
    result = await service.create_order(data.productId, data.paymentMethod, current_user)
    response = {"order": OrderResponse.from_order(result["order"])}
    if "pixData" in result:
        response["pixData"] = result["pixData"]
    else:
        response["clientSecret"] = result["clientSecret"]
    return response


@router.get("/orders")
async def list_orders(
    current_user: Profile = Depends(get_current_user),
    service: PaymentService = Depends(get_payment_service),
):
    orders = service.list_my_orders(current_user)
    return {"orders": [OrderResponse.from_order(o) for o in orders]}


@router.post("/orders/{order_id}/cancel")
async def cancel_order(
    order_id: str,
    current_user: Profile = Depends(get_current_user),
    service: PaymentService = Depends(get_payment_service),
):
    order = service.cancel_order(order_id, current_user)
    return {"success": True, "order": OrderResponse.from_order(order)}


@router.get("/pending-pix")
async def list_pending_pix(
    professional: Profile = Depends(require_professional),
    service: PaymentService = Depends(get_payment_service),
):
    orders = service.list_pending_pix(professional)
    return {"orders": [PendingPixOrderResponse.from_order(o) for o in orders]}


# ============================================================================
# SETTLEMENT
# ============================================================================


@router.post("/validate-pix")
async def validate_pix(
    data: ValidatePixRequest,
    background_tasks: BackgroundTasks,
    professional: Profile = Depends(require_professional),
    service: PaymentService = Depends(get_payment_service),
    settings: Settings = Depends(get_settings),
):
    logger.info(f"🔍 Validating PIX order {data.orderId} by {professional.id}")
    try:
        result = service.validate_pix(data.orderId, data.professionalId, professional)
    except DomainError:
        raise
    except Exception as e:
        logger.error(f"❌ Unexpected error validating PIX order {data.orderId}: {str(e)}")
        raise UpstreamFailure(str(e)) from e

    background_tasks.add_task(dispatch_pending_events, settings)
    return {"success": True, "message": PIX_VALIDATED_MESSAGE, "data": result}


@router.post("/webhook")
async def card_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    service: PaymentService = Depends(get_payment_service),
    settings: Settings = Depends(get_settings),
):
    raw_body = await request.body()
    event = service.stripe.construct_event(raw_body, request.headers.get("Stripe-Signature"))

    logger.info(f"📥 Card webhook received: {event.get('type')}")
    order_id = service.handle_card_event(event)
    if order_id:
        background_tasks.add_task(dispatch_pending_events, settings)
    return {"received": True}


# ============================================================================
# CREDITS
# ============================================================================


@router.get("/credits")
async def credit_balance(
    professionalId: Optional[str] = Query(None),
    type: Optional[Literal["video", "chat"]] = Query(None),
    current_user: Profile = Depends(get_current_user),
    service: PaymentService = Depends(get_payment_service),
):
    balance = service.credit_balance(current_user, professionalId, type)
    return {
        "total": balance["total"],
        "used": balance["used"],
        "available": balance["available"],
        "credits": [CreditResponse.from_credit(c) for c in balance["credits"]],
    }
