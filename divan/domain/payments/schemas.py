"""Payment schemas - Pydantic models for orders and credits"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel

from ...models import Order, SessionCredit


class CreateOrderRequest(BaseModel):
    productId: str
    paymentMethod: Literal["pix", "card"]


class ValidatePixRequest(BaseModel):
    orderId: Optional[str] = None
    professionalId: Optional[str] = None


class OrderResponse(BaseModel):
    id: str
    userId: str
    professionalId: str
    productId: str
    productTitle: Optional[str] = None
    sessionsCount: Optional[int] = None
    appointmentType: Optional[str] = None
    status: str
    amountCents: int
    paymentMethod: str
    pixReference: Optional[str] = None
    paidAt: Optional[datetime] = None
    createdAt: datetime

    @classmethod
    def from_order(cls, order: Order) -> "OrderResponse":
        item = order.items[0] if order.items else None
        return cls(
            id=order.id,
            userId=order.user_id,
            professionalId=order.professional_id,
            productId=order.product_id,
            productTitle=item.title if item else None,
            sessionsCount=item.sessions_count if item else None,
            appointmentType=item.appointment_type if item else None,
            status=order.status,
            amountCents=order.amount_cents,
            paymentMethod=order.payment_method,
            pixReference=order.pix_reference,
            paidAt=order.paid_at,
            createdAt=order.created_at,
        )


class PendingPixOrderResponse(OrderResponse):
    clientName: Optional[str] = None
    clientEmail: Optional[str] = None

    @classmethod
    def from_order(cls, order: Order) -> "PendingPixOrderResponse":
        base = OrderResponse.from_order(order).model_dump()
        return cls(
            **base,
            clientName=order.user.name if order.user else None,
            clientEmail=order.user.email if order.user else None,
        )


class CreditResponse(BaseModel):
    id: str
    professionalId: str
    appointmentType: str
    total: int
    used: int
    remaining: int
    status: str
    orderId: str
    createdAt: datetime

    @classmethod
    def from_credit(cls, credit: SessionCredit) -> "CreditResponse":
        return cls(
            id=credit.id,
            professionalId=credit.professional_id,
            appointmentType=credit.appointment_type,
            total=credit.total,
            used=credit.used,
            remaining=credit.remaining,
            status=credit.status,
            orderId=credit.order_id,
            createdAt=credit.created_at,
        )
