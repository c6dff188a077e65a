"""Payment repository - orders, order items and session credits"""

from typing import Optional

from sqlalchemy.orm import Session, joinedload

from ...models import Order, OrderItem, Product, SessionCredit


class PaymentRepository:
    """Repository for order and credit database operations"""

    @staticmethod
    def get_active_product(db: Session, product_id: str) -> Optional[Product]:
        return db.query(Product).filter(Product.id == product_id, Product.is_active.is_(True)).first()

    @staticmethod
    def add_order_with_item(db: Session, product: Product, **order_data) -> Order:
        """Stage the order and its product snapshot in the current transaction"""
        order = Order(product_id=product.id, professional_id=product.professional_id, **order_data)
        order.items.append(
            OrderItem(
                product_id=product.id,
                title=product.title,
                appointment_type=product.appointment_type,
                sessions_count=product.sessions_count,
                price_cents=product.price_cents,
            )
        )
        db.add(order)
        db.flush()
        return order

    @staticmethod
    def get_order(db: Session, order_id: str) -> Optional[Order]:
        return db.query(Order).filter(Order.id == order_id).first()

    @staticmethod
    def lock_order(db: Session, order_id: str) -> Optional[Order]:
        """SELECT ... FOR UPDATE; serializes concurrent settlements of one order"""
        return db.query(Order).filter(Order.id == order_id).with_for_update().first()

    @staticmethod
    def lock_order_by_payment_intent(db: Session, payment_intent_id: str) -> Optional[Order]:
        return (
            db.query(Order)
            .filter(Order.stripe_payment_intent_id == payment_intent_id)
            .with_for_update()
            .first()
        )

    @staticmethod
    def get_credit_by_order(db: Session, order_id: str) -> Optional[SessionCredit]:
        return db.query(SessionCredit).filter(SessionCredit.order_id == order_id).first()

    @staticmethod
    def add_credit(db: Session, **credit_data) -> SessionCredit:
        credit = SessionCredit(**credit_data)
        db.add(credit)
        db.flush()
        return credit

    @staticmethod
    def list_user_orders(db: Session, user_id: str) -> list[Order]:
        return (
            db.query(Order)
            .options(joinedload(Order.items))
            .filter(Order.user_id == user_id)
            .order_by(Order.created_at.desc())
            .all()
        )

    @staticmethod
    def list_pending_pix(db: Session, professional_id: str) -> list[Order]:
        return (
            db.query(Order)
            .options(joinedload(Order.items), joinedload(Order.user))
            .filter(Order.professional_id == professional_id, Order.status == "pending_pix")
            .order_by(Order.created_at.asc())
            .all()
        )

    @staticmethod
    def list_credits(
        db: Session,
        user_id: str,
        professional_id: Optional[str] = None,
        appointment_type: Optional[str] = None,
        active_only: bool = False,
    ) -> list[SessionCredit]:
        query = db.query(SessionCredit).filter(SessionCredit.user_id == user_id)
        if professional_id:
            query = query.filter(SessionCredit.professional_id == professional_id)
        if appointment_type:
            query = query.filter(SessionCredit.appointment_type == appointment_type)
        if active_only:
            query = query.filter(SessionCredit.status == "active")
        return query.order_by(SessionCredit.created_at.asc()).all()
