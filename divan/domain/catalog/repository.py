"""Catalog repository - Database operations for products"""

from typing import Optional

from sqlalchemy.orm import Session

from ...models import Product, Profile


class CatalogRepository:
    @staticmethod
    def list_active(
        db: Session, professional_id: Optional[str] = None, appointment_type: Optional[str] = None
    ) -> list[Product]:
        query = db.query(Product).filter(Product.is_active.is_(True))
        if professional_id:
            query = query.filter(Product.professional_id == professional_id)
        if appointment_type:
            query = query.filter(Product.appointment_type == appointment_type)
        return query.order_by(Product.appointment_type, Product.sessions_count).all()

    @staticmethod
    def list_by_professional(db: Session, professional_id: str) -> list[Product]:
        return (
            db.query(Product)
            .filter(Product.professional_id == professional_id)
            .order_by(Product.created_at.desc())
            .all()
        )

    @staticmethod
    def get_product(db: Session, product_id: str) -> Optional[Product]:
        return db.query(Product).filter(Product.id == product_id).first()

    @staticmethod
    def create_product(db: Session, **product_data) -> Product:
        product = Product(**product_data)
        db.add(product)
        db.commit()
        db.refresh(product)
        return product

    @staticmethod
    def update_product(db: Session, product: Product, **updates) -> Product:
        for key, value in updates.items():
            if value is not None and hasattr(product, key):
                setattr(product, key, value)
        db.commit()
        db.refresh(product)
        return product

    @staticmethod
    def get_public_professional(db: Session) -> Optional[Profile]:
        return (
            db.query(Profile)
            .filter(
                Profile.role == "professional",
                Profile.status == "active",
                Profile.deleted_at.is_(None),
            )
            .order_by(Profile.created_at.asc())
            .first()
        )
