"""Catalog service - product management and public listing"""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from ...errors import NotFound, ValidationFailed
from ...models import Product, Profile
from ...policy import enforce
from .repository import CatalogRepository
from .schemas import ProductCreate, ProductUpdate

logger = logging.getLogger(__name__)


class CatalogService:
    def __init__(self, db: Session):
        self.db = db
        self.repo = CatalogRepository()

    def list_active(self, professional_id: Optional[str], appointment_type: Optional[str]) -> list[Product]:
        return self.repo.list_active(self.db, professional_id, appointment_type)

    def list_mine(self, professional: Profile) -> list[Product]:
        return self.repo.list_by_professional(self.db, professional.id)

    def get_public_professional(self) -> tuple[Profile, list[Product]]:
        professional = self.repo.get_public_professional(self.db)
        if not professional:
            raise NotFound("Profissional não encontrado")
        return professional, self.repo.list_active(self.db, professional.id)

    def create_product(self, data: ProductCreate, professional: Profile) -> Product:
        product = self.repo.create_product(
            self.db,
            professional_id=professional.id,
            title=data.title,
            description=data.description,
            appointment_type=data.appointmentType,
            sessions_count=data.sessionsCount,
            price_cents=data.priceCents,
            is_active=data.isActive,
        )
        logger.info(f"📦 Product {product.id} created by {professional.id}")
        return product

    def update_product(self, product_id: str, data: ProductUpdate, professional: Profile) -> Product:
        product = self._get_owned(product_id, professional)

        updates = {
            "title": data.title.strip() if data.title else None,
            "description": data.description,
            "sessions_count": data.sessionsCount,
            "price_cents": data.priceCents,
            "is_active": data.isActive,
        }
        if all(v is None for v in updates.values()):
            raise ValidationFailed("Nada para atualizar")

        return self.repo.update_product(self.db, product, **updates)

    def deactivate_product(self, product_id: str, professional: Profile) -> None:
        """Products referenced by orders are kept; removal only hides them from sale"""
        product = self._get_owned(product_id, professional)
        self.repo.update_product(self.db, product, is_active=False)
        logger.info(f"📦 Product {product.id} deactivated by {professional.id}")

    def _get_owned(self, product_id: str, professional: Profile) -> Product:
        product = self.repo.get_product(self.db, product_id)
        if not product:
            raise NotFound("Produto não encontrado")
        enforce(professional, product, "manage")
        return product
