"""Catalog router - products and the public professional page"""

from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import require_professional
from ...database import get_db
from ...models import Profile
from .schemas import ProductCreate, ProductResponse, ProductUpdate
from .service import CatalogService

router = APIRouter(prefix="/api/products", tags=["Products"])
public_router = APIRouter(prefix="/api/public", tags=["Public"])


def get_catalog_service(db: Session = Depends(get_db)) -> CatalogService:
    return CatalogService(db)


@router.get("")
async def list_products(
    professionalId: Optional[str] = Query(None),
    type: Optional[Literal["video", "chat"]] = Query(None),
    service: CatalogService = Depends(get_catalog_service),
):
    """Active products available for purchase"""
    products = service.list_active(professionalId, type)
    return {"products": [ProductResponse.from_product(p) for p in products]}


@router.get("/mine")
async def list_my_products(
    professional: Profile = Depends(require_professional),
    service: CatalogService = Depends(get_catalog_service),
):
    products = service.list_mine(professional)
    return {"products": [ProductResponse.from_product(p) for p in products]}


@router.post("", status_code=201)
async def create_product(
    data: ProductCreate,
    professional: Profile = Depends(require_professional),
    service: CatalogService = Depends(get_catalog_service),
):
    product = service.create_product(data, professional)
    return {"success": True, "product": ProductResponse.from_product(product)}


@router.patch("/{product_id}")
async def update_product(
    product_id: str,
    data: ProductUpdate,
    professional: Profile = Depends(require_professional),
    service: CatalogService = Depends(get_catalog_service),
):
    product = service.update_product(product_id, data, professional)
    return {"success": True, "product": ProductResponse.from_product(product)}


@router.delete("/{product_id}")
async def delete_product(
    product_id: str,
    professional: Profile = Depends(require_professional),
    service: CatalogService = Depends(get_catalog_service),
):
    service.deactivate_product(product_id, professional)
    return {"success": True}


@public_router.get("/professional")
async def public_professional(service: CatalogService = Depends(get_catalog_service)):
    professional, products = service.get_public_professional()
    return {
        "professional": {"id": professional.id, "name": professional.name},
        "products": [ProductResponse.from_product(p) for p in products],
    }
