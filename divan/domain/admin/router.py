"""Admin router - professional-only user management"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import require_professional
from ...database import get_db
from ...models import Profile
from .schemas import AdminUserResponse, AdminUserUpdate
from .service import AdminService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin", tags=["Admin"])


def get_admin_service(db: Session = Depends(get_db)) -> AdminService:
    return AdminService(db)


@router.get("/users")
async def list_users(
    search: Optional[str] = Query(None, max_length=100),
    _: Profile = Depends(require_professional),
    service: AdminService = Depends(get_admin_service),
):
    users = service.list_users(search)
    return {"users": [AdminUserResponse.from_profile(u) for u in users]}


@router.patch("/users/{user_id}")
async def update_user(
    user_id: str,
    data: AdminUserUpdate,
    professional: Profile = Depends(require_professional),
    service: AdminService = Depends(get_admin_service),
):
    profile = service.update_user(user_id, data, professional)
    return {"success": True, "user": AdminUserResponse.from_profile(profile)}


@router.delete("/users/{user_id}")
async def delete_user(
    user_id: str,
    professional: Profile = Depends(require_professional),
    service: AdminService = Depends(get_admin_service),
):
    service.soft_delete_user(user_id, professional)
    return {"success": True}
