"""Admin service - list, edit and soft-delete client profiles"""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from ...errors import Conflict, NotFound, ValidationFailed
from ...models import Profile
from ...shared.clock import utcnow
from .repository import AdminRepository
from .schemas import AdminUserUpdate

logger = logging.getLogger(__name__)


class AdminService:
    def __init__(self, db: Session):
        self.db = db
        self.repo = AdminRepository()

    def list_users(self, search: Optional[str]) -> list[Profile]:
        return self.repo.list_clients(self.db, search)

    def update_user(self, user_id: str, data: AdminUserUpdate, actor: Profile) -> Profile:
        profile = self.repo.get_client(self.db, user_id)
        if not profile:
            raise NotFound("Usuário não encontrado")

        updates = data.model_dump(exclude_unset=True, exclude_none=True)
        if not updates:
            raise ValidationFailed("Nada para atualizar")

        if "email" in updates and self.repo.email_taken(self.db, updates["email"], profile.id):
            raise Conflict("E-mail já cadastrado")

        for key, value in updates.items():
            setattr(profile, key, value)

        if updates.get("status") == "active" and profile.email_verified_at is None:
            profile.email_verified_at = utcnow()

        self.db.commit()
        self.db.refresh(profile)
        logger.info(f"✏️ Professional {actor.id} updated user {profile.id}: {sorted(updates)}")
        return profile

    def soft_delete_user(self, user_id: str, actor: Profile) -> None:
        profile = self.repo.get_client(self.db, user_id)
        if not profile:
            raise NotFound("Usuário não encontrado")

        profile.deleted_at = utcnow()
        profile.status = "blocked"
        self.db.commit()
        logger.info(f"🗑️ Professional {actor.id} soft-deleted user {profile.id}")
