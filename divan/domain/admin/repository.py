"""Admin repository - client profile queries"""

from typing import Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from ...models import Profile


class AdminRepository:
    @staticmethod
    def list_clients(db: Session, search: Optional[str] = None) -> list[Profile]:
        """Non-deleted client profiles, newest first, optionally filtered by name/email/phone"""
        query = db.query(Profile).filter(Profile.role == "client", Profile.deleted_at.is_(None))

        if search:
            term = search.strip()
            if term:
                # LIKE wildcards in the input match literally
                escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
                pattern = f"%{escaped}%"
                query = query.filter(
                    or_(
                        Profile.name.ilike(pattern, escape="\\"),
                        Profile.email.ilike(pattern, escape="\\"),
                        Profile.phone.ilike(pattern, escape="\\"),
                    )
                )

        return query.order_by(Profile.created_at.desc()).all()

    @staticmethod
    def get_client(db: Session, user_id: str) -> Optional[Profile]:
        return (
            db.query(Profile)
            .filter(Profile.id == user_id, Profile.role == "client", Profile.deleted_at.is_(None))
            .first()
        )

    @staticmethod
    def email_taken(db: Session, email: str, exclude_id: str) -> bool:
        return (
            db.query(Profile.id).filter(Profile.email == email, Profile.id != exclude_id).first()
            is not None
        )
