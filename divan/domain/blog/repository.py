"""Blog repository"""

from typing import Optional

from sqlalchemy import update
from sqlalchemy.orm import Session, joinedload

from ...models import BlogPost


class BlogRepository:
    @staticmethod
    def list_published(db: Session, limit: int, offset: int) -> list[BlogPost]:
        return (
            db.query(BlogPost)
            .options(joinedload(BlogPost.author))
            .filter(BlogPost.status == "published")
            .order_by(BlogPost.published_at.desc())
            .offset(offset)
            .limit(limit)
            .all()
        )

    @staticmethod
    def get_published_by_slug(db: Session, slug: str) -> Optional[BlogPost]:
        return (
            db.query(BlogPost)
            .options(joinedload(BlogPost.author))
            .filter(BlogPost.slug == slug, BlogPost.status == "published")
            .first()
        )

    @staticmethod
    def increment_views(db: Session, post_id: str) -> None:
        db.execute(
            update(BlogPost)
            .where(BlogPost.id == post_id)
            .values(views=BlogPost.views + 1)
            .execution_options(synchronize_session=False)
        )

    @staticmethod
    def list_by_author(db: Session, author_id: str, status: Optional[str] = None) -> list[BlogPost]:
        query = db.query(BlogPost).filter(BlogPost.author_id == author_id)
        if status:
            query = query.filter(BlogPost.status == status)
        return query.order_by(BlogPost.created_at.desc()).all()

    @staticmethod
    def get_post(db: Session, post_id: str) -> Optional[BlogPost]:
        return db.query(BlogPost).filter(BlogPost.id == post_id).first()

    @staticmethod
    def slug_exists(db: Session, slug: str, exclude_id: Optional[str] = None) -> bool:
        query = db.query(BlogPost.id).filter(BlogPost.slug == slug)
        if exclude_id:
            query = query.filter(BlogPost.id != exclude_id)
        return query.first() is not None
