"""Blog service - public reading and the professional's editor workflow"""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from ...errors import NotFound, ValidationFailed
from ...models import BlogPost, Profile
from ...policy import enforce
from ...security_utils import sanitize_html
from ...shared.clock import utcnow
from ...shared.validators import generate_slug
from .repository import BlogRepository
from .schemas import PostCreate, PostUpdate

logger = logging.getLogger(__name__)

MAX_PUBLIC_PAGE = 50


class BlogService:
    def __init__(self, db: Session):
        self.db = db
        self.repo = BlogRepository()

    # ========================================================================
    # PUBLIC
    # ========================================================================

    def list_published(self, limit: int = 10, offset: int = 0) -> list[BlogPost]:
        return self.repo.list_published(self.db, max(1, min(limit, MAX_PUBLIC_PAGE)), max(0, offset))

    def read_by_slug(self, slug: str) -> BlogPost:
        post = self.repo.get_published_by_slug(self.db, slug)
        if not post:
            raise NotFound("Artigo não encontrado")
        self.repo.increment_views(self.db, post.id)
        self.db.commit()
        self.db.refresh(post)
        return post

    # ========================================================================
    # EDITOR
    # ========================================================================

    def slug_available(self, slug: str, exclude_id: Optional[str] = None) -> bool:
        normalized = generate_slug(slug)
        return bool(normalized) and not self.repo.slug_exists(self.db, normalized, exclude_id)

    def _unique_slug(self, source: str, exclude_id: Optional[str] = None) -> str:
        base = generate_slug(source)
        if not base:
            raise ValidationFailed("Não foi possível gerar o slug a partir do título")
        slug, suffix = base, 2
        while self.repo.slug_exists(self.db, slug, exclude_id):
            slug = f"{base}-{suffix}"
            suffix += 1
        return slug

    def _get_owned(self, author: Profile, post_id: str) -> BlogPost:
        post = self.repo.get_post(self.db, post_id)
        if not post:
            raise NotFound("Artigo não encontrado")
        enforce(author, post, "manage")
        return post

    def list_mine(self, author: Profile, status: Optional[str] = None) -> list[BlogPost]:
        return self.repo.list_by_author(self.db, author.id, status)

    def create_post(self, author: Profile, data: PostCreate) -> BlogPost:
        post = BlogPost(
            author_id=author.id,
            title=data.title,
            slug=self._unique_slug(data.slug or data.title),
            excerpt=data.excerpt,
            content=sanitize_html(data.content),
            featured_image_url=data.featuredImageUrl,
            status="draft",
        )
        self.db.add(post)
        self.db.commit()
        self.db.refresh(post)
        logger.info(f"✅ Blog post {post.id} created with slug {post.slug}")
        return post

    def update_post(self, author: Profile, post_id: str, data: PostUpdate) -> BlogPost:
        post = self._get_owned(author, post_id)
        update_data = data.model_dump(exclude_unset=True)
        if not update_data:
            raise ValidationFailed("Nada para atualizar")

        if "title" in update_data and update_data["title"]:
            post.title = update_data["title"].strip()
        if update_data.get("slug"):
            slug = generate_slug(update_data["slug"])
            if not slug or self.repo.slug_exists(self.db, slug, post.id):
                raise ValidationFailed("Slug indisponível")
            post.slug = slug
        if "excerpt" in update_data:
            post.excerpt = update_data["excerpt"]
        if update_data.get("content") is not None:
            post.content = sanitize_html(update_data["content"])
        if "featuredImageUrl" in update_data:
            post.featured_image_url = update_data["featuredImageUrl"]

        self.db.commit()
        self.db.refresh(post)
        return post

    def publish(self, author: Profile, post_id: str) -> BlogPost:
        post = self._get_owned(author, post_id)
        post.status = "published"
        if post.published_at is None:
            post.published_at = utcnow()
        self.db.commit()
        self.db.refresh(post)
        logger.info(f"📰 Blog post {post.id} published")
        return post

    def archive(self, author: Profile, post_id: str) -> BlogPost:
        post = self._get_owned(author, post_id)
        post.status = "archived"
        self.db.commit()
        self.db.refresh(post)
        return post

    def delete_post(self, author: Profile, post_id: str) -> None:
        post = self._get_owned(author, post_id)
        self.db.delete(post)
        self.db.commit()
        logger.info(f"🗑️ Blog post {post_id} deleted")
