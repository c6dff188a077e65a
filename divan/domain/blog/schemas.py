"""Blog schemas"""

from typing import Optional

from pydantic import BaseModel, Field, field_validator

from ...models import BlogPost
from ...shared.clock import to_iso


class PostCreate(BaseModel):
    title: str = Field(min_length=3, max_length=255)
    slug: Optional[str] = Field(default=None, max_length=255)
    excerpt: Optional[str] = Field(default=None, max_length=500)
    content: str = ""
    featuredImageUrl: Optional[str] = Field(default=None, max_length=500)

    @field_validator("title")
    @classmethod
    def strip_title(cls, v):
        v = v.strip()
        if len(v) < 3:
            raise ValueError("Título deve ter pelo menos 3 caracteres")
        return v


class PostUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=3, max_length=255)
    slug: Optional[str] = Field(default=None, max_length=255)
    excerpt: Optional[str] = Field(default=None, max_length=500)
    content: Optional[str] = None
    featuredImageUrl: Optional[str] = Field(default=None, max_length=500)


class PostResponse(BaseModel):
    id: str
    title: str
    slug: str
    excerpt: Optional[str] = None
    content: str
    featuredImageUrl: Optional[str] = None
    status: str
    views: int
    authorName: Optional[str] = None
    publishedAt: Optional[str] = None
    createdAt: Optional[str] = None

    @classmethod
    def from_post(cls, post: BlogPost) -> "PostResponse":
        return cls(
            id=post.id,
            title=post.title,
            slug=post.slug,
            excerpt=post.excerpt,
            content=post.content or "",
            featuredImageUrl=post.featured_image_url,
            status=post.status,
            views=post.views or 0,
            authorName=post.author.name if post.author else None,
            publishedAt=to_iso(post.published_at),
            createdAt=to_iso(post.created_at),
        )
