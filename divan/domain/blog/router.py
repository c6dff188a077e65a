"""Blog router - public articles and the professional's editor"""

from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import require_professional
from ...database import get_db
from ...models import Profile
from .schemas import PostCreate, PostResponse, PostUpdate
from .service import MAX_PUBLIC_PAGE, BlogService

router = APIRouter(prefix="/api/blog", tags=["Blog"])
public_router = APIRouter(prefix="/api/public/blog", tags=["Public"])


def get_blog_service(db: Session = Depends(get_db)) -> BlogService:
    return BlogService(db)


# ============================================================================
# PUBLIC
# ============================================================================


@public_router.get("")
async def list_published(
    limit: int = Query(10, ge=1, le=MAX_PUBLIC_PAGE),
    offset: int = Query(0, ge=0),
    service: BlogService = Depends(get_blog_service),
):
    posts = service.list_published(limit, offset)
    return {"posts": [PostResponse.from_post(p) for p in posts]}


@public_router.get("/{slug}")
async def read_post(slug: str, service: BlogService = Depends(get_blog_service)):
    return {"post": PostResponse.from_post(service.read_by_slug(slug))}


# ============================================================================
# EDITOR
# ============================================================================


@router.get("/posts")
async def list_my_posts(
    status: Optional[Literal["draft", "published", "archived"]] = Query(None),
    professional: Profile = Depends(require_professional),
    service: BlogService = Depends(get_blog_service),
):
    return {"posts": [PostResponse.from_post(p) for p in service.list_mine(professional, status)]}


@router.get("/slug-available")
async def slug_available(
    slug: str = Query(..., min_length=1),
    excludeId: Optional[str] = Query(None),
    professional: Profile = Depends(require_professional),
    service: BlogService = Depends(get_blog_service),
):
    return {"available": service.slug_available(slug, excludeId)}


@router.post("/posts", status_code=201)
async def create_post(
    data: PostCreate,
    professional: Profile = Depends(require_professional),
    service: BlogService = Depends(get_blog_service),
):
    post = service.create_post(professional, data)
    return {"success": True, "post": PostResponse.from_post(post)}


@router.patch("/posts/{post_id}")
async def update_post(
    post_id: str,
    data: PostUpdate,
    professional: Profile = Depends(require_professional),
    service: BlogService = Depends(get_blog_service),
):
    post = service.update_post(professional, post_id, data)
    return {"success": True, "post": PostResponse.from_post(post)}


@router.post("/posts/{post_id}/publish")
async def publish_post(
    post_id: str,
    professional: Profile = Depends(require_professional),
    service: BlogService = Depends(get_blog_service),
):
    return {"success": True, "post": PostResponse.from_post(service.publish(professional, post_id))}


@router.post("/posts/{post_id}/archive")
async def archive_post(
    post_id: str,
    professional: Profile = Depends(require_professional),
    service: BlogService = Depends(get_blog_service),
):
    return {"success": True, "post": PostResponse.from_post(service.archive(professional, post_id))}


@router.delete("/posts/{post_id}")
async def delete_post(
    post_id: str,
    professional: Profile = Depends(require_professional),
    service: BlogService = Depends(get_blog_service),
):
    service.delete_post(professional, post_id)
    return {"success": True}
