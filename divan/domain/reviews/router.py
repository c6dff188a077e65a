"""Review router - session reviews, moderation and the public listing"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_current_user, require_professional
from ...database import get_db
from ...models import Profile
from .schemas import PublicReviewResponse, ReviewCreate, ReviewResponse
from .service import MAX_PUBLIC_REVIEWS, ReviewService

router = APIRouter(prefix="/api/reviews", tags=["Reviews"])
public_router = APIRouter(prefix="/api/public/reviews", tags=["Public"])


def get_review_service(db: Session = Depends(get_db)) -> ReviewService:
    return ReviewService(db)


@router.post("", status_code=201)
async def create_review(
    data: ReviewCreate,
    current_user: Profile = Depends(get_current_user),
    service: ReviewService = Depends(get_review_service),
):
    review = service.create_review(current_user, data.appointmentId, data.stars, data.comment)
    return {
        "success": True,
        "message": "Obrigado pela sua avaliação! Ela será publicada após aprovação.",
        "review": ReviewResponse.from_review(review),
    }


@router.get("/mine")
async def list_received_reviews(
    published: Optional[bool] = Query(None),
    professional: Profile = Depends(require_professional),
    service: ReviewService = Depends(get_review_service),
):
    reviews = service.list_for_professional(professional, published)
    return {"reviews": [ReviewResponse.from_review(r) for r in reviews]}


@router.post("/{review_id}/publish")
async def publish_review(
    review_id: str,
    professional: Profile = Depends(require_professional),
    service: ReviewService = Depends(get_review_service),
):
    review = service.set_published(professional, review_id, True)
    return {"success": True, "review": ReviewResponse.from_review(review)}


@router.post("/{review_id}/unpublish")
async def unpublish_review(
    review_id: str,
    professional: Profile = Depends(require_professional),
    service: ReviewService = Depends(get_review_service),
):
    review = service.set_published(professional, review_id, False)
    return {"success": True, "review": ReviewResponse.from_review(review)}


@public_router.get("")
async def list_public_reviews(
    limit: int = Query(MAX_PUBLIC_REVIEWS, ge=1, le=MAX_PUBLIC_REVIEWS),
    service: ReviewService = Depends(get_review_service),
):
    return {"reviews": [PublicReviewResponse.from_review(r) for r in service.list_public(limit)]}
