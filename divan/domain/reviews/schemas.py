"""Review schemas - Pydantic models for session reviews"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from ...models import Review

MAX_COMMENT_LENGTH = 1000


class ReviewCreate(BaseModel):
    appointmentId: str
    stars: int = Field(ge=1, le=5)
    comment: Optional[str] = None

    @field_validator("comment")
    @classmethod
    def validate_comment(cls, v):
        v = (v or "").strip()
        if len(v) > MAX_COMMENT_LENGTH:
            raise ValueError(f"Comentário excede {MAX_COMMENT_LENGTH} caracteres")
        return v or None


class PublicReviewResponse(BaseModel):
    id: str
    name: str
    stars: int
    comment: Optional[str] = None
    createdAt: datetime

    @classmethod
    def from_review(cls, review: Review) -> "PublicReviewResponse":
        return cls(
            id=review.id,
            name=review.author_name,
            stars=review.stars,
            comment=review.comment,
            createdAt=review.created_at,
        )


class ReviewResponse(PublicReviewResponse):
    appointmentId: str
    isPublished: bool
    publishedAt: Optional[datetime] = None

    @classmethod
    def from_review(cls, review: Review) -> "ReviewResponse":
        return cls(
            id=review.id,
            appointmentId=review.appointment_id,
            name=review.author_name,
            stars=review.stars,
            comment=review.comment,
            isPublished=review.is_published,
            publishedAt=review.published_at,
            createdAt=review.created_at,
        )
