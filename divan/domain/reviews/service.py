"""Review service - client reviews of completed sessions and their moderation"""

import logging
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...errors import Conflict, NotFound, ValidationFailed
from ...models import Profile, Review
from ...policy import enforce
from ...security_utils import sanitize_html
from ...services.notification_service import notify
from ...shared.clock import utcnow
from .repository import ReviewRepository

logger = logging.getLogger(__name__)

MAX_PUBLIC_REVIEWS = 50
ALREADY_REVIEWED = "Você já avaliou esta sessão"


class ReviewService:
    def __init__(self, db: Session):
        self.db = db
        self.repo = ReviewRepository()

    def create_review(self, caller: Profile, appointment_id: str, stars: int, comment: Optional[str]) -> Review:
        """One review per completed appointment, written by its client; starts unpublished"""
        appointment = self.repo.get_appointment(self.db, appointment_id)
        if not appointment:
            raise NotFound("Sessão não encontrada")
        enforce(caller, appointment, "review")

        if appointment.status != "completed":
            raise ValidationFailed("Só é possível avaliar sessões concluídas")
        if self.repo.get_by_appointment(self.db, appointment.id):
            raise Conflict(ALREADY_REVIEWED)

        try:
            review = self.repo.add_review(
                self.db,
                appointment_id=appointment.id,
                professional_id=appointment.professional_id,
                user_id=caller.id,
                author_name=caller.name,
                stars=stars,
                comment=sanitize_html(comment, allowed_tags=[]) if comment else None,
            )
            notify(
                self.db,
                appointment.professional_id,
                "review_received",
                "Nova avaliação",
                f"{caller.name} avaliou uma sessão com {stars} estrela(s).",
                {"review_id": review.id, "link": "/profissional/avaliacoes"},
            )
            self.db.commit()
        except IntegrityError as e:
            # Unique appointment_id: a concurrent submission got there first
            self.db.rollback()
            logger.warning(f"⚠️ Duplicate review for appointment {appointment_id}: {e.orig}")
            raise Conflict(ALREADY_REVIEWED) from e

        logger.info(f"⭐ Review {review.id} ({stars}) created for appointment {appointment.id}")
        return review

    def list_for_professional(self, professional: Profile, published: Optional[bool]) -> list[Review]:
        return self.repo.list_for_professional(self.db, professional.id, published)

    def set_published(self, professional: Profile, review_id: str, published: bool) -> Review:
        review = self.repo.get_review(self.db, review_id)
        if not review:
            raise NotFound("Avaliação não encontrada")
        enforce(professional, review, "moderate")

        review.is_published = published
        review.published_at = utcnow() if published else None
        self.db.commit()
        self.db.refresh(review)
        logger.info(f"⭐ Review {review.id} {'published' if published else 'hidden'} by {professional.id}")
        return review

    def list_public(self, limit: int = MAX_PUBLIC_REVIEWS) -> list[Review]:
        return self.repo.list_published(self.db, max(1, min(limit, MAX_PUBLIC_REVIEWS)))
