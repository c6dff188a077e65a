"""Review repository - Database operations for session reviews"""

from typing import Optional

from sqlalchemy.orm import Session

from ...models import Appointment, Review


class ReviewRepository:
    @staticmethod
    def get_appointment(db: Session, appointment_id: str) -> Optional[Appointment]:
        return db.query(Appointment).filter(Appointment.id == appointment_id).first()

    @staticmethod
    def get_by_appointment(db: Session, appointment_id: str) -> Optional[Review]:
        return db.query(Review).filter(Review.appointment_id == appointment_id).first()

    @staticmethod
    def get_review(db: Session, review_id: str) -> Optional[Review]:
        return db.query(Review).filter(Review.id == review_id).first()

    @staticmethod
    def add_review(db: Session, **review_data) -> Review:
        review = Review(**review_data)
        db.add(review)
        db.flush()
        return review

    @staticmethod
    def list_for_professional(db: Session, professional_id: str, published: Optional[bool] = None) -> list[Review]:
        query = db.query(Review).filter(Review.professional_id == professional_id)
        if published is not None:
            query = query.filter(Review.is_published.is_(published))
        return query.order_by(Review.created_at.desc()).all()

    @staticmethod
    def list_published(db: Session, limit: int) -> list[Review]:
        return (
            db.query(Review)
            .filter(Review.is_published.is_(True))
            .order_by(Review.created_at.desc())
            .limit(limit)
            .all()
        )
