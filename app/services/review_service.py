import uuid
from datetime import datetime, timezone

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.exceptions.custom import BookingError, DuplicateReview, NotFound, PolicyViolation, ReviewNotAllowed, Unauthorized
from app.models.booking import Booking, BOOKING_CONFIRMED, PAYMENT_COMPLETED
from app.models.review import Review
from app.models.user import User
from app.services import rating_service
from app.services.audit_service import log_audit
from app.services.booking_service import get_hotel


def has_completed_booking(db: Session, hotel_id: str, user_id: str) -> bool:
    return db.query(Booking).filter(
        Booking.hotel_id == hotel_id,
        Booking.user_id == user_id,
        Booking.status == BOOKING_CONFIRMED,
        Booking.payment_status == PAYMENT_COMPLETED,
    ).first() is not None


def can_review(db: Session, hotel_id: str, user: User) -> bool:
    hotel = get_hotel(db, hotel_id)
    if user.is_admin and not settings.ADMINS_MAY_BOOK:
        return False
    if hotel.author_id == user.id:
        return False
    if db.query(Review).filter(Review.hotel_id == hotel_id, Review.author_id == user.id).first():
        return False
    return has_completed_booking(db, hotel_id, user.id)


def _check_rating(rating: int) -> None:
    if not 1 <= rating <= 5:
        raise BookingError("Rating must be between 1 and 5")


def _get_review(db: Session, hotel_id: str, review_id: str) -> Review:
    r = db.get(Review, review_id)
    if not r or r.hotel_id != hotel_id:
        raise NotFound("Review not found")
    return r


def create_review(db: Session, hotel_id: str, author: User, rating: int, text: str = "") -> Review:
    _check_rating(rating)
    hotel = get_hotel(db, hotel_id)
    if hotel.author_id == author.id:
        raise PolicyViolation("Cannot review own hotel")
    if author.is_admin and not settings.ADMINS_MAY_BOOK:
        raise PolicyViolation("Admins cannot add reviews")
    if not has_completed_booking(db, hotel_id, author.id):
        raise ReviewNotAllowed()
    if db.query(Review).filter(Review.hotel_id == hotel_id, Review.author_id == author.id).first():
        raise DuplicateReview()

    review = Review(
        id=str(uuid.uuid4()),
        hotel_id=hotel_id,
        author_id=author.id,
        author_name=author.full_name or author.email,
        text=text or "",
        rating=rating,
    )
    db.add(review)
    log_audit(db, actor_user_id=author.id, action="review.created", entity_type="review", entity_id=review.id,
              details={"hotelId": hotel_id, "rating": rating})
    try:
        db.flush()
    except IntegrityError:
        # concurrent duplicate caught by uq_reviews_hotel_author
        db.rollback()
        raise DuplicateReview()
    rating_service.recompute(db, hotel_id)
    db.refresh(review)
    return review


def update_review(db: Session, hotel_id: str, review_id: str, author: User, rating: int, text: str | None = None) -> Review:
    _check_rating(rating)
    r = _get_review(db, hotel_id, review_id)
    if r.author_id != author.id:
        raise Unauthorized("Only the author can edit this review")
    r.rating = rating
    if text is not None:
        r.text = text
    r.updated_at = datetime.now(timezone.utc)
    log_audit(db, actor_user_id=author.id, action="review.updated", entity_type="review", entity_id=r.id,
              details={"hotelId": hotel_id, "rating": rating})
    rating_service.recompute(db, hotel_id)
    db.refresh(r)
    return r


def delete_review(db: Session, hotel_id: str, review_id: str, user: User) -> None:
    r = _get_review(db, hotel_id, review_id)
    if r.author_id != user.id and not user.is_admin:
        raise Unauthorized("Only the author or an admin can delete this review")
    db.delete(r)
    log_audit(db, actor_user_id=user.id, action="review.deleted", entity_type="review", entity_id=review_id,
              details={"hotelId": hotel_id})
    rating_service.recompute(db, hotel_id)
