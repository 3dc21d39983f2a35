from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session
from app.db.session import get_db
from app.api.deps import get_current_user
from app.models.hotel import Hotel
from app.models.user import User
from app.schemas.review import ReviewIn, ReviewPatch, ReviewOut
from app.services import review_service

router = APIRouter(tags=["reviews"])


def _review_out(db: Session, r) -> ReviewOut:
    hotel = db.get(Hotel, r.hotel_id)
    return ReviewOut(
        id=r.id,
        hotelId=r.hotel_id,
        authorId=r.author_id,
        authorName=r.author_name or "",
        rating=r.rating,
        text=r.text or "",
        hotelAverageRating=hotel.average_rating if hotel else 0.0,
    )


@router.get("/hotels/{hotel_id}/reviews/eligibility")
def review_eligibility(hotel_id: str, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return {"hotelId": hotel_id, "canReview": review_service.can_review(db, hotel_id, user)}


@router.post("/hotels/{hotel_id}/reviews", response_model=ReviewOut, status_code=201)
def create_review(hotel_id: str, body: ReviewIn, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    r = review_service.create_review(db, hotel_id, user, body.rating, body.text)
    return _review_out(db, r)


@router.put("/hotels/{hotel_id}/reviews/{review_id}", response_model=ReviewOut)
def update_review(hotel_id: str, review_id: str, body: ReviewPatch, db: Session = Depends(get_db),
                  user: User = Depends(get_current_user)):
    r = review_service.update_review(db, hotel_id, review_id, user, body.rating, body.text)
    return _review_out(db, r)


@router.delete("/hotels/{hotel_id}/reviews/{review_id}", status_code=204)
def delete_review(hotel_id: str, review_id: str, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    review_service.delete_review(db, hotel_id, review_id, user)
    return Response(status_code=204)
