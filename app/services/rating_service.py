from typing import Iterable

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.models.hotel import Hotel
from app.models.review import Review


def average_rating(ratings: Iterable[int]) -> float:
    values = list(ratings)
    if not values:
        return 0.0
    return sum(values) / len(values)


def recompute(db: Session, hotel_id: str) -> float:
    """Recompute and persist a hotel's average from the reviews stored right now."""
    db.flush()
    ratings = db.execute(select(Review.rating).where(Review.hotel_id == hotel_id)).scalars().all()
    avg = average_rating(ratings)
    hotel = db.get(Hotel, hotel_id)
    if hotel:
        hotel.average_rating = avg
    db.commit()
    return avg
