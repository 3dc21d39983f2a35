import logging
import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from sqlalchemy.orm import Session
from sqlalchemy import text
from sqlalchemy.exc import OperationalError, ProgrammingError

from app.db.session import SessionLocal
from app.models.user import User
from app.models.hotel import Hotel
from app.models.booking import Booking, BOOKING_CONFIRMED, PAYMENT_COMPLETED
from app.models.review import Review
from app.services import rating_service
from app.services.pricing_service import nights_between

logger = logging.getLogger(__name__)

HOTELS = [
    # name, price per night, rooms
    ("Harbour View Inn", "120.00", 12),
    ("Old Town Residence", "95.00", 8),
    ("Lakeside Lodge", "150.00", 10),
    ("Central Station Hotel", "80.00", 20),
]

# user index, hotel index, days from now, nights, rooms, rating (past stays only)
PAST_STAYS = [
    (0, 0, -30, 3, 1, 5),
    (1, 1, -45, 5, 2, 4),
    (2, 2, -20, 2, 1, 4),
]


def ensure_user(db: Session, email: str, role: str, name: str) -> User:
    u = db.query(User).filter(User.email == email).first()
    if u:
        return u
    u = User(id=str(uuid.uuid4()), email=email, full_name=name, role=role, is_active=True)
    db.add(u)
    db.commit()
    return u


def ensure_hotel(db: Session, name: str, price: str, rooms: int, author: User) -> Hotel:
    h = db.query(Hotel).filter(Hotel.name == name).first()
    if h:
        return h
    h = Hotel(id=str(uuid.uuid4()), name=name, price=Decimal(price), total_rooms=rooms, author_id=author.id)
    db.add(h)
    db.commit()
    return h


def _seed_past_stay(db: Session, user: User, hotel: Hotel, days_from_now: int, nights: int, rooms: int, rating: int) -> None:
    if db.query(Review).filter(Review.hotel_id == hotel.id, Review.author_id == user.id).first():
        return
    check_in = datetime.now(timezone.utc) + timedelta(days=days_from_now)
    check_out = check_in + timedelta(days=nights)
    db.add(Booking(
        id=str(uuid.uuid4()),
        hotel_id=hotel.id,
        user_id=user.id,
        check_in_date=check_in,
        check_out_date=check_out,
        number_of_rooms=rooms,
        total_price=Decimal(hotel.price) * rooms * nights_between(check_in, check_out),
        status=BOOKING_CONFIRMED,
        payment_status=PAYMENT_COMPLETED,
    ))
    db.add(Review(
        id=str(uuid.uuid4()),
        hotel_id=hotel.id,
        author_id=user.id,
        author_name=user.full_name,
        text="Lovely stay, would book again.",
        rating=rating,
    ))
    rating_service.recompute(db, hotel.id)


def run(db=None):
    if db is None:
        db = SessionLocal()
    try:
        # If migrations haven't been applied yet, seeding must not crash the API.
        try:
            db.execute(text("SELECT 1 FROM users LIMIT 1"))
        except (ProgrammingError, OperationalError):
            db.rollback()
            logger.warning("users table not found yet. Skipping seeding (run alembic upgrade head).")
            return

        admin = ensure_user(db, "admin@hotels.local", "admin", "Admin")
        guests = [
            ensure_user(db, f"guest{i}@hotels.local", "customer", f"Guest {i}")
            for i in range(1, 4)
        ]
        hotels = [ensure_hotel(db, name, price, rooms, admin) for name, price, rooms in HOTELS]

        for ui, hi, days, nights, rooms, rating in PAST_STAYS:
            _seed_past_stay(db, guests[ui], hotels[hi], days, nights, rooms, rating)

        logger.info("Seeded %s hotels and %s guests", len(hotels), len(guests))
    finally:
        db.close()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    run()
