from decimal import Decimal
from sqlalchemy import String, Integer, DateTime, Float, Numeric, Text, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column
from datetime import datetime, timezone
from app.db.session import Base

class Hotel(Base):
    __tablename__ = "hotels"
    __table_args__ = (
        CheckConstraint("total_rooms >= 1", name="ck_hotels_total_rooms_positive"),
        CheckConstraint("average_rating >= 0 AND average_rating <= 5", name="ck_hotels_average_rating_range"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    name: Mapped[str] = mapped_column(String(200))
    description: Mapped[str] = mapped_column(Text, default="")
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2))  # per room per night
    total_rooms: Mapped[int] = mapped_column(Integer, default=10)
    average_rating: Mapped[float] = mapped_column(Float, default=0.0)  # derived from reviews only
    author_id: Mapped[str] = mapped_column(String(36), index=True, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
