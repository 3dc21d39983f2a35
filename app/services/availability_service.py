"""Room availability for a hotel over a requested stay.

Only confirmed bookings hold inventory. Pending bookings that are still
waiting for payment do not, so two guests can both reach the payment page
for the last room; see ``booking_service.apply_payment_success``.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.models.booking import Booking, BOOKING_CONFIRMED
from app.models.hotel import Hotel


def ensure_utc(dt: datetime) -> datetime:
    """Treat naive datetimes as UTC (SQLite drops tzinfo on the way back)."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


@dataclass(frozen=True)
class DateInterval:
    check_in: datetime
    check_out: datetime

    def __post_init__(self):
        object.__setattr__(self, "check_in", ensure_utc(self.check_in))
        object.__setattr__(self, "check_out", ensure_utc(self.check_out))
        if self.check_out < self.check_in:
            raise ValueError("check_out must not precede check_in")

    @classmethod
    def of_booking(cls, b: Booking) -> "DateInterval":
        return cls(b.check_in_date, b.check_out_date)


def overlaps(existing: DateInterval, requested: DateInterval) -> bool:
    # Inclusive on both ends: a stay checking out on the day another checks in counts as overlapping.
    return existing.check_in <= requested.check_out and existing.check_out >= requested.check_in


def committed_rooms(bookings: Iterable[Booking], requested: DateInterval) -> int:
    """Rooms held by confirmed bookings whose stay overlaps ``requested``."""
    return sum(
        b.number_of_rooms
        for b in bookings
        if b.status == BOOKING_CONFIRMED and overlaps(DateInterval.of_booking(b), requested)
    )


def count_committed_rooms(db: Session, hotel_id: str, requested: DateInterval, exclude_booking_id: str | None = None) -> int:
    q = select(Booking).where(Booking.hotel_id == hotel_id, Booking.status == BOOKING_CONFIRMED)
    if exclude_booking_id:
        q = q.where(Booking.id != exclude_booking_id)
    return committed_rooms(db.execute(q).scalars().all(), requested)


def available_rooms(db: Session, hotel: Hotel, requested: DateInterval) -> int:
    """May be negative when the hotel is already overbooked."""
    return hotel.total_rooms - count_committed_rooms(db, hotel.id, requested)
