import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal

from app.exceptions.custom import InvalidDateRange, InsufficientAvailability
from app.models.hotel import Hotel
from app.services.availability_service import ensure_utc

ONE_DAY = timedelta(days=1)


@dataclass(frozen=True)
class Quote:
    nights: int
    unit_price: Decimal
    number_of_rooms: int
    total_price: Decimal
    available: int


def nights_between(check_in: datetime, check_out: datetime) -> int:
    """Whole nights billed; a partial day counts as a full night."""
    return math.ceil((ensure_utc(check_out) - ensure_utc(check_in)) / ONE_DAY)


def validate_and_price(hotel: Hotel, check_in: datetime, check_out: datetime, number_of_rooms: int,
                       now: datetime, committed: int) -> Quote:
    """Validate a booking request against the rooms already committed and price it. Pure."""
    check_in, check_out, now = ensure_utc(check_in), ensure_utc(check_out), ensure_utc(now)
    if check_in < now or check_out <= check_in:
        raise InvalidDateRange()
    if number_of_rooms < 1:
        raise ValueError("number_of_rooms must be >= 1")

    available = hotel.total_rooms - committed
    if number_of_rooms > available:
        raise InsufficientAvailability(max(available, 0))

    nights = nights_between(check_in, check_out)
    unit_price = Decimal(hotel.price)
    return Quote(
        nights=nights,
        unit_price=unit_price,
        number_of_rooms=number_of_rooms,
        total_price=unit_price * number_of_rooms * nights,
        available=available,
    )
