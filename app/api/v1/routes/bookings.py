from datetime import datetime
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from app.db.session import get_db
from app.api.deps import get_current_user, require_roles
from app.models.user import User
from app.schemas.booking import BookingCreate, BookingOut, AvailabilityOut, booking_out
from app.exceptions.custom import InvalidDateRange
from app.services import booking_service
from app.services.availability_service import DateInterval, available_rooms

router = APIRouter(tags=["bookings"])


@router.get("/hotels/{hotel_id}/availability", response_model=AvailabilityOut)
def get_availability(hotel_id: str, checkIn: datetime, checkOut: datetime, db: Session = Depends(get_db)):
    hotel = booking_service.get_hotel(db, hotel_id)
    try:
        interval = DateInterval(checkIn, checkOut)
    except ValueError:
        raise InvalidDateRange("checkOut must not precede checkIn")
    return AvailabilityOut(
        hotelId=hotel.id,
        checkInDate=interval.check_in.isoformat(),
        checkOutDate=interval.check_out.isoformat(),
        totalRooms=hotel.total_rooms,
        availableRooms=max(available_rooms(db, hotel, interval), 0),
    )


@router.post("/hotels/{hotel_id}/bookings", response_model=BookingOut, status_code=201)
def create_booking(hotel_id: str, body: BookingCreate, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    b = booking_service.create_booking(db, hotel_id, user, body.checkInDate, body.checkOutDate, body.numberOfRooms)
    return booking_out(b)


@router.get("/bookings/mine", response_model=list[BookingOut])
def my_bookings(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return [booking_out(b) for b in booking_service.list_user_bookings(db, user)]


@router.get("/bookings/{booking_id}", response_model=BookingOut)
def get_booking(booking_id: str, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return booking_out(booking_service.get_owned_booking(db, booking_id, user, allow_admin=True))


@router.post("/bookings/{booking_id}/cancel", response_model=BookingOut)
def cancel_booking(booking_id: str, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return booking_out(booking_service.cancel_booking(db, booking_id, user))


@router.get("/admin/bookings", response_model=list[BookingOut])
def admin_bookings(db: Session = Depends(get_db), user: User = Depends(require_roles("admin", "superadmin"))):
    return [booking_out(b) for b in booking_service.list_all_bookings(db)]
