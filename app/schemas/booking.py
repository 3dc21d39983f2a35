from datetime import datetime
from pydantic import BaseModel, Field
from typing import Optional

class BookingCreate(BaseModel):
    checkInDate: datetime
    checkOutDate: datetime
    numberOfRooms: int = Field(default=1, ge=1)

class BookingOut(BaseModel):
    id: str
    hotelId: str
    userId: str
    checkInDate: str
    checkOutDate: str
    numberOfRooms: int
    totalPrice: str
    status: str
    paymentStatus: str
    paymentIntentId: Optional[str] = None
    createdAt: Optional[str] = None

class AvailabilityOut(BaseModel):
    hotelId: str
    checkInDate: str
    checkOutDate: str
    totalRooms: int
    availableRooms: int

def booking_out(b) -> BookingOut:
    return BookingOut(
        id=b.id,
        hotelId=b.hotel_id,
        userId=b.user_id,
        checkInDate=b.check_in_date.isoformat(),
        checkOutDate=b.check_out_date.isoformat(),
        numberOfRooms=b.number_of_rooms,
        totalPrice=str(b.total_price),
        status=b.status,
        paymentStatus=b.payment_status,
        paymentIntentId=b.payment_intent_id,
        createdAt=b.created_at.isoformat() if b.created_at else None,
    )
