import logging
import uuid
from datetime import datetime, timedelta, timezone
from sqlalchemy.orm import Session
from sqlalchemy import select

from app.core.config import settings
from app.exceptions.custom import (
    AlreadyCancelled,
    CancellationWindowClosed,
    NotFound,
    PolicyViolation,
    Unauthorized,
)
from app.models.user import User
from app.models.hotel import Hotel
from app.models.booking import (
    Booking,
    BOOKING_PENDING,
    BOOKING_CONFIRMED,
    BOOKING_CANCELLED,
    PAYMENT_PENDING,
    PAYMENT_COMPLETED,
    PAYMENT_FAILED,
)
from app.models.payment import Payment, INTENT_PENDING, INTENT_SUCCEEDED, INTENT_FAILED
from app.services.audit_service import log_audit
from app.services.availability_service import DateInterval, count_committed_rooms, ensure_utc
from app.services.pricing_service import validate_and_price

logger = logging.getLogger(__name__)

# reconciliation outcomes
CONFIRMED = "confirmed"
ALREADY_CONFIRMED = "already_confirmed"
IGNORED = "ignored"


def _now(now: datetime | None) -> datetime:
    return ensure_utc(now) if now else datetime.now(timezone.utc)


def get_hotel(db: Session, hotel_id: str) -> Hotel:
    hotel = db.get(Hotel, hotel_id)
    if not hotel:
        raise NotFound("Hotel not found")
    return hotel


def get_booking(db: Session, booking_id: str) -> Booking:
    b = db.get(Booking, booking_id)
    if not b:
        raise NotFound("Booking not found")
    return b


def get_owned_booking(db: Session, booking_id: str, user: User, allow_admin: bool = False) -> Booking:
    b = get_booking(db, booking_id)
    if b.user_id != user.id and not (allow_admin and user.is_admin):
        raise Unauthorized()
    return b


def ensure_may_book(user: User) -> None:
    # Business policy carried over from the listing site, not a technical constraint.
    if user.is_admin and not settings.ADMINS_MAY_BOOK:
        raise PolicyViolation("Admins cannot book hotels")


def create_booking(db: Session, hotel_id: str, user: User, check_in: datetime, check_out: datetime,
                   number_of_rooms: int, now: datetime | None = None) -> Booking:
    """Validate, price and insert a pending booking.

    The availability read and the insert are not serialised against other
    requests; two pending bookings may both pass for the last room.
    """
    ensure_may_book(user)
    hotel = get_hotel(db, hotel_id)
    now = _now(now)
    check_in, check_out = ensure_utc(check_in), ensure_utc(check_out)
    requested = DateInterval(check_in, check_out) if check_out >= check_in else None
    committed = count_committed_rooms(db, hotel.id, requested) if requested else 0
    quote = validate_and_price(hotel, check_in, check_out, number_of_rooms, now, committed)

    booking = Booking(
        id=str(uuid.uuid4()),
        hotel_id=hotel.id,
        user_id=user.id,
        check_in_date=check_in,
        check_out_date=check_out,
        number_of_rooms=number_of_rooms,
        total_price=quote.total_price,
        status=BOOKING_PENDING,
        payment_status=PAYMENT_PENDING,
    )
    db.add(booking)
    log_audit(db, actor_user_id=user.id, action="booking.created", entity_type="booking", entity_id=booking.id,
              details={"hotelId": hotel.id, "nights": quote.nights, "rooms": number_of_rooms, "totalPrice": str(quote.total_price)})
    db.commit()
    db.refresh(booking)
    logger.info("Booking %s created for hotel %s (%s rooms, %s nights)", booking.id, hotel.id, number_of_rooms, quote.nights)
    return booking


def cancel_booking(db: Session, booking_id: str, user: User, now: datetime | None = None) -> Booking:
    b = get_owned_booking(db, booking_id, user)
    if b.status == BOOKING_CANCELLED:
        raise AlreadyCancelled()

    cutoff_days = settings.CANCELLATION_CUTOFF_DAYS
    if not _now(now) + timedelta(days=cutoff_days) < ensure_utc(b.check_in_date):
        raise CancellationWindowClosed(cutoff_days)

    previous = b.status
    b.status = BOOKING_CANCELLED
    b.updated_at = datetime.now(timezone.utc)
    log_audit(db, actor_user_id=user.id, action="booking.cancelled", entity_type="booking", entity_id=b.id,
              details={"previousStatus": previous, "paymentStatus": b.payment_status})
    db.commit()
    if b.payment_status == PAYMENT_COMPLETED:
        logger.info("Booking %s cancelled after payment; refund is handled outside this service", b.id)
    return b


def list_user_bookings(db: Session, user: User) -> list[Booking]:
    return db.query(Booking).filter(Booking.user_id == user.id).order_by(Booking.created_at.desc()).all()


def list_all_bookings(db: Session) -> list[Booking]:
    return db.query(Booking).order_by(Booking.created_at.desc()).all()


def _lock_booking(db: Session, booking_id: str) -> Booking | None:
    return db.execute(
        select(Booking).where(Booking.id == booking_id).with_for_update()
    ).scalar_one_or_none()


def _lock_payment(db: Session, payment_intent_id: str | None) -> Payment | None:
    if not payment_intent_id:
        return None
    return db.execute(
        select(Payment).where(Payment.payment_intent_id == payment_intent_id).with_for_update()
    ).scalar_one_or_none()


def apply_payment_success(db: Session, booking_id: str, payment_intent_id: str | None, source: str) -> str:
    """Single reconciliation path for processor callbacks and the client fallback.

    Applying the same success twice leaves booking and payment rows exactly as
    the first application did.
    """
    b = _lock_booking(db, booking_id)
    if not b:
        logger.info("Payment success (%s) for unknown booking %s, intent %s ignored", source, booking_id, payment_intent_id)
        db.rollback()
        return IGNORED

    # Without an intent id no Payment row can be credited; the booking may still confirm.
    intent_id = payment_intent_id
    p = _lock_payment(db, intent_id)
    if p and p.booking_id != b.id:
        logger.warning("Intent %s belongs to booking %s, not %s; ignored", intent_id, p.booking_id, b.id)
        db.rollback()
        return IGNORED
    if p is None:
        logger.info("No payment record matches intent %s for booking %s (%s); no payment row credited",
                    intent_id, b.id, source)

    now = datetime.now(timezone.utc)
    if p and p.status != INTENT_SUCCEEDED:
        other = db.query(Payment).filter(
            Payment.booking_id == b.id,
            Payment.status == INTENT_SUCCEEDED,
            Payment.id != p.id,
        ).first()
        if other:
            logger.error("Booking %s already paid by intent %s; intent %s also succeeded and needs a refund",
                         b.id, other.payment_intent_id, intent_id)
        else:
            p.status = INTENT_SUCCEEDED
            p.updated_at = now
            log_audit(db, actor_user_id=source, action="payment.succeeded", entity_type="payment", entity_id=p.id,
                      details={"bookingId": b.id, "paymentIntentId": intent_id})

    if b.status == BOOKING_CANCELLED:
        logger.warning("Payment succeeded for cancelled booking %s (intent %s); booking left cancelled", b.id, intent_id)
        db.commit()
        return IGNORED

    if b.status == BOOKING_CONFIRMED and b.payment_status == PAYMENT_COMPLETED:
        db.commit()
        return ALREADY_CONFIRMED

    hotel = db.get(Hotel, b.hotel_id)
    if hotel:
        committed = count_committed_rooms(db, hotel.id, DateInterval.of_booking(b), exclude_booking_id=b.id)
        if committed + b.number_of_rooms > hotel.total_rooms:
            # Known race: pending bookings do not hold rooms, so this can happen. Surface it, don't hide it.
            logger.warning("Hotel %s overbooked by confirming booking %s: %s committed + %s > %s rooms",
                           hotel.id, b.id, committed, b.number_of_rooms, hotel.total_rooms)

    b.status = BOOKING_CONFIRMED
    b.payment_status = PAYMENT_COMPLETED
    b.updated_at = now
    log_audit(db, actor_user_id=source, action="booking.confirmed", entity_type="booking", entity_id=b.id,
              details={"paymentIntentId": intent_id})
    db.commit()
    logger.info("Booking %s confirmed via %s", b.id, source)
    return CONFIRMED


def apply_payment_failure(db: Session, booking_id: str | None, payment_intent_id: str, source: str) -> str:
    p = _lock_payment(db, payment_intent_id)
    if p and p.status == INTENT_PENDING:
        p.status = INTENT_FAILED
        p.updated_at = datetime.now(timezone.utc)

    b = _lock_booking(db, booking_id or (p.booking_id if p else ""))
    if not b:
        logger.info("Payment failure (%s) for unknown booking %s, intent %s ignored", source, booking_id, payment_intent_id)
        db.commit()
        return IGNORED

    # Only the latest attempt decides; the guest may retry with a new intent.
    if (payment_intent_id and b.status == BOOKING_PENDING and b.payment_status == PAYMENT_PENDING
            and b.payment_intent_id == payment_intent_id):
        b.payment_status = PAYMENT_FAILED
        b.updated_at = datetime.now(timezone.utc)
        log_audit(db, actor_user_id=source, action="payment.failed", entity_type="booking", entity_id=b.id,
                  details={"paymentIntentId": payment_intent_id})
    db.commit()
    return b.payment_status
