"""Payment intents and confirmation reconciliation.

Two signals can confirm a booking: the processor's signed callback and the
client redirect after on-page confirmation. Both end in
``booking_service.apply_payment_success``.
"""
import json
import logging
import uuid
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP

from sqlalchemy.orm import Session

from app.core.config import settings
from app.exceptions.custom import InvalidBookingState, InvalidSignature, PaymentProcessorError
from app.models.booking import Booking, BOOKING_PENDING, BOOKING_CONFIRMED, PAYMENT_PENDING, PAYMENT_COMPLETED
from app.models.payment import Payment, INTENT_PENDING
from app.models.user import User
from app.services import booking_service
from app.services.audit_service import log_audit
from app.services.payment_client import (
    PaymentProcessorClient,
    PaymentProcessorConfig,
    verify_webhook_signature,
)

logger = logging.getLogger(__name__)

PROCESSOR_ACTOR = "processor"
EVENT_SUCCEEDED = "payment_intent.succeeded"
EVENT_FAILED = "payment_intent.payment_failed"


def processor_client() -> PaymentProcessorClient:
    if not (settings.PAYMENT_SECRET_KEY or settings.PAYMENT_SANDBOX):
        raise PaymentProcessorError("Payment processor is not configured (missing PAYMENT_SECRET_KEY)")
    return PaymentProcessorClient(PaymentProcessorConfig(
        api_base=settings.PAYMENT_API_BASE,
        secret_key=settings.PAYMENT_SECRET_KEY,
        timeout=settings.PAYMENT_TIMEOUT_SECONDS,
        sandbox=settings.PAYMENT_SANDBOX,
    ))


def to_minor_units(amount: Decimal) -> int:
    return int((Decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def create_intent(db: Session, booking_id: str, user: User, client: PaymentProcessorClient) -> dict:
    """Start a payment attempt. Safe to repeat; every call records a new attempt."""
    b = booking_service.get_owned_booking(db, booking_id, user)
    if b.status != BOOKING_PENDING:
        raise InvalidBookingState(f"Booking is {b.status} and cannot be paid")

    currency = settings.PAYMENT_CURRENCY.lower()
    intent = client.create_payment_intent(
        amount=to_minor_units(b.total_price),
        currency=currency,
        metadata={"booking_id": b.id},
    )
    intent_id = str(intent.get("id") or "")
    if not intent_id:
        raise PaymentProcessorError("Processor returned no intent id")

    p = Payment(
        id=str(uuid.uuid4()),
        booking_id=b.id,
        user_id=b.user_id,
        amount=b.total_price,
        currency=currency,
        payment_intent_id=intent_id,
        status=INTENT_PENDING,
    )
    db.add(p)
    b.payment_intent_id = intent_id
    if b.payment_status != PAYMENT_PENDING:
        # previous attempt failed; this one starts over
        b.payment_status = PAYMENT_PENDING
    b.updated_at = datetime.now(timezone.utc)
    log_audit(db, actor_user_id=user.id, action="payment.intent_created", entity_type="payment", entity_id=p.id,
              details={"bookingId": b.id, "paymentIntentId": intent_id, "amount": str(b.total_price)})
    db.commit()
    logger.info("Payment intent %s created for booking %s", intent_id, b.id)
    return {
        "bookingId": b.id,
        "paymentIntentId": intent_id,
        "clientSecret": intent.get("client_secret"),
        "amount": str(b.total_price),
        "currency": currency,
    }


def _as_dict(value) -> dict:
    return value if isinstance(value, dict) else {}


def _booking_id_from(obj: dict) -> str | None:
    metadata = _as_dict(obj.get("metadata"))
    booking_id = metadata.get("booking_id") or metadata.get("bookingId")
    return booking_id if isinstance(booking_id, str) else None


def verify_and_apply(db: Session, raw_payload: bytes, signature_header: str | None,
                     secret: str | None = None, now: float | None = None) -> str:
    """Verify a processor callback and feed it into reconciliation.

    Fails closed with InvalidSignature. Anything else that cannot be matched is
    logged and reported as ignored so the processor does not keep retrying.
    """
    verify_webhook_signature(
        raw_payload,
        signature_header,
        secret if secret is not None else settings.PAYMENT_WEBHOOK_SECRET,
        tolerance=settings.PAYMENT_WEBHOOK_TOLERANCE_SECONDS,
        now=now,
    )
    try:
        event = json.loads(raw_payload.decode("utf-8") or "{}")
    except (UnicodeDecodeError, json.JSONDecodeError):
        raise InvalidSignature("Signed payload is not valid JSON")

    if not isinstance(event, dict):
        logger.warning("Ignoring processor event that is not a JSON object (%s)", type(event).__name__)
        return booking_service.IGNORED

    event_type = event.get("type") or ""
    obj = _as_dict(_as_dict(event.get("data")).get("object"))
    intent_id = obj.get("id") if isinstance(obj.get("id"), str) else None
    booking_id = _booking_id_from(obj)

    if event_type not in (EVENT_SUCCEEDED, EVENT_FAILED):
        logger.debug("Ignoring processor event %s (%s)", event.get("id"), event_type)
        return booking_service.IGNORED
    if not booking_id:
        logger.warning("Processor event %s (%s) carries no booking id; intent %s", event.get("id"), event_type, intent_id)
        return booking_service.IGNORED

    if event_type == EVENT_SUCCEEDED:
        return booking_service.apply_payment_success(db, booking_id, intent_id, source=PROCESSOR_ACTOR)
    booking_service.apply_payment_failure(db, booking_id, intent_id, source=PROCESSOR_ACTOR)
    return booking_service.IGNORED


def confirm_fallback(db: Session, booking_id: str, user: User, client: PaymentProcessorClient) -> Booking:
    """Client-redirect path, used when the callback is late or lost.

    Every pending attempt is asked about, newest first: after a retried page
    load the guest may have paid with an earlier intent's client secret.
    """
    b = booking_service.get_owned_booking(db, booking_id, user)
    if b.status == BOOKING_CONFIRMED and b.payment_status == PAYMENT_COMPLETED:
        return b

    attempts = db.query(Payment).filter(
        Payment.booking_id == b.id,
        Payment.status == INTENT_PENDING,
    ).order_by(Payment.created_at.desc()).all()
    if not attempts:
        logger.info("Fallback confirmation for booking %s without a pending payment intent", b.id)
        return b

    for p in attempts:
        intent = _as_dict(client.retrieve_payment_intent(p.payment_intent_id))
        status = str(intent.get("status") or "")
        meta_booking = _booking_id_from(intent)
        if meta_booking and meta_booking != b.id:
            logger.warning("Intent %s names booking %s, fallback was for %s", p.payment_intent_id, meta_booking, b.id)
            continue
        if status != "succeeded":
            logger.info("Fallback for booking %s: intent %s is %s", b.id, p.payment_intent_id, status)
            continue
        booking_service.apply_payment_success(db, b.id, p.payment_intent_id, source=user.id)
        break

    db.refresh(b)
    return b
