import logging
from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.api.deps import get_current_user, get_payment_client
from app.core.config import settings
from app.models.user import User
from app.models.booking import BOOKING_CONFIRMED
from app.schemas.payments import PaymentIntentOut, PaymentConfirmOut, WebhookAck
from app.services import payment_service
from app.services.payment_client import PaymentProcessorClient

logger = logging.getLogger(__name__)

router = APIRouter(tags=["payments"])


@router.post("/bookings/{booking_id}/payment", response_model=PaymentIntentOut)
def create_payment_intent(booking_id: str, db: Session = Depends(get_db), user: User = Depends(get_current_user),
                          client: PaymentProcessorClient = Depends(get_payment_client)):
    out = payment_service.create_intent(db, booking_id, user, client)
    return PaymentIntentOut(publishableKey=settings.PAYMENT_PUBLISHABLE_KEY, **out)


@router.post("/payments/confirm", response_model=PaymentConfirmOut)
def confirm_payment(booking_id: str, db: Session = Depends(get_db), user: User = Depends(get_current_user),
                    client: PaymentProcessorClient = Depends(get_payment_client)):
    """Client-redirect fallback after on-page confirmation."""
    b = payment_service.confirm_fallback(db, booking_id, user, client)
    return PaymentConfirmOut(
        bookingId=b.id,
        status=b.status,
        paymentStatus=b.payment_status,
        confirmed=b.status == BOOKING_CONFIRMED,
    )


@router.post("/webhooks/payments", response_model=WebhookAck)
async def payment_webhook(req: Request, db: Session = Depends(get_db)):
    body = await req.body()
    outcome = payment_service.verify_and_apply(db, body, req.headers.get("stripe-signature"))
    logger.debug("Webhook processed: %s", outcome)
    # Acknowledge once verified, even when nothing matched, so the processor stops retrying.
    return WebhookAck(received=True)
