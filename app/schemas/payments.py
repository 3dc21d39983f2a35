from pydantic import BaseModel
from typing import Optional


class PaymentIntentOut(BaseModel):
    bookingId: str
    paymentIntentId: str
    clientSecret: Optional[str] = None
    amount: str
    currency: str
    publishableKey: str = ""


class PaymentConfirmOut(BaseModel):
    bookingId: str
    status: str
    paymentStatus: str
    confirmed: bool


class WebhookAck(BaseModel):
    received: bool = True
