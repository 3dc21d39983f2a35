import logging
import sys

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.core.config import settings
from app.api.v1.api import api_router
from app.exceptions.custom import BookingError, GatewayTimeout, InsufficientAvailability, PaymentProcessorError
from app.exceptions.handlers import (
    booking_error_handler,
    gateway_timeout_handler,
    insufficient_availability_handler,
    payment_processor_error_handler,
)

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    stream=sys.stdout,
)
logging.getLogger("urllib3").setLevel(logging.WARNING)

app = FastAPI(title=settings.APP_NAME)

# CORS: use CORS_ORIGINS from env in production; default to localhost for dev
_default_origins = [
    "http://127.0.0.1:8080", "http://localhost:8080",
    "http://127.0.0.1:3000", "http://localhost:3000",
]
_origins = [o.strip() for o in settings.CORS_ORIGINS.split(",") if o.strip()] if settings.CORS_ORIGINS else _default_origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_exception_handler(InsufficientAvailability, insufficient_availability_handler)
app.add_exception_handler(PaymentProcessorError, payment_processor_error_handler)
app.add_exception_handler(GatewayTimeout, gateway_timeout_handler)
app.add_exception_handler(BookingError, booking_error_handler)

app.include_router(api_router)


@app.get("/health")
def health():
    return {"status": "ok"}
