import logging

from fastapi import Request
from fastapi.responses import JSONResponse

from .custom import BookingError, GatewayTimeout, InsufficientAvailability, PaymentProcessorError

logger = logging.getLogger(__name__)


async def booking_error_handler(_request: Request, exc: BookingError) -> JSONResponse:
    logger.info("%s: %s", type(exc).__name__, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "error": type(exc).__name__},
    )


async def insufficient_availability_handler(_request: Request, exc: InsufficientAvailability) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "error": "InsufficientAvailability", "availableRooms": exc.available},
    )


async def payment_processor_error_handler(_request: Request, exc: PaymentProcessorError) -> JSONResponse:
    logger.error("Payment processor error: %s (status=%s)", exc.message, exc.upstream_status)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": f"Payment processor error: {exc.message}", "error": "PaymentProcessorError"},
    )


async def gateway_timeout_handler(_request: Request, exc: GatewayTimeout) -> JSONResponse:
    logger.warning("Payment processor timeout: %s", exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "error": "GatewayTimeout", "retryable": True},
    )
