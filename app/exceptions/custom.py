class BookingError(Exception):
    """Base for domain failures surfaced to the caller with a clear reason."""

    status_code = 400

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class NotFound(BookingError):
    status_code = 404


class InvalidDateRange(BookingError):
    def __init__(self, message: str = "Check-in must not be in the past and check-out must be after check-in"):
        super().__init__(message)


class InsufficientAvailability(BookingError):
    status_code = 409

    def __init__(self, available: int):
        self.available = available
        super().__init__(f"Only {available} rooms available for these dates")


class CancellationWindowClosed(BookingError):
    status_code = 409

    def __init__(self, cutoff_days: int):
        self.cutoff_days = cutoff_days
        super().__init__(f"Cannot cancel booking within {cutoff_days} days of check-in date")


class AlreadyCancelled(BookingError):
    status_code = 409

    def __init__(self, message: str = "Booking is already cancelled"):
        super().__init__(message)


class InvalidBookingState(BookingError):
    status_code = 409


class Unauthorized(BookingError):
    status_code = 403

    def __init__(self, message: str = "You do not own this resource"):
        super().__init__(message)


class PolicyViolation(BookingError):
    status_code = 403


class ReviewNotAllowed(BookingError):
    status_code = 403

    def __init__(self, message: str = "You can only review hotels you have booked and paid for"):
        super().__init__(message)


class DuplicateReview(BookingError):
    status_code = 409

    def __init__(self, message: str = "Already reviewed"):
        super().__init__(message)


class InvalidSignature(BookingError):
    def __init__(self, message: str = "Invalid webhook signature"):
        super().__init__(message)


class PaymentProcessorError(BookingError):
    status_code = 502

    def __init__(self, message: str, upstream_status: int | None = None):
        self.upstream_status = upstream_status
        super().__init__(message)


class GatewayTimeout(BookingError):
    status_code = 504

    def __init__(self, message: str = "Payment processor did not respond in time"):
        super().__init__(message)
