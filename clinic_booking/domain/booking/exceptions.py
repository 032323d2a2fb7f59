"""
Booking Exceptions - Custom exceptions for the booking workflow
Each exception maps to one recoverable kind of failure the client can act on
"""

from typing import Optional


class BookingError(Exception):
    """Base exception for booking-related errors"""

    status_code = 400

    def __init__(self, message: str, error_type: str = "unknown", details: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        self.error_type = error_type
        self.details = details or {}

    def to_dict(self) -> dict:
        payload = {"message": self.message, "error_type": self.error_type}
        if self.details:
            payload["details"] = self.details
        return payload


class BookingValidationError(BookingError):
    """Raised when a form field fails validation; blocks the next stage"""

    status_code = 422

    def __init__(self, field: str, message: str, details: Optional[dict] = None):
        super().__init__(message, "validation", details)
        self.field = field

    def to_dict(self) -> dict:
        payload = super().to_dict()
        payload["field"] = self.field
        return payload


class VerificationError(BookingError):
    """Raised when the human-verification token is missing, rejected or expired"""

    status_code = 403

    def __init__(self, message: str, expired: bool = False, details: Optional[dict] = None):
        super().__init__(message, "verification", details)
        self.expired = expired


class PersistenceError(BookingError):
    """Raised when the reservation could not be stored; safe to retry"""

    status_code = 503

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(message, "persistence", details)
        self.retryable = True


class SlotFullError(BookingError):
    """Raised when a slot reached capacity between selection and insert"""

    status_code = 409

    def __init__(self, appointment_date: str, time_slot: str, details: Optional[dict] = None):
        message = (
            f"The {time_slot} slot on {appointment_date} was just filled. "
            "Please pick another time."
        )
        super().__init__(message, "slot_full", details)
        self.appointment_date = appointment_date
        self.time_slot = time_slot


class NotificationError(BookingError):
    """Raised by the notification client; never surfaced as a booking failure"""

    status_code = 502

    def __init__(self, message: str, status: Optional[int] = None, details: Optional[dict] = None):
        super().__init__(message, "notification", details)
        self.status = status


class InvalidTransitionError(BookingError):
    """Raised when a workflow action is not allowed from the current stage"""

    status_code = 409

    def __init__(self, current_state: str, action: str, details: Optional[dict] = None):
        message = f"Cannot {action} while booking is in '{current_state}' stage"
        super().__init__(message, "invalid_transition", details)
        self.current_state = current_state
        self.action = action


class InvalidStatusTransitionError(BookingError):
    """Raised when a reservation status change breaks the lifecycle order"""

    status_code = 409

    def __init__(self, current_status: str, new_status: str, details: Optional[dict] = None):
        message = f"Cannot change reservation status from '{current_status}' to '{new_status}'"
        super().__init__(message, "invalid_status_transition", details)
        self.current_status = current_status
        self.new_status = new_status


class ReservationNotFoundError(BookingError):
    status_code = 404

    def __init__(self, reservation_id: str, details: Optional[dict] = None):
        super().__init__(f"Reservation not found: {reservation_id}", "reservation_not_found", details)
        self.reservation_id = reservation_id


class SessionNotFoundError(BookingError):
    status_code = 404

    def __init__(self, session_id: str, details: Optional[dict] = None):
        super().__init__(
            "Booking session not found or expired. Please start again.", "session_not_found", details
        )
        self.session_id = session_id
