"""
Client for the booking-confirmation notification function.

The function renders confirmation emails for the patient and the clinic and
forwards a calendar event. Delivery is best effort: callers treat any failure
as non-fatal because the stored reservation is the source of truth.
"""

import logging
from datetime import date
from typing import Optional

import httpx

from .config import NOTIFICATION_FUNCTION_URL, NOTIFICATION_TIMEOUT
from .domain.booking.exceptions import NotificationError
from .models import Reservation

logger = logging.getLogger(__name__)


def ordinal_suffix(day: int) -> str:
    if 11 <= day % 100 <= 13:
        return "th"
    return {1: "st", 2: "nd", 3: "rd"}.get(day % 10, "th")


def format_long_date(value: date) -> str:
    """Format like "October 18th, 2026" """
    return f"{value.strftime('%B')} {value.day}{ordinal_suffix(value.day)}, {value.year}"


def build_notification_payload(reservation: Reservation) -> dict:
    """JSON body expected by the notification function"""
    return {
        "reservationId": reservation.id,
        "name": reservation.patient_name,
        "age": reservation.age,
        "gender": reservation.gender,
        "whatsapp": reservation.whatsapp,
        "email": reservation.email or None,
        "reason": reservation.reason,
        "consultationType": reservation.consultation_type,
        "serviceType": reservation.service_type,
        "serviceName": reservation.service_name,
        "serviceCharge": reservation.service_price,
        "date": format_long_date(reservation.appointment_date),
        "appointmentDate": reservation.appointment_date.isoformat(),
        "timeSlot": reservation.time_slot,
        "paymentMethod": reservation.payment_method,
        "attachmentUrls": list(reservation.attachment_urls or []),
        "status": reservation.status,
    }


class NotificationClient:
    """Posts reservation data to the notification function"""

    def __init__(
        self,
        url: Optional[str] = NOTIFICATION_FUNCTION_URL,
        timeout: float = NOTIFICATION_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.url = url
        self.timeout = timeout
        self.transport = transport

    @property
    def enabled(self) -> bool:
        return bool(self.url)

    async def send_booking_confirmation(self, reservation: Reservation) -> dict:
        """
        Send the reservation to the notification function.

        Returns:
            Parsed JSON response from the function

        Raises:
            NotificationError: On transport failure or a non-2xx response (including 429)
        """
        if not self.enabled:
            raise NotificationError("Notification function URL not configured")

        payload = build_notification_payload(reservation)

        try:
            async with httpx.AsyncClient(transport=self.transport, timeout=self.timeout) as client:
                response = await client.post(self.url, json=payload)
        except httpx.HTTPError as e:
            raise NotificationError(f"Notification request failed: {e}") from e

        if response.status_code == 429:
            raise NotificationError(
                "Notification function rate limit exceeded", status=response.status_code
            )
        if not response.is_success:
            raise NotificationError(
                f"Notification function returned HTTP {response.status_code}",
                status=response.status_code,
            )

        logger.info(f"✅ Booking confirmation sent for reservation {reservation.id}")
        try:
            return response.json()
        except ValueError:
            return {}
