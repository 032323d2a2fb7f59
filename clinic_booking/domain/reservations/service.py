"""Reservation service - Business logic for clinic-side reservation administration"""

import logging
from datetime import date
from typing import Optional

from sqlalchemy.orm import Session

from ...models import Reservation
from ...storage import ObjectStorage
from ..booking.exceptions import (
    BookingValidationError,
    InvalidStatusTransitionError,
    ReservationNotFoundError,
)
from ..booking.repository import ReservationRepository

logger = logging.getLogger(__name__)

RESERVATION_STATUSES = ("pending", "confirmed", "completed", "cancelled")

# Status only moves forward; completed and cancelled are terminal
ALLOWED_STATUS_TRANSITIONS: dict[str, tuple[str, ...]] = {
    "pending": ("confirmed", "completed", "cancelled"),
    "confirmed": ("completed", "cancelled"),
    "completed": (),
    "cancelled": (),
}


def can_transition(current_status: str, new_status: str) -> bool:
    return new_status in ALLOWED_STATUS_TRANSITIONS.get(current_status, ())


class ReservationService:
    """Service layer for reservation administration"""

    def __init__(self, db: Session, storage: Optional[ObjectStorage] = None):
        self.db = db
        self.storage = storage
        self.repo = ReservationRepository()

    def list_reservations(
        self, appointment_date: Optional[date] = None, status: Optional[str] = None
    ) -> list[Reservation]:
        if status and status != "all" and status not in RESERVATION_STATUSES:
            raise BookingValidationError("status", f"Unknown reservation status: {status}")
        return self.repo.list_reservations(self.db, appointment_date, status)

    def get_reservation(self, reservation_id: str) -> Reservation:
        reservation = self.repo.get_reservation(self.db, reservation_id)
        if not reservation:
            raise ReservationNotFoundError(reservation_id)
        return reservation

    def update_status(self, reservation_id: str, new_status: str) -> Reservation:
        """
        Move a reservation along its lifecycle.

        Setting the current status again is a no-op. Cancelling frees the
        reservation's capacity unit in its slot.

        Raises:
            BookingValidationError: Unknown status value
            ReservationNotFoundError: No reservation with this id
            InvalidStatusTransitionError: The change would move the status backwards
        """
        if new_status not in RESERVATION_STATUSES:
            raise BookingValidationError("status", f"Unknown reservation status: {new_status}")

        reservation = self.get_reservation(reservation_id)
        current_status = reservation.status
        if current_status == new_status:
            return reservation

        if not can_transition(current_status, new_status):
            logger.warning(
                f"⚠️ Rejected status change {current_status} -> {new_status} for {reservation_id}"
            )
            raise InvalidStatusTransitionError(current_status, new_status)

        reservation = self.repo.update_status(self.db, reservation, new_status)
        logger.info(f"✅ Reservation {reservation_id} status: {current_status} -> {new_status}")
        return reservation

    def attachment_links(self, reservation: Reservation) -> list[dict]:
        """Presigned download links for a reservation's stored attachments"""
        links = []
        for key in reservation.attachment_urls or []:
            url = None
            if self.storage is not None:
                try:
                    url = self.storage.generate_presigned_url(key)
                except Exception as e:
                    logger.error(f"❌ Could not sign attachment {key}: {str(e)}")
            links.append({"key": key, "url": url})
        return links
