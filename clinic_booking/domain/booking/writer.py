"""
Reservation writer - persists a validated booking.

Steps, in order:
1. upload attachments to object storage (per-file failures are reported, not fatal)
2. insert the reservation, re-checking slot capacity inside the transaction
3. notify the confirmation function (best effort, never rolls back the insert)
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ...config import INITIAL_RESERVATION_STATUS, SLOT_CAPACITY
from ...i18n import LanguageContext
from ...models import Reservation
from ...storage import ObjectStorage, generate_storage_key
from .exceptions import NotificationError, PersistenceError, SlotFullError
from .form import Attachment, BookingSnapshot
from .payments import PaymentMethod
from .repository import ReservationRepository

logger = logging.getLogger(__name__)

# Concurrent inserts into the same slot are retried once after a unique-constraint clash
INSERT_ATTEMPTS = 2


@dataclass
class SubmissionResult:
    reservation: Reservation
    failed_uploads: list[str] = field(default_factory=list)
    notification_sent: bool = False

    def message(self, lang: LanguageContext) -> str:
        """User-facing confirmation text, softened when a side effect failed"""
        reservation = self.reservation
        parts = [
            lang.t(
                "booking.confirmed",
                consultation=lang.t(f"consultation.{reservation.consultation_type}"),
                date=reservation.appointment_date.isoformat(),
                time=reservation.time_slot,
            )
        ]
        if self.notification_sent:
            parts.append(lang.t("booking.confirmed_email"))
        else:
            parts.append(lang.t("booking.email_warning"))
        if self.failed_uploads:
            parts.append(lang.t("booking.upload_warning", files=", ".join(self.failed_uploads)))
        return " ".join(parts)


class ReservationWriter:
    """Persists finalized bookings and triggers their notifications"""

    def __init__(
        self,
        db: Session,
        storage: ObjectStorage,
        notifier=None,
        initial_status: str = INITIAL_RESERVATION_STATUS,
        capacity: int = SLOT_CAPACITY,
    ):
        self.db = db
        self.storage = storage
        self.notifier = notifier
        self.initial_status = initial_status
        self.capacity = capacity
        self.repo = ReservationRepository()

    async def submit(
        self,
        snapshot: BookingSnapshot,
        payment_method: PaymentMethod,
        attachments: list[Attachment],
    ) -> SubmissionResult:
        """
        Persist a validated booking.

        Args:
            snapshot: Validated form data
            payment_method: Chosen payment method
            attachments: Session attachments; uploaded ones keep their storage key

        Returns:
            SubmissionResult with the stored reservation and side-effect outcomes

        Raises:
            PersistenceError: Storage or database failure; the caller may retry
            SlotFullError: The slot reached capacity before the insert
        """
        payment_method = PaymentMethod(payment_method)
        failed_uploads = self.upload_attachments(attachments)
        storage_keys = [a.storage_key for a in attachments if a.storage_key]

        if payment_method == PaymentMethod.UPI and not storage_keys:
            raise PersistenceError(
                "Payment screenshot could not be uploaded. Please try again.",
                details={"failed_uploads": failed_uploads},
            )

        reservation = self.insert_reservation(snapshot, payment_method, storage_keys)
        logger.info(
            f"📅 Reservation {reservation.id} stored for {reservation.appointment_date} "
            f"{reservation.time_slot} (ordinal {reservation.slot_ordinal}/{self.capacity})"
        )

        notification_sent = await self.notify(reservation)

        return SubmissionResult(
            reservation=reservation,
            failed_uploads=failed_uploads,
            notification_sent=notification_sent,
        )

    def upload_attachments(self, attachments: list[Attachment]) -> list[str]:
        """Upload pending attachments; returns the filenames that failed"""
        failed = []
        for attachment in attachments:
            if attachment.storage_key:
                continue

            key = generate_storage_key(attachment.extension)
            try:
                self.storage.upload(key, attachment.content, attachment.content_type)
                attachment.storage_key = key
            except Exception as e:
                logger.error(f"❌ Upload failed for {attachment.filename}: {str(e)}")
                failed.append(attachment.filename)
        return failed

    def insert_reservation(
        self,
        snapshot: BookingSnapshot,
        payment_method: PaymentMethod,
        storage_keys: list[str],
    ) -> Reservation:
        """Insert with the lowest free capacity ordinal for the slot"""
        appointment_date = snapshot.appointment_date
        time_slot = snapshot.time_slot

        for attempt in range(1, INSERT_ATTEMPTS + 1):
            try:
                taken = self.repo.active_ordinals(self.db, appointment_date, time_slot)
                free = [n for n in range(1, self.capacity + 1) if n not in taken]
                if len(taken) >= self.capacity or not free:
                    logger.warning(
                        f"⚠️ Slot {appointment_date} {time_slot} is full ({len(taken)}/{self.capacity})"
                    )
                    raise SlotFullError(appointment_date.isoformat(), time_slot)

                reservation = self.repo.create_reservation(
                    self.db,
                    patient_name=snapshot.name,
                    age=snapshot.age,
                    gender=snapshot.gender,
                    whatsapp=snapshot.whatsapp,
                    email=snapshot.email,
                    reason=snapshot.reason,
                    consultation_type=snapshot.consultation_type.value,
                    service_type=snapshot.service.id,
                    service_name=snapshot.service.name,
                    service_price=snapshot.service.price,
                    appointment_date=appointment_date,
                    time_slot=time_slot,
                    slot_ordinal=free[0],
                    status=self.initial_status,
                    payment_method=payment_method.value,
                    attachment_urls=storage_keys,
                )
                self.db.commit()
                self.db.refresh(reservation)
                return reservation
            except IntegrityError:
                self.db.rollback()
                logger.warning(
                    f"⚠️ Concurrent booking clash on {appointment_date} {time_slot} "
                    f"(attempt {attempt}/{INSERT_ATTEMPTS})"
                )
            except SQLAlchemyError as e:
                self.db.rollback()
                logger.error(f"❌ Failed to store reservation: {str(e)}")
                raise PersistenceError(
                    "We could not save your appointment. Please try again."
                ) from e

        raise SlotFullError(appointment_date.isoformat(), time_slot)

    async def notify(self, reservation: Reservation) -> bool:
        """Call the notification function; failures are logged and reported as False"""
        if self.notifier is None or not getattr(self.notifier, "enabled", True):
            logger.warning(
                f"⚠️ Notification function not configured - skipping confirmation for {reservation.id}"
            )
            return False

        try:
            await self.notifier.send_booking_confirmation(reservation)
            return True
        except NotificationError as e:
            logger.error(f"❌ Booking notification failed for {reservation.id}: {e.message}")
        except Exception as e:
            logger.error(f"❌ Unexpected notification error for {reservation.id}: {str(e)}")
        return False
