"""
Booking workflow state machine.

    FORM --proceed_to_payment--> PAYMENT --confirm--> CONFIRMATION
      ^                            |                       |
      +----------back--------------+                       |
      +------------------------dismiss---------------------+

Leaving FORM requires a valid form and a fresh human-verification token.
Leaving PAYMENT stores the reservation; a storage failure keeps the workflow
in PAYMENT so the patient can retry without re-entering anything. The write
runs in the transient SUBMITTING stage, which accepts no transitions.
"""

import logging
import time
from datetime import datetime
from enum import Enum
from typing import Awaitable, Callable, Optional

from ...config import TURNSTILE_TOKEN_TTL
from ...turnstile import TurnstileResult
from .capacity import CapacityTracker
from .exceptions import (
    BookingValidationError,
    InvalidTransitionError,
    SlotFullError,
    VerificationError,
)
from .form import BookingForm, BookingSnapshot
from .payments import PaymentMethod
from .slots import generate_time_slots
from .writer import ReservationWriter, SubmissionResult

logger = logging.getLogger(__name__)

Verifier = Callable[[str, Optional[str]], Awaitable[TurnstileResult]]


class BookingStage(str, Enum):
    FORM = "form"
    PAYMENT = "payment"
    SUBMITTING = "submitting"
    CONFIRMATION = "confirmation"


class BookingWorkflow:
    """Three-stage booking flow for a single patient session"""

    def __init__(
        self,
        form: Optional[BookingForm] = None,
        verification_ttl: int = TURNSTILE_TOKEN_TTL,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.form = form or BookingForm()
        self.stage = BookingStage.FORM
        self.verification_ttl = verification_ttl
        self.clock = clock
        self.verification_token: Optional[str] = None
        self.verified_at: Optional[float] = None
        self.snapshot: Optional[BookingSnapshot] = None
        self.payment_method: Optional[PaymentMethod] = None
        self.result: Optional[SubmissionResult] = None

    def _require(self, stage: BookingStage, action: str) -> None:
        if self.stage != stage:
            raise InvalidTransitionError(self.stage.value, action)

    @property
    def verification_valid(self) -> bool:
        if self.verification_token is None or self.verified_at is None:
            return False
        return self.clock() - self.verified_at < self.verification_ttl

    def clear_verification(self) -> None:
        self.verification_token = None
        self.verified_at = None

    async def proceed_to_payment(
        self,
        verification_token: Optional[str],
        verifier: Verifier,
        tracker: CapacityTracker,
        now: datetime,
        client_ip: Optional[str] = None,
    ) -> BookingSnapshot:
        """
        FORM -> PAYMENT, guarded by full form validation and human verification.

        A token verified earlier in this session is reused while it is younger
        than the verification TTL; after that a new token must be supplied.

        Raises:
            BookingValidationError: First failing form rule
            VerificationError: Missing, rejected or expired token
        """
        self._require(BookingStage.FORM, "proceed to payment")

        occupancy = {}
        if self.form.appointment_date is not None:
            occupancy = tracker.occupancy(self.form.appointment_date)
        snapshot = self.form.validate(now.date(), now, occupancy, tracker.capacity)

        if not (self.verification_valid and verification_token in (None, self.verification_token)):
            self.clear_verification()
            if not verification_token:
                raise VerificationError("Please complete the verification challenge")

            result = await verifier(verification_token, client_ip)
            if not result.success:
                if result.expired:
                    raise VerificationError(
                        "Verification expired. Please complete the challenge again.",
                        expired=True,
                    )
                raise VerificationError(
                    "Verification failed. Please try again.",
                    details={"error_codes": result.error_codes},
                )

            self.verification_token = verification_token
            self.verified_at = self.clock()

        self.snapshot = snapshot
        self.stage = BookingStage.PAYMENT
        logger.info(
            f"💳 Booking moved to payment: {snapshot.service.id} on "
            f"{snapshot.appointment_date} at {snapshot.time_slot}"
        )
        return snapshot

    def back(self) -> None:
        """PAYMENT -> FORM with no side effects"""
        self._require(BookingStage.PAYMENT, "go back")
        self.snapshot = None
        self.stage = BookingStage.FORM

    def _return_to_form(self) -> None:
        self.form.time_slot = ""
        self.snapshot = None
        self.stage = BookingStage.FORM

    async def confirm(
        self, payment_method: PaymentMethod, writer: ReservationWriter, now: datetime
    ) -> SubmissionResult:
        """
        PAYMENT -> SUBMITTING -> CONFIRMATION, storing the reservation.

        While the reservation is being written the workflow sits in SUBMITTING,
        so an overlapping confirm for the same session is rejected.

        Raises:
            BookingValidationError: Pay-now chosen without a payment screenshot, or
                the slot has elapsed since the payment step (stage returns to FORM)
            InvalidTransitionError: Not on the payment step, or already submitting
            PersistenceError: Storage failed; stage stays PAYMENT
            SlotFullError: Slot filled meanwhile; stage returns to FORM with the slot cleared
        """
        self._require(BookingStage.PAYMENT, "confirm payment")

        try:
            payment_method = PaymentMethod(payment_method)
        except ValueError as e:
            raise BookingValidationError("payment_method", "Please choose a payment method") from e

        if payment_method == PaymentMethod.UPI and not self.form.attachments:
            raise BookingValidationError("attachments", "Payment screenshot required")

        snapshot = self.snapshot
        still_open = snapshot.appointment_date >= now.date() and snapshot.time_slot in (
            generate_time_slots(snapshot.consultation_type, snapshot.appointment_date, now)
        )
        if not still_open:
            logger.warning(
                f"⏰ Slot {snapshot.appointment_date} {snapshot.time_slot} elapsed during payment"
            )
            self._return_to_form()
            raise BookingValidationError(
                "time_slot", "Selected time slot has passed. Please choose another time."
            )

        self.stage = BookingStage.SUBMITTING
        try:
            result = await writer.submit(snapshot, payment_method, self.form.attachments)
        except SlotFullError:
            logger.warning("⚠️ Slot filled during payment - returning booking to form")
            self._return_to_form()
            raise
        except BaseException:
            self.stage = BookingStage.PAYMENT
            raise

        self.payment_method = payment_method
        self.result = result
        self.stage = BookingStage.CONFIRMATION
        return result

    def dismiss(self) -> None:
        """CONFIRMATION -> FORM, clearing all booking state"""
        self._require(BookingStage.CONFIRMATION, "dismiss confirmation")
        self.form = BookingForm()
        self.clear_verification()
        self.snapshot = None
        self.payment_method = None
        self.result = None
        self.stage = BookingStage.FORM
