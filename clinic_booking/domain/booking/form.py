"""
In-progress booking form and its validation.

The form is edited piecemeal while the patient fills it in, then validated as
a whole before the workflow may move to payment. Validation stops at the first
failing rule so the patient gets one actionable message at a time.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Optional

from ...config import SLOT_CAPACITY
from ...shared import validators
from .catalog import ServiceCatalogEntry, get_service
from .exceptions import BookingValidationError
from .slots import ConsultationMode, generate_time_slots

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = (
    "name",
    "age",
    "gender",
    "whatsapp",
    "email",
    "reason",
    "consultation_type",
    "service_type",
    "appointment_date",
    "time_slot",
)


@dataclass
class Attachment:
    filename: str
    content_type: str
    content: bytes = field(repr=False)
    storage_key: Optional[str] = None  # Set once uploaded

    @property
    def size(self) -> int:
        return len(self.content)

    @property
    def extension(self) -> str:
        if self.filename and "." in self.filename:
            return self.filename.rsplit(".", 1)[-1].lower()
        return "pdf" if self.content_type == "application/pdf" else "jpg"

    def to_dict(self) -> dict:
        return {
            "filename": self.filename,
            "content_type": self.content_type,
            "size": self.size,
            "uploaded": self.storage_key is not None,
        }


@dataclass(frozen=True)
class BookingSnapshot:
    """A fully validated, normalized copy of the form handed to the reservation writer"""

    name: str
    age: str
    gender: str
    whatsapp: str
    email: Optional[str]
    reason: str
    consultation_type: ConsultationMode
    service: ServiceCatalogEntry
    appointment_date: date
    time_slot: str


@dataclass
class BookingForm:
    name: str = ""
    age: str = ""
    gender: str = ""
    whatsapp: str = ""
    email: str = ""
    reason: str = ""
    consultation_type: ConsultationMode = ConsultationMode.CLINIC
    service_type: str = ""
    appointment_date: Optional[date] = None
    time_slot: str = ""
    attachments: list[Attachment] = field(default_factory=list)

    def update(self, **changes) -> None:
        """
        Apply a partial edit.

        Changing the date or consultation mode clears the selected slot, since
        the previous choice may not exist (or may be full) under the new selection.
        """
        unknown = set(changes) - set(EDITABLE_FIELDS)
        if unknown:
            raise BookingValidationError(sorted(unknown)[0], "Unknown booking field")

        if "consultation_type" in changes:
            mode = changes.pop("consultation_type")
            if mode is not None:
                try:
                    changes["consultation_type"] = ConsultationMode(mode)
                except ValueError as e:
                    raise BookingValidationError(
                        "consultation_type", "Consultation type must be online or clinic"
                    ) from e

        resets_slot = (
            "appointment_date" in changes and changes["appointment_date"] != self.appointment_date
        ) or (
            "consultation_type" in changes
            and changes["consultation_type"] != self.consultation_type
        )

        for key, value in changes.items():
            if value is None and key != "appointment_date":
                value = ""
            setattr(self, key, value)

        if resets_slot and "time_slot" not in changes:
            self.time_slot = ""

    def add_attachment(self, attachment: Attachment) -> None:
        if len(self.attachments) >= validators.MAX_ATTACHMENTS:
            raise BookingValidationError(
                "attachments", f"You can attach at most {validators.MAX_ATTACHMENTS} files"
            )
        try:
            validators.validate_attachment(
                attachment.filename, attachment.content_type, attachment.size
            )
        except ValueError as e:
            raise BookingValidationError("attachments", str(e)) from e

        self.attachments.append(attachment)

    def remove_attachment(self, index: int) -> Attachment:
        if not 0 <= index < len(self.attachments):
            raise BookingValidationError("attachments", "Attachment not found")
        return self.attachments.pop(index)

    def validate(
        self,
        today: date,
        now: Optional[datetime] = None,
        occupancy: Optional[dict[str, int]] = None,
        capacity: int = SLOT_CAPACITY,
    ) -> BookingSnapshot:
        """
        Validate every field in order and return a normalized snapshot.

        Args:
            today: Current clinic-local date
            now: Current clinic-local time, used to drop elapsed slots for today
            occupancy: Slot label to active reservation count for the chosen date
            capacity: Per-slot capacity ceiling

        Raises:
            BookingValidationError: For the first rule that fails
        """
        name = _check("name", validators.validate_name, self.name)
        age = _check("age", validators.validate_age, self.age)
        gender = _check("gender", validators.validate_gender, self.gender)
        whatsapp = _check("whatsapp", validators.validate_phone, self.whatsapp)
        email = _check("email", validators.validate_email, self.email)
        reason = _check("reason", validators.validate_reason, self.reason)

        service = get_service(self.service_type)
        if service is None:
            raise BookingValidationError("service_type", "Please select a service")

        appointment_date = _check(
            "appointment_date", validators.validate_appointment_date, self.appointment_date, today
        )

        if not self.time_slot:
            raise BookingValidationError("time_slot", "Please select a time slot")
        available = generate_time_slots(self.consultation_type, appointment_date, now)
        if self.time_slot not in available:
            raise BookingValidationError("time_slot", "Selected time slot is not available")
        if (occupancy or {}).get(self.time_slot, 0) >= capacity:
            raise BookingValidationError("time_slot", "Time slot is full")

        if len(self.attachments) > validators.MAX_ATTACHMENTS:
            raise BookingValidationError(
                "attachments", f"You can attach at most {validators.MAX_ATTACHMENTS} files"
            )
        for attachment in self.attachments:
            _check(
                "attachments",
                validators.validate_attachment,
                attachment.filename,
                attachment.content_type,
                attachment.size,
            )

        return BookingSnapshot(
            name=name,
            age=age,
            gender=gender,
            whatsapp=whatsapp,
            email=email,
            reason=reason,
            consultation_type=self.consultation_type,
            service=service,
            appointment_date=appointment_date,
            time_slot=self.time_slot,
        )

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "age": self.age,
            "gender": self.gender,
            "whatsapp": self.whatsapp,
            "email": self.email,
            "reason": self.reason,
            "consultation_type": self.consultation_type.value,
            "service_type": self.service_type,
            "appointment_date": (
                self.appointment_date.isoformat() if self.appointment_date else None
            ),
            "time_slot": self.time_slot,
            "attachments": [a.to_dict() for a in self.attachments],
        }


def _check(field_name: str, validator, *args):
    try:
        return validator(*args)
    except ValueError as e:
        raise BookingValidationError(field_name, str(e)) from e
