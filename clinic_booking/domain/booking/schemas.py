"""Booking domain schemas - Pydantic models for the public booking API"""

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, field_validator

from ...i18n import Language
from ...shared.validators import validate_email, validate_gender, validate_phone
from .payments import PaymentMethod
from .slots import ConsultationMode


class ServiceResponse(BaseModel):
    id: str
    name: str
    price: int
    description: str
    has_illustration: bool


class SlotResponse(BaseModel):
    time: str
    booked_count: int
    available_count: int
    is_full: bool


class SlotListResponse(BaseModel):
    """Slots for one date and mode; stale is set when the selection changed mid-fetch"""

    appointment_date: Optional[date] = None
    mode: ConsultationMode
    slots: list[SlotResponse]
    stale: bool = False


class FormUpdate(BaseModel):
    """Partial edit of the in-progress booking form. Omitted fields stay unchanged."""

    name: Optional[str] = None
    age: Optional[str] = None
    gender: Optional[str] = None
    whatsapp: Optional[str] = None
    email: Optional[str] = None
    reason: Optional[str] = None
    consultation_type: Optional[ConsultationMode] = None
    service_type: Optional[str] = None
    appointment_date: Optional[date] = None
    time_slot: Optional[str] = None

    @field_validator("gender")
    @classmethod
    def check_gender(cls, v):
        if v:
            return validate_gender(v)
        return v

    @field_validator("whatsapp")
    @classmethod
    def check_phone(cls, v):
        if v:
            return validate_phone(v)
        return v

    @field_validator("email")
    @classmethod
    def check_email(cls, v):
        if v:
            return validate_email(v)
        return v


class AttachmentResponse(BaseModel):
    filename: str
    content_type: str
    size: int
    uploaded: bool


class FormState(BaseModel):
    name: str
    age: str
    gender: str
    whatsapp: str
    email: str
    reason: str
    consultation_type: ConsultationMode
    service_type: str
    appointment_date: Optional[date] = None
    time_slot: str
    attachments: list[AttachmentResponse]


class SessionResponse(BaseModel):
    id: str
    stage: str
    form: FormState
    transaction_id: str
    verified: bool
    payment_method: Optional[PaymentMethod] = None
    reservation_id: Optional[str] = None
    slots: list[SlotResponse] = []


class PaymentRequest(BaseModel):
    """Move to the payment step. The token may be omitted while a previous verification is still fresh."""

    turnstile_token: Optional[str] = None


class PaymentLinkResponse(BaseModel):
    upi_link: str
    amount: int
    service_name: str
    transaction_id: str


class ConfirmRequest(BaseModel):
    payment_method: PaymentMethod


class ReservationSummary(BaseModel):
    id: str
    appointment_date: date
    time_slot: str
    consultation_type: str
    service_name: str
    service_price: int
    payment_method: str
    status: str

    class Config:
        from_attributes = True


class ConfirmResponse(BaseModel):
    reservation: ReservationSummary
    message: str
    notification_sent: bool
    failed_uploads: list[str]
    session: SessionResponse


class ClinicStatusResponse(BaseModel):
    status: str
    now: datetime


class LanguagePreference(BaseModel):
    language: Language
