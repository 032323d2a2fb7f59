"""Reservation schemas - Pydantic models for the admin reservation API"""

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, field_validator

from .service import RESERVATION_STATUSES


class AttachmentLink(BaseModel):
    key: str
    url: Optional[str] = None


class ReservationResponse(BaseModel):
    id: str
    patient_name: str
    age: str
    gender: str
    whatsapp: str
    email: Optional[str] = None
    reason: str
    consultation_type: str
    service_type: str
    service_name: str
    service_price: int
    appointment_date: date
    time_slot: str
    status: str
    payment_method: str
    attachment_urls: list[str] = []
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ReservationDetailResponse(ReservationResponse):
    attachments: list[AttachmentLink] = []


class StatusUpdate(BaseModel):
    status: str

    @field_validator("status")
    @classmethod
    def validate_status(cls, v):
        v = (v or "").strip().lower()
        if v not in RESERVATION_STATUSES:
            raise ValueError(f"Status must be one of: {', '.join(RESERVATION_STATUSES)}")
        return v
