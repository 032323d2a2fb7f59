import uuid

from sqlalchemy import (
    JSON,
    Column,
    Date,
    DateTime,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.sql import func

from .database import Base


def generate_reservation_id():
    """Generate an opaque reservation id"""
    return str(uuid.uuid4())


class Reservation(Base):
    __tablename__ = "appointments"
    __table_args__ = (
        # One row per capacity unit of a slot; cancelled rows release their ordinal (NULL)
        UniqueConstraint(
            "appointment_date", "time_slot", "slot_ordinal", name="uq_appointment_slot_ordinal"
        ),
        Index("ix_appointments_date_status", "appointment_date", "status"),
    )

    id = Column(String(36), primary_key=True, default=generate_reservation_id)
    patient_name = Column(String(100), nullable=False)
    age = Column(String(3), nullable=False)  # Kept as submitted, e.g. "42"
    gender = Column(String(10), nullable=False)  # male, female, other
    whatsapp = Column(String(16), nullable=False)
    email = Column(String(255), nullable=True)
    reason = Column(Text, nullable=False)
    consultation_type = Column(String(10), nullable=False)  # online, clinic
    service_type = Column(String(50), nullable=False)  # Catalog id
    service_name = Column(String(100), nullable=False)  # Denormalized from catalog
    service_price = Column(Integer, nullable=False)  # Rupees
    appointment_date = Column(Date, nullable=False, index=True)
    time_slot = Column(String(5), nullable=False)  # HH:MM
    slot_ordinal = Column(Integer, nullable=True)  # 1..capacity while active
    status = Column(String(20), default="pending", nullable=False)
    payment_method = Column(String(20), nullable=False)  # upi, pay-later
    attachment_urls = Column(JSON, default=list, nullable=False)  # Storage keys, not URLs
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
