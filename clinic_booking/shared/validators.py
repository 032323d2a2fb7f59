"""Shared validation utilities for booking fields"""

import re
from datetime import date
from typing import Optional

GENDERS = ("male", "female", "other")
NAME_MAX_LENGTH = 100
REASON_MAX_LENGTH = 1000
EMAIL_MAX_LENGTH = 255
MIN_AGE = 1
MAX_AGE = 120

MAX_ATTACHMENTS = 5
MAX_ATTACHMENT_SIZE = 5 * 1024 * 1024  # 5MB
ALLOWED_ATTACHMENT_TYPES = [
    "image/png",
    "image/jpeg",
    "image/jpg",
    "image/webp",
    "image/gif",
    "image/heic",
    "image/heif",
    "application/pdf",
]

# Optional leading +, 10-15 digits, first digit non-zero
PHONE_PATTERN = re.compile(r"^\+?[1-9]\d{9,14}$")
EMAIL_PATTERN = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")


def validate_name(name: Optional[str]) -> str:
    """
    Validate a patient's full name.

    Returns:
        Trimmed name

    Raises:
        ValueError: If the name is empty or too long
    """
    name = (name or "").strip()
    if not name:
        raise ValueError("Full name is required")
    if len(name) > NAME_MAX_LENGTH:
        raise ValueError(f"Name must be at most {NAME_MAX_LENGTH} characters")
    return name


def validate_age(age: Optional[str]) -> str:
    """
    Validate age given as a digit string.

    Returns:
        Age string without surrounding whitespace

    Raises:
        ValueError: If age is not digits or outside 1-120
    """
    age = (age or "").strip()
    if not age:
        raise ValueError("Age is required")
    if not re.fullmatch(r"[0-9]+", age):
        raise ValueError("Age must be a whole number")
    if not MIN_AGE <= int(age) <= MAX_AGE:
        raise ValueError(f"Age must be between {MIN_AGE} and {MAX_AGE}")
    return str(int(age))


def validate_gender(gender: Optional[str]) -> str:
    if gender not in GENDERS:
        raise ValueError("Please select a gender")
    return gender


def validate_phone(phone: Optional[str]) -> str:
    """
    Validate a WhatsApp contact number.

    Spaces, dashes and brackets are stripped before checking, so
    "+91 98765-43210" is accepted and stored as "+919876543210".

    Raises:
        ValueError: If the number is missing or malformed
    """
    if not phone:
        raise ValueError("WhatsApp number is required")

    normalized = re.sub(r"[\s\-()]", "", phone)
    if not PHONE_PATTERN.match(normalized):
        raise ValueError("Enter a valid phone number with 10-15 digits")
    return normalized


def validate_email(email: Optional[str]) -> Optional[str]:
    """
    Validate an optional email address.

    Returns:
        Lowercase email address, or None when not provided

    Raises:
        ValueError: If email is too long or malformed
    """
    if not email or not email.strip():
        return None

    email = email.strip().lower()

    if len(email) > EMAIL_MAX_LENGTH:
        raise ValueError("Email too long")
    if not EMAIL_PATTERN.match(email):
        raise ValueError("Invalid email format")

    return email


def validate_reason(reason: Optional[str]) -> str:
    reason = (reason or "").strip()
    if not reason:
        raise ValueError("Please describe the reason for your visit")
    if len(reason) > REASON_MAX_LENGTH:
        raise ValueError(f"Reason must be at most {REASON_MAX_LENGTH} characters")
    return reason


def validate_appointment_date(value: Optional[date], today: date) -> date:
    if value is None:
        raise ValueError("Please select an appointment date")
    if value < today:
        raise ValueError("Appointment date cannot be in the past")
    return value


def validate_attachment(filename: Optional[str], content_type: Optional[str], size: int) -> None:
    """
    Validate a single uploaded attachment.

    Raises:
        ValueError: If the file type or size is not allowed
    """
    if content_type not in ALLOWED_ATTACHMENT_TYPES:
        raise ValueError("Only images and PDF files are allowed")
    if size > MAX_ATTACHMENT_SIZE:
        raise ValueError(
            f"File size exceeds 5MB limit. Your file is {size / (1024 * 1024):.2f}MB."
        )
    if size == 0:
        raise ValueError("File is empty")
    if filename and len(filename) > 255:
        raise ValueError("Filename too long - maximum 255 characters")
