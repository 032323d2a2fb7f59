import logging
import os
from pathlib import Path

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./clinic_booking.db")

# Cloudflare R2 Configuration (attachments and payment screenshots)
R2_ACCOUNT_ID = os.getenv("R2_ACCOUNT_ID")
R2_ACCESS_KEY_ID = os.getenv("R2_ACCESS_KEY_ID")
R2_SECRET_ACCESS_KEY = os.getenv("R2_SECRET_ACCESS_KEY")
R2_BUCKET_NAME = os.getenv("R2_BUCKET_NAME", "medical-documents")

# Cloudflare Turnstile
TURNSTILE_SECRET_KEY = os.getenv("TURNSTILE_SECRET_KEY")
# Turnstile tokens are only honoured for 300s by Cloudflare
TURNSTILE_TOKEN_TTL = int(os.getenv("TURNSTILE_TOKEN_TTL", "300"))

# Notification function (renders emails and forwards calendar events)
NOTIFICATION_FUNCTION_URL = os.getenv("NOTIFICATION_FUNCTION_URL")
NOTIFICATION_TIMEOUT = float(os.getenv("NOTIFICATION_TIMEOUT", "10"))

# Booking policy
SLOT_CAPACITY = int(os.getenv("SLOT_CAPACITY", "2"))
CLINIC_TIMEZONE = os.getenv("CLINIC_TIMEZONE", "Asia/Kolkata")
BOOKING_SESSION_TTL = int(os.getenv("BOOKING_SESSION_TTL", "3600"))

VALID_INITIAL_STATUSES = ("pending", "confirmed")
INITIAL_RESERVATION_STATUS = os.getenv("INITIAL_RESERVATION_STATUS", "pending").lower()
if INITIAL_RESERVATION_STATUS not in VALID_INITIAL_STATUSES:
    logger.warning(
        f"⚠️ INITIAL_RESERVATION_STATUS={INITIAL_RESERVATION_STATUS!r} is not one of "
        f"{VALID_INITIAL_STATUSES} - falling back to 'pending'"
    )
    INITIAL_RESERVATION_STATUS = "pending"

# UPI payee shown in the payment deep link
UPI_PAYEE_VPA = os.getenv("UPI_PAYEE_VPA", "drdeogadeclinic@upi")
UPI_PAYEE_NAME = os.getenv("UPI_PAYEE_NAME", "Dr. Deogade Clinic")

# Rate limit for booking confirmation, mirrors the notification function ceiling
BOOKING_RATE_LIMIT = int(os.getenv("BOOKING_RATE_LIMIT", "5"))
BOOKING_RATE_WINDOW = int(os.getenv("BOOKING_RATE_WINDOW", "3600"))
SESSION_RATE_LIMIT = int(os.getenv("SESSION_RATE_LIMIT", "30"))

# Admin access for reservation status updates
ADMIN_API_TOKEN = os.getenv("ADMIN_API_TOKEN")
if not ADMIN_API_TOKEN:
    logger.warning("⚠️ ADMIN_API_TOKEN not set - admin reservation endpoints are disabled")

# Frontend base URL for CORS defaults
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:5173")

ENVIRONMENT = os.getenv("ENVIRONMENT", "development").lower()

ALLOWED_ORIGINS = [
    origin.strip()
    for origin in os.getenv("ALLOWED_ORIGINS", FRONTEND_URL).split(",")
    if origin.strip()
]
