"""Shared test fixtures for the clinic booking service."""

from datetime import date, datetime
from typing import Generator, Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from clinic_booking import models
from clinic_booking.database import Base, get_db
from clinic_booking.domain.booking.exceptions import NotificationError
from clinic_booking.domain.booking.form import Attachment, BookingForm
from clinic_booking.domain.booking.sessions import BookingSessionStore, get_session_store
from clinic_booking.domain.booking.slots import ConsultationMode
from clinic_booking.turnstile import TurnstileResult

# Fixed clinic-local "now": a Sunday at noon, before the clinic window opens
NOW = datetime(2026, 10, 18, 12, 0)
TODAY = NOW.date()
TOMORROW = date(2026, 10, 19)


class FakeStorage:
    """In-memory stand-in for the R2 bucket"""

    def __init__(self, fail_contents: Optional[set] = None):
        self.objects: dict[str, bytes] = {}
        self.fail_contents = fail_contents or set()
        self.content_types: dict[str, str] = {}

    def upload(self, key: str, content: bytes, content_type: str) -> str:
        if content in self.fail_contents:
            raise ConnectionError("bucket unreachable")
        self.objects[key] = content
        self.content_types[key] = content_type
        return key

    def generate_presigned_url(self, key: str, expiration: int = 3600) -> str:
        return f"https://r2.example.com/{key}?expires={expiration}"


class FakeNotifier:
    def __init__(self, fail: bool = False, enabled: bool = True):
        self.fail = fail
        self.enabled = enabled
        self.sent = []

    async def send_booking_confirmation(self, reservation) -> dict:
        if self.fail:
            raise NotificationError("Notification function returned HTTP 500", status=500)
        self.sent.append(reservation.id)
        return {"success": True}


class FakeVerifier:
    """Async Turnstile replacement recording the tokens it was asked about"""

    def __init__(self, result: Optional[TurnstileResult] = None):
        self.result = result or TurnstileResult(success=True)
        self.calls = []

    async def __call__(self, token: str, ip: Optional[str] = None) -> TurnstileResult:
        self.calls.append(token)
        return self.result


@pytest.fixture
def engine():
    """In-memory SQLite shared across threads."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory) -> Generator[Session, None, None]:
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def storage() -> FakeStorage:
    return FakeStorage()


@pytest.fixture
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture
def verifier() -> FakeVerifier:
    return FakeVerifier()


@pytest.fixture
def make_reservation(db):
    """Insert a reservation row directly, bypassing the workflow."""

    def _make(**overrides) -> models.Reservation:
        data = {
            "patient_name": "Asha Patil",
            "age": "34",
            "gender": "female",
            "whatsapp": "+919876543210",
            "email": "asha@example.com",
            "reason": "Recurring headache",
            "consultation_type": "clinic",
            "service_type": "general-physician",
            "service_name": "General Physician",
            "service_price": 150,
            "appointment_date": TOMORROW,
            "time_slot": "18:00",
            "slot_ordinal": 1,
            "status": "pending",
            "payment_method": "pay-later",
            "attachment_urls": [],
        }
        data.update(overrides)
        reservation = models.Reservation(**data)
        db.add(reservation)
        db.commit()
        db.refresh(reservation)
        return reservation

    return _make


@pytest.fixture
def filled_form() -> BookingForm:
    """A form that passes every validation rule for TOMORROW at 18:00."""
    return BookingForm(
        name="  Asha Patil ",
        age="34",
        gender="female",
        whatsapp="+91 98765-43210",
        email="Asha@Example.com",
        reason="Recurring headache for two weeks",
        consultation_type=ConsultationMode.CLINIC,
        service_type="general-physician",
        appointment_date=TOMORROW,
        time_slot="18:00",
    )


@pytest.fixture
def screenshot() -> Attachment:
    return Attachment(filename="payment.png", content_type="image/png", content=b"\x89PNG-data")


@pytest.fixture
def session_store() -> BookingSessionStore:
    return BookingSessionStore(ttl_seconds=3600)


@pytest.fixture
def client(session_factory, storage, notifier, verifier, session_store):
    """Test client with every external collaborator replaced."""
    from clinic_booking.domain.booking import router as booking_router
    from clinic_booking.main import app

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    async def no_rate_limit():
        return None

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_store] = lambda: session_store
    app.dependency_overrides[booking_router.get_object_storage] = lambda: storage
    app.dependency_overrides[booking_router.get_notification_client] = lambda: notifier
    app.dependency_overrides[booking_router.get_human_verifier] = lambda: verifier
    app.dependency_overrides[booking_router.get_clinic_now] = lambda: NOW
    app.dependency_overrides[booking_router.booking_rate_limit] = no_rate_limit
    app.dependency_overrides[booking_router.session_rate_limit] = no_rate_limit

    yield TestClient(app)

    app.dependency_overrides.clear()
