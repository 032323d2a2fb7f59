"""Tests for the public booking API routes."""

from datetime import datetime

import pytest
from conftest import TOMORROW

from clinic_booking import config
from clinic_booking.domain.booking import router as booking_router
from clinic_booking.models import Reservation
from clinic_booking.turnstile import TurnstileResult

FORM = {
    "name": "Asha Patil",
    "age": "34",
    "gender": "female",
    "whatsapp": "+91 98765 43210",
    "email": "asha@example.com",
    "reason": "Recurring headache",
    "consultation_type": "clinic",
    "service_type": "general-physician",
    "appointment_date": TOMORROW.isoformat(),
    "time_slot": "18:00",
}


@pytest.fixture
def session_id(client):
    response = client.post("/booking/sessions")
    assert response.status_code == 201
    return response.json()["id"]


@pytest.fixture
def filled_session(client, session_id):
    response = client.patch(f"/booking/sessions/{session_id}/form", json=FORM)
    assert response.status_code == 200
    return session_id


@pytest.fixture
def payment_session(client, filled_session):
    response = client.post(
        f"/booking/sessions/{filled_session}/payment", json={"turnstile_token": "tok"}
    )
    assert response.status_code == 200
    return filled_session


class TestCatalogRoutes:
    def test_services(self, client):
        response = client.get("/booking/services")

        assert response.status_code == 200
        services = response.json()
        assert len(services) == 7
        assert services[0] == {
            "id": "general-physician",
            "name": "General Physician",
            "price": 150,
            "description": "Comprehensive general medical consultation and treatment",
            "has_illustration": True,
        }

    def test_slots_with_occupancy(self, client, make_reservation):
        make_reservation(time_slot="18:20", slot_ordinal=1)
        make_reservation(time_slot="18:20", slot_ordinal=2)

        response = client.get("/booking/slots", params={"mode": "clinic", "date": TOMORROW.isoformat()})

        assert response.status_code == 200
        data = response.json()
        assert data["appointment_date"] == TOMORROW.isoformat()
        assert len(data["slots"]) == 18
        full = [s["time"] for s in data["slots"] if s["is_full"]]
        assert full == ["18:20"]

    def test_online_slots(self, client):
        response = client.get("/booking/slots", params={"mode": "online", "date": TOMORROW.isoformat()})

        assert len(response.json()["slots"]) == 78

    def test_clinic_status(self, client):
        response = client.get("/clinic/status")

        assert response.status_code == 200
        assert response.json()["status"] == "online"

    def test_health(self, client):
        assert client.get("/health").json() == {"status": "healthy"}

    def test_security_headers(self, client):
        response = client.get("/booking/services")

        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert response.headers["Cache-Control"] == "no-store"
        assert "challenges.cloudflare.com" in response.headers["Content-Security-Policy"]
        assert "Strict-Transport-Security" not in response.headers

    def test_health_skips_security_headers(self, client):
        assert "Content-Security-Policy" not in client.get("/health").headers


class TestSessionRoutes:
    def test_new_session_starts_on_form(self, client, session_id):
        data = client.get(f"/booking/sessions/{session_id}").json()

        assert data["stage"] == "form"
        assert data["form"]["consultation_type"] == "clinic"
        assert data["transaction_id"].startswith("TXN")

    def test_unknown_session_is_404(self, client):
        response = client.get("/booking/sessions/nope")

        assert response.status_code == 404
        assert response.json()["detail"]["error_type"] == "session_not_found"

    def test_form_update_normalizes_phone(self, client, filled_session):
        data = client.get(f"/booking/sessions/{filled_session}").json()

        assert data["form"]["whatsapp"] == "+919876543210"
        assert data["form"]["time_slot"] == "18:00"

    def test_form_update_rejects_malformed_phone(self, client, session_id):
        response = client.patch(f"/booking/sessions/{session_id}/form", json={"whatsapp": "123"})

        assert response.status_code == 422

    def test_date_change_clears_slot(self, client, filled_session):
        response = client.patch(
            f"/booking/sessions/{filled_session}/form",
            json={"appointment_date": TOMORROW.replace(day=20).isoformat()},
        )

        assert response.json()["form"]["time_slot"] == ""

    def test_session_slots(self, client, filled_session):
        response = client.get(f"/booking/sessions/{filled_session}/slots")

        data = response.json()
        assert data["stale"] is False
        assert len(data["slots"]) == 18
        assert len(client.get(f"/booking/sessions/{filled_session}").json()["slots"]) == 18

    def test_session_slots_without_date(self, client, session_id):
        data = client.get(f"/booking/sessions/{session_id}/slots").json()

        assert data["slots"] == []
        assert data["appointment_date"] is None

    def test_upload_and_remove_attachment(self, client, session_id):
        response = client.post(
            f"/booking/sessions/{session_id}/attachments",
            files=[("files", ("report.pdf", b"%PDF-1.4", "application/pdf"))],
        )

        assert response.status_code == 200
        assert response.json()["form"]["attachments"][0]["filename"] == "report.pdf"

        response = client.delete(f"/booking/sessions/{session_id}/attachments/0")
        assert response.json()["form"]["attachments"] == []

    def test_upload_rejects_other_types(self, client, session_id):
        response = client.post(
            f"/booking/sessions/{session_id}/attachments",
            files=[("files", ("notes.txt", b"hello", "text/plain"))],
        )

        assert response.status_code == 422
        assert response.json()["detail"]["field"] == "attachments"


class TestPaymentStep:
    def test_validation_error_reports_field(self, client, session_id):
        client.patch(f"/booking/sessions/{session_id}/form", json={"name": "Asha"})

        response = client.post(f"/booking/sessions/{session_id}/payment", json={"turnstile_token": "tok"})

        assert response.status_code == 422
        detail = response.json()["detail"]
        assert detail["field"] == "age"
        assert detail["error_type"] == "validation"

    def test_verification_failure_is_403(self, client, filled_session, verifier):
        verifier.result = TurnstileResult(success=False, error_codes=["timeout-or-duplicate"])

        response = client.post(f"/booking/sessions/{filled_session}/payment", json={"turnstile_token": "old"})

        assert response.status_code == 403
        assert response.json()["detail"]["error_type"] == "verification"

    def test_moves_to_payment(self, client, payment_session, verifier):
        data = client.get(f"/booking/sessions/{payment_session}").json()

        assert data["stage"] == "payment"
        assert data["verified"] is True
        assert verifier.calls == ["tok"]

    def test_form_locked_during_payment(self, client, payment_session):
        response = client.patch(f"/booking/sessions/{payment_session}/form", json={"name": "Ravi"})

        assert response.status_code == 409
        assert response.json()["detail"]["error_type"] == "invalid_transition"

    def test_payment_link(self, client, payment_session):
        response = client.get(f"/booking/sessions/{payment_session}/payment-link")

        data = response.json()
        assert data["amount"] == 150
        assert data["upi_link"].startswith("upi://pay?pa=")
        assert "am=150" in data["upi_link"]
        assert f"tid={data['transaction_id']}" in data["upi_link"]

    def test_payment_link_requires_payment_step(self, client, filled_session):
        response = client.get(f"/booking/sessions/{filled_session}/payment-link")

        assert response.status_code == 409

    def test_back_returns_to_form(self, client, payment_session):
        response = client.post(f"/booking/sessions/{payment_session}/back")

        assert response.json()["stage"] == "form"
        assert response.json()["form"]["time_slot"] == "18:00"


class TestConfirmStep:
    def test_pay_later_end_to_end(self, client, payment_session, db, notifier):
        response = client.post(
            f"/booking/sessions/{payment_session}/confirm", json={"payment_method": "pay-later"}
        )

        assert response.status_code == 200
        data = response.json()
        assert data["reservation"]["status"] == "pending"
        assert data["reservation"]["time_slot"] == "18:00"
        assert data["notification_sent"] is True
        assert data["session"]["stage"] == "confirmation"
        assert "booked for 2026-10-19 at 18:00" in data["message"]
        assert db.query(Reservation).count() == 1
        assert notifier.sent == [data["reservation"]["id"]]

    def test_upi_requires_screenshot(self, client, payment_session):
        response = client.post(f"/booking/sessions/{payment_session}/confirm", json={"payment_method": "upi"})

        assert response.status_code == 422
        assert response.json()["detail"]["message"] == "Payment screenshot required"

    def test_upi_with_screenshot(self, client, payment_session, storage):
        client.post(
            f"/booking/sessions/{payment_session}/attachments",
            files=[("files", ("paid.jpg", b"jpeg-bytes", "image/jpeg"))],
        )

        response = client.post(f"/booking/sessions/{payment_session}/confirm", json={"payment_method": "upi"})

        assert response.status_code == 200
        assert list(storage.objects.values()) == [b"jpeg-bytes"]

    def test_slot_filled_meanwhile(self, client, payment_session, make_reservation):
        make_reservation(slot_ordinal=1)
        make_reservation(slot_ordinal=2)

        response = client.post(
            f"/booking/sessions/{payment_session}/confirm", json={"payment_method": "pay-later"}
        )

        assert response.status_code == 409
        assert response.json()["detail"]["error_type"] == "slot_full"
        session = client.get(f"/booking/sessions/{payment_session}").json()
        assert session["stage"] == "form"
        assert session["form"]["time_slot"] == ""

    def test_notification_failure_softens_message(self, client, payment_session, notifier):
        notifier.fail = True

        response = client.post(
            f"/booking/sessions/{payment_session}/confirm", json={"payment_method": "pay-later"}
        )

        assert response.status_code == 200
        assert response.json()["notification_sent"] is False
        assert "could not send the confirmation email" in response.json()["message"]

    def test_message_uses_language_cookie(self, client, payment_session):
        client.cookies.set("lang", "mr")

        response = client.post(
            f"/booking/sessions/{payment_session}/confirm", json={"payment_method": "pay-later"}
        )

        assert "बुक झाला" in response.json()["message"]

    def test_dismiss_starts_fresh(self, client, payment_session):
        client.post(f"/booking/sessions/{payment_session}/confirm", json={"payment_method": "pay-later"})

        response = client.post(f"/booking/sessions/{payment_session}/dismiss")

        data = response.json()
        assert data["stage"] == "form"
        assert data["form"]["name"] == ""
        assert data["reservation_id"] is None

    def test_confirmed_booking_reads_back_from_admin(self, client, payment_session, monkeypatch):
        monkeypatch.setattr(config, "ADMIN_API_TOKEN", "admin-secret")
        confirmed = client.post(
            f"/booking/sessions/{payment_session}/confirm", json={"payment_method": "pay-later"}
        ).json()

        response = client.get(
            f"/admin/reservations/{confirmed['reservation']['id']}",
            headers={"Authorization": "Bearer admin-secret"},
        )

        assert response.status_code == 200
        stored = response.json()
        assert stored["patient_name"] == "Asha Patil"
        assert stored["age"] == "34"
        assert stored["gender"] == "female"
        assert stored["whatsapp"] == "+919876543210"
        assert stored["email"] == "asha@example.com"
        assert stored["reason"] == "Recurring headache"
        assert stored["consultation_type"] == "clinic"
        assert stored["service_type"] == "general-physician"
        assert stored["appointment_date"] == TOMORROW.isoformat()
        assert stored["time_slot"] == "18:00"
        assert stored["status"] == "pending"
        assert stored["payment_method"] == "pay-later"

    def test_slot_elapsed_before_confirm(self, client, payment_session, db):
        client.app.dependency_overrides[booking_router.get_clinic_now] = lambda: datetime(2026, 10, 20, 9, 0)

        response = client.post(
            f"/booking/sessions/{payment_session}/confirm", json={"payment_method": "pay-later"}
        )

        assert response.status_code == 422
        assert response.json()["detail"]["field"] == "time_slot"
        session = client.get(f"/booking/sessions/{payment_session}").json()
        assert session["stage"] == "form"
        assert session["form"]["time_slot"] == ""
        assert db.query(Reservation).count() == 0

    def test_confirm_twice_is_rejected(self, client, payment_session):
        client.post(f"/booking/sessions/{payment_session}/confirm", json={"payment_method": "pay-later"})

        response = client.post(
            f"/booking/sessions/{payment_session}/confirm", json={"payment_method": "pay-later"}
        )

        assert response.status_code == 409


class TestLanguagePreference:
    def test_default_is_english(self, client):
        assert client.get("/preferences/language").json() == {"language": "en"}

    def test_update_persists_cookie(self, client):
        response = client.put("/preferences/language", json={"language": "hi"})

        assert response.status_code == 200
        assert response.cookies.get("lang") == "hi"
        assert client.get("/preferences/language").json() == {"language": "hi"}

    def test_unknown_language_rejected(self, client):
        assert client.put("/preferences/language", json={"language": "fr"}).status_code == 422
