"""Booking router - FastAPI endpoints for the public appointment booking flow"""

import logging
from datetime import date, datetime
from typing import Optional

from fastapi import APIRouter, Depends, File, Query, Request, Response, UploadFile, status
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from ...config import BOOKING_RATE_LIMIT, BOOKING_RATE_WINDOW, SESSION_RATE_LIMIT
from ...database import get_db
from ...i18n import LanguageContext, get_language_context, persist_language
from ...notifications import NotificationClient
from ...rate_limiter import create_rate_limiter, get_client_ip
from ...storage import ObjectStorage
from ...turnstile import verify_turnstile
from .capacity import CapacityTracker
from .catalog import list_services
from .exceptions import InvalidTransitionError
from .form import Attachment
from .payments import build_upi_link
from .schemas import (
    ClinicStatusResponse,
    ConfirmRequest,
    ConfirmResponse,
    FormUpdate,
    LanguagePreference,
    PaymentLinkResponse,
    PaymentRequest,
    ReservationSummary,
    ServiceResponse,
    SessionResponse,
    SlotListResponse,
)
from .sessions import BookingSession, BookingSessionStore, get_session_store
from .slots import ConsultationMode, clinic_now, clinic_status
from .workflow import BookingStage
from .writer import ReservationWriter

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/booking", tags=["Booking"])
public_router = APIRouter(tags=["Clinic"])

booking_rate_limit = create_rate_limiter(
    limit=BOOKING_RATE_LIMIT, window_seconds=BOOKING_RATE_WINDOW, key_prefix="booking_confirm"
)
session_rate_limit = create_rate_limiter(
    limit=SESSION_RATE_LIMIT, window_seconds=3600, key_prefix="booking_session"
)

# Attachments can change until the booking is handed to the writer
ATTACHMENT_STAGES = (BookingStage.FORM, BookingStage.PAYMENT)

_object_storage: Optional[ObjectStorage] = None


# ============================================================================
# DEPENDENCIES
# ============================================================================


def get_object_storage() -> ObjectStorage:
    """Shared R2 storage; the boto3 client is created on first upload"""
    global _object_storage
    if _object_storage is None:
        _object_storage = ObjectStorage()
    return _object_storage


def get_notification_client() -> NotificationClient:
    return NotificationClient()


def get_human_verifier():
    """Dependency injection for the Turnstile verifier"""
    return verify_turnstile


def get_clinic_now() -> datetime:
    return clinic_now()


def get_capacity_tracker(db: Session = Depends(get_db)) -> CapacityTracker:
    return CapacityTracker(db)


def get_reservation_writer(
    db: Session = Depends(get_db),
    storage: ObjectStorage = Depends(get_object_storage),
    notifier: NotificationClient = Depends(get_notification_client),
) -> ReservationWriter:
    return ReservationWriter(db, storage, notifier)


def get_booking_session(
    session_id: str, store: BookingSessionStore = Depends(get_session_store)
) -> BookingSession:
    return store.get(session_id)


# ============================================================================
# CATALOG AND AVAILABILITY
# ============================================================================


@router.get("/services", response_model=list[ServiceResponse])
async def get_services():
    """List bookable services in display order"""
    return [service.to_dict() for service in list_services()]


@router.get("/slots", response_model=SlotListResponse)
async def get_slots(
    mode: ConsultationMode = Query(ConsultationMode.CLINIC),
    appointment_date: date = Query(..., alias="date"),
    tracker: CapacityTracker = Depends(get_capacity_tracker),
    now: datetime = Depends(get_clinic_now),
):
    """Slots for a date and consultation mode with their occupancy"""
    views = await run_in_threadpool(tracker.slot_views, mode, appointment_date, now)
    return SlotListResponse(
        appointment_date=appointment_date,
        mode=mode,
        slots=[view.to_dict() for view in views],
    )


# ============================================================================
# BOOKING SESSIONS
# ============================================================================


@router.post("/sessions", response_model=SessionResponse, status_code=status.HTTP_201_CREATED)
async def create_session(
    store: BookingSessionStore = Depends(get_session_store),
    _: None = Depends(session_rate_limit),
):
    """Start a new booking"""
    return store.create().to_dict()


@router.get("/sessions/{session_id}", response_model=SessionResponse)
async def get_session(session: BookingSession = Depends(get_booking_session)):
    return session.to_dict()


@router.patch("/sessions/{session_id}/form", response_model=SessionResponse)
async def update_form(
    data: FormUpdate,
    session: BookingSession = Depends(get_booking_session),
):
    """Apply a partial form edit. Only allowed on the form step."""
    if session.workflow.stage != BookingStage.FORM:
        raise InvalidTransitionError(session.workflow.stage.value, "edit the form")

    session.update_form(**data.model_dump(exclude_unset=True))
    return session.to_dict()


@router.get("/sessions/{session_id}/slots", response_model=SlotListResponse)
async def refresh_session_slots(
    session: BookingSession = Depends(get_booking_session),
    tracker: CapacityTracker = Depends(get_capacity_tracker),
    now: datetime = Depends(get_clinic_now),
):
    """
    Reload slots for the session's selected date and mode.

    If the patient changes the date while this request is loading, the result
    is returned with stale=true and is not stored on the session.
    """
    refresh = session.begin_slot_refresh()
    if refresh is None:
        return SlotListResponse(mode=session.form.consultation_type, slots=[])

    views = await run_in_threadpool(
        tracker.slot_views, refresh.consultation_type, refresh.appointment_date, now
    )
    applied = session.apply_slot_refresh(refresh, views)
    return SlotListResponse(
        appointment_date=refresh.appointment_date,
        mode=refresh.consultation_type,
        slots=[view.to_dict() for view in views],
        stale=not applied,
    )


@router.post("/sessions/{session_id}/attachments", response_model=SessionResponse)
async def upload_attachments(
    files: list[UploadFile] = File(...),
    session: BookingSession = Depends(get_booking_session),
):
    """Attach medical documents or a payment screenshot (held until the booking is confirmed)"""
    if session.workflow.stage not in ATTACHMENT_STAGES:
        raise InvalidTransitionError(session.workflow.stage.value, "add attachments")

    for upload in files:
        content = await upload.read()
        session.form.add_attachment(
            Attachment(
                filename=upload.filename or "",
                content_type=upload.content_type or "",
                content=content,
            )
        )
        logger.info(f"📎 Attachment {upload.filename} added to session ({len(content)} bytes)")

    return session.to_dict()


@router.delete("/sessions/{session_id}/attachments/{index}", response_model=SessionResponse)
async def remove_attachment(
    index: int,
    session: BookingSession = Depends(get_booking_session),
):
    if session.workflow.stage not in ATTACHMENT_STAGES:
        raise InvalidTransitionError(session.workflow.stage.value, "remove attachments")

    session.form.remove_attachment(index)
    return session.to_dict()


# ============================================================================
# WORKFLOW TRANSITIONS
# ============================================================================


@router.post("/sessions/{session_id}/payment", response_model=SessionResponse)
async def proceed_to_payment(
    request: Request,
    data: PaymentRequest,
    session: BookingSession = Depends(get_booking_session),
    tracker: CapacityTracker = Depends(get_capacity_tracker),
    verifier=Depends(get_human_verifier),
    now: datetime = Depends(get_clinic_now),
):
    """Validate the form and the Turnstile token, then move to the payment step"""
    await session.workflow.proceed_to_payment(
        data.turnstile_token,
        verifier,
        tracker,
        now,
        client_ip=get_client_ip(request),
    )
    return session.to_dict()


@router.get("/sessions/{session_id}/payment-link", response_model=PaymentLinkResponse)
async def get_payment_link(session: BookingSession = Depends(get_booking_session)):
    """UPI deep link for the selected service; payment is confirmed by screenshot"""
    workflow = session.workflow
    if workflow.stage != BookingStage.PAYMENT:
        raise InvalidTransitionError(workflow.stage.value, "open the payment link")

    service = workflow.snapshot.service
    return PaymentLinkResponse(
        upi_link=build_upi_link(service.price, service.name, session.transaction_id),
        amount=service.price,
        service_name=service.name,
        transaction_id=session.transaction_id,
    )


@router.post("/sessions/{session_id}/back", response_model=SessionResponse)
async def back_to_form(session: BookingSession = Depends(get_booking_session)):
    session.workflow.back()
    return session.to_dict()


@router.post("/sessions/{session_id}/confirm", response_model=ConfirmResponse)
async def confirm_booking(
    data: ConfirmRequest,
    session: BookingSession = Depends(get_booking_session),
    writer: ReservationWriter = Depends(get_reservation_writer),
    lang: LanguageContext = Depends(get_language_context),
    now: datetime = Depends(get_clinic_now),
    _: None = Depends(booking_rate_limit),
):
    """Store the reservation and send confirmations"""
    result = await session.workflow.confirm(data.payment_method, writer, now)
    return ConfirmResponse(
        reservation=ReservationSummary.model_validate(result.reservation),
        message=result.message(lang),
        notification_sent=result.notification_sent,
        failed_uploads=result.failed_uploads,
        session=session.to_dict(),
    )


@router.post("/sessions/{session_id}/dismiss", response_model=SessionResponse)
async def dismiss_confirmation(session: BookingSession = Depends(get_booking_session)):
    """Close the confirmation and start a fresh booking in the same session"""
    session.workflow.dismiss()
    session.reset()
    return session.to_dict()


# ============================================================================
# CLINIC STATUS AND PREFERENCES
# ============================================================================


@public_router.get("/clinic/status", response_model=ClinicStatusResponse)
async def get_clinic_status(now: datetime = Depends(get_clinic_now)):
    """open during clinic hours, online while only teleconsultations run, closed otherwise"""
    return ClinicStatusResponse(status=clinic_status(now), now=now)


@public_router.get("/preferences/language", response_model=LanguagePreference)
async def get_language(lang: LanguageContext = Depends(get_language_context)):
    return LanguagePreference(language=lang.language)


@public_router.put("/preferences/language", response_model=LanguagePreference)
async def set_language(data: LanguagePreference, response: Response):
    lang = persist_language(response, data.language)
    return LanguagePreference(language=lang.language)
