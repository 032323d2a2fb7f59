"""Reservation router - Admin endpoints for viewing and updating appointments"""

import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import require_admin
from ...database import get_db
from ...storage import ObjectStorage
from ..booking.router import get_object_storage
from .schemas import AttachmentLink, ReservationDetailResponse, ReservationResponse, StatusUpdate
from .service import ReservationService

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/admin/reservations",
    tags=["Reservations"],
    dependencies=[Depends(require_admin)],
)


def get_reservation_service(
    db: Session = Depends(get_db),
    storage: ObjectStorage = Depends(get_object_storage),
) -> ReservationService:
    """Dependency injection for ReservationService"""
    return ReservationService(db, storage)


@router.get("", response_model=list[ReservationResponse])
async def list_reservations(
    appointment_date: Optional[date] = Query(None, alias="date"),
    status: Optional[str] = Query(None),
    service: ReservationService = Depends(get_reservation_service),
):
    """List reservations, optionally for one date and/or status ("all" disables the status filter)"""
    return service.list_reservations(appointment_date, status)


@router.get("/{reservation_id}", response_model=ReservationDetailResponse)
async def get_reservation(
    reservation_id: str,
    service: ReservationService = Depends(get_reservation_service),
):
    """Get one reservation with short-lived attachment download links"""
    reservation = service.get_reservation(reservation_id)
    response = ReservationDetailResponse.model_validate(reservation)
    response.attachments = [AttachmentLink(**link) for link in service.attachment_links(reservation)]
    return response


@router.patch("/{reservation_id}/status", response_model=ReservationResponse)
async def update_reservation_status(
    reservation_id: str,
    data: StatusUpdate,
    service: ReservationService = Depends(get_reservation_service),
):
    return service.update_status(reservation_id, data.status)
