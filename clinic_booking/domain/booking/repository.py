"""Reservation repository - Database operations for appointments"""

from datetime import date
from typing import Optional

from sqlalchemy.orm import Session

from ...models import Reservation

CANCELLED = "cancelled"


class ReservationRepository:
    """Repository for reservation database operations"""

    @staticmethod
    def list_active_for_date(db: Session, appointment_date: date) -> list[Reservation]:
        """All reservations for a date whose status is not cancelled"""
        return (
            db.query(Reservation)
            .filter(
                Reservation.appointment_date == appointment_date,
                Reservation.status != CANCELLED,
            )
            .all()
        )

    @staticmethod
    def active_ordinals(db: Session, appointment_date: date, time_slot: str) -> set[int]:
        """Capacity ordinals currently held by non-cancelled reservations of one slot"""
        rows = (
            db.query(Reservation.slot_ordinal)
            .filter(
                Reservation.appointment_date == appointment_date,
                Reservation.time_slot == time_slot,
                Reservation.status != CANCELLED,
            )
            .all()
        )
        return {row[0] for row in rows if row[0] is not None}

    @staticmethod
    def create_reservation(db: Session, **reservation_data) -> Reservation:
        """Add a reservation and flush it; the caller owns the commit"""
        reservation = Reservation(**reservation_data)
        db.add(reservation)
        db.flush()
        return reservation

    @staticmethod
    def get_reservation(db: Session, reservation_id: str) -> Optional[Reservation]:
        return db.query(Reservation).filter(Reservation.id == reservation_id).first()

    @staticmethod
    def list_reservations(
        db: Session,
        appointment_date: Optional[date] = None,
        status: Optional[str] = None,
    ) -> list[Reservation]:
        """List reservations ordered by appointment date and slot"""
        query = db.query(Reservation)

        if appointment_date:
            query = query.filter(Reservation.appointment_date == appointment_date)

        if status and status != "all":
            query = query.filter(Reservation.status == status)

        return query.order_by(
            Reservation.appointment_date.asc(), Reservation.time_slot.asc()
        ).all()

    @staticmethod
    def update_status(db: Session, reservation: Reservation, status: str) -> Reservation:
        """Update a reservation's status, releasing its capacity ordinal on cancellation"""
        reservation.status = status
        if status == CANCELLED:
            reservation.slot_ordinal = None

        db.commit()
        db.refresh(reservation)
        return reservation
