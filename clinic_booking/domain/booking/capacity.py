"""
Capacity tracking for appointment slots.

Occupancy is read fresh from the database on every call; nothing is cached
across dates. The tracker only informs the slot picker. The hard limit is
enforced again at insert time by the reservation writer.
"""

import logging
from collections import Counter
from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional

from sqlalchemy.orm import Session

from ...config import SLOT_CAPACITY
from .repository import ReservationRepository
from .slots import ConsultationMode, generate_time_slots

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SlotView:
    time: str
    booked_count: int
    capacity: int

    @property
    def available_count(self) -> int:
        return max(self.capacity - self.booked_count, 0)

    @property
    def is_full(self) -> bool:
        return self.booked_count >= self.capacity

    def to_dict(self) -> dict:
        return {
            "time": self.time,
            "booked_count": self.booked_count,
            "available_count": self.available_count,
            "is_full": self.is_full,
        }


def build_slot_views(
    slots: list[str], occupancy: dict[str, int], capacity: int
) -> list[SlotView]:
    return [SlotView(time=slot, booked_count=occupancy.get(slot, 0), capacity=capacity) for slot in slots]


class CapacityTracker:
    """Computes per-slot occupancy against the capacity ceiling"""

    def __init__(self, db: Session, capacity: int = SLOT_CAPACITY):
        self.db = db
        self.capacity = capacity
        self.repo = ReservationRepository()

    def occupancy(self, appointment_date: date) -> dict[str, int]:
        """Map of slot label to the number of non-cancelled reservations on that date"""
        reservations = self.repo.list_active_for_date(self.db, appointment_date)
        counts = Counter(r.time_slot for r in reservations)
        logger.debug(
            f"📅 Occupancy for {appointment_date}: {len(reservations)} active reservations "
            f"across {len(counts)} slots"
        )
        return dict(counts)

    def slot_views(
        self,
        mode: ConsultationMode,
        appointment_date: date,
        now: Optional[datetime] = None,
    ) -> list[SlotView]:
        """Generated slots for the mode and date, annotated with occupancy"""
        slots = generate_time_slots(mode, appointment_date, now)
        if not slots:
            return []
        return build_slot_views(slots, self.occupancy(appointment_date), self.capacity)
