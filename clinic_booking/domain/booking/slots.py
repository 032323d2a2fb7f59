"""
Slot generation for the clinic and online consultation windows.

Slots are 10-minute labels ("HH:MM") inside a fixed window per consultation
mode. For today's date, slots starting at or before the current time are
dropped so a patient can never pick a time that has already passed.
"""

from dataclasses import dataclass
from datetime import date, datetime, time
from enum import Enum
from typing import Optional
from zoneinfo import ZoneInfo

from ...config import CLINIC_TIMEZONE

SLOT_MINUTES = 10


class ConsultationMode(str, Enum):
    ONLINE = "online"
    CLINIC = "clinic"


@dataclass(frozen=True)
class ConsultationWindow:
    start: time
    end: time  # exclusive

    @property
    def start_minutes(self) -> int:
        return self.start.hour * 60 + self.start.minute

    @property
    def end_minutes(self) -> int:
        return self.end.hour * 60 + self.end.minute

    def contains(self, minutes: int) -> bool:
        return self.start_minutes <= minutes < self.end_minutes


WINDOWS = {
    ConsultationMode.CLINIC: ConsultationWindow(start=time(18, 0), end=time(21, 0)),
    ConsultationMode.ONLINE: ConsultationWindow(start=time(9, 0), end=time(22, 0)),
}


def clinic_now() -> datetime:
    """Current wall-clock time in the clinic's timezone (naive)"""
    return datetime.now(ZoneInfo(CLINIC_TIMEZONE)).replace(tzinfo=None)


def format_slot(minutes: int) -> str:
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def parse_slot(label: str) -> int:
    """Parse an "HH:MM" label into minutes since midnight"""
    hour, minute = label.split(":")
    return int(hour) * 60 + int(minute)


def generate_time_slots(
    mode: ConsultationMode,
    on_date: Optional[date] = None,
    now: Optional[datetime] = None,
) -> list[str]:
    """
    Generate the bookable time labels for a consultation mode.

    Args:
        mode: Consultation mode selecting the window
        on_date: Appointment date; when it is today, elapsed slots are removed
        now: Reference wall-clock time (clinic local); defaults to the current time

    Returns:
        Ordered list of "HH:MM" labels, possibly empty
    """
    window = WINDOWS[ConsultationMode(mode)]
    now = now or clinic_now()

    cutoff = None
    if on_date is not None and on_date == now.date():
        cutoff = now.hour * 60 + now.minute

    slots = []
    for minutes in range(window.start_minutes, window.end_minutes, SLOT_MINUTES):
        if cutoff is not None and minutes <= cutoff:
            continue
        slots.append(format_slot(minutes))
    return slots


def clinic_status(now: Optional[datetime] = None) -> str:
    """Return "open" during clinic hours, "online" during online-only hours, else "closed" """
    now = now or clinic_now()
    minutes = now.hour * 60 + now.minute

    if WINDOWS[ConsultationMode.CLINIC].contains(minutes):
        return "open"
    if WINDOWS[ConsultationMode.ONLINE].contains(minutes):
        return "online"
    return "closed"
