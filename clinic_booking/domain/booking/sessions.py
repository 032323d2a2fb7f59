"""
In-memory booking sessions.

Each patient browser holds one session id. The session owns the in-progress
form, the workflow stage, the UPI transaction id and the most recent slot list
for the selected date. Sessions expire after BOOKING_SESSION_TTL seconds of
inactivity and are not shared across processes.
"""

import logging
import secrets
import time
from dataclasses import dataclass
from datetime import date
from threading import Lock
from typing import Optional

from ...config import BOOKING_SESSION_TTL
from .capacity import SlotView
from .exceptions import SessionNotFoundError
from .form import BookingForm
from .payments import generate_transaction_id
from .slots import ConsultationMode
from .workflow import BookingWorkflow

logger = logging.getLogger(__name__)

SESSION_CLEANUP_INTERVAL = 60


@dataclass(frozen=True)
class SlotRefresh:
    """Identifies the selection a slot fetch was started for"""

    appointment_date: date
    consultation_type: ConsultationMode
    generation: int


class BookingSession:
    def __init__(self, session_id: str, workflow: Optional[BookingWorkflow] = None):
        self.id = session_id
        self.workflow = workflow or BookingWorkflow()
        self.transaction_id = generate_transaction_id()
        self.selection_generation = 0
        self.slot_views: list[SlotView] = []
        self.last_seen = time.time()

    @property
    def form(self) -> BookingForm:
        return self.workflow.form

    def touch(self) -> None:
        self.last_seen = time.time()

    def update_form(self, **changes) -> None:
        """Apply a form edit, invalidating in-flight slot fetches when the selection changes"""
        form = self.form
        previous = (form.appointment_date, form.consultation_type)
        form.update(**changes)
        if (form.appointment_date, form.consultation_type) != previous:
            self.selection_generation += 1
            self.slot_views = []

    def begin_slot_refresh(self) -> Optional[SlotRefresh]:
        """Start a slot fetch for the current selection; None when no date is chosen"""
        if self.form.appointment_date is None:
            return None
        return SlotRefresh(
            appointment_date=self.form.appointment_date,
            consultation_type=self.form.consultation_type,
            generation=self.selection_generation,
        )

    def apply_slot_refresh(self, refresh: SlotRefresh, views: list[SlotView]) -> bool:
        """
        Store fetched slots unless the selection moved on while they were loading.

        Returns:
            True if the views were applied, False if they were stale and discarded
        """
        if (
            refresh.generation != self.selection_generation
            or refresh.appointment_date != self.form.appointment_date
            or refresh.consultation_type != self.form.consultation_type
        ):
            logger.debug(f"🗑️ Discarding stale slot list for {refresh.appointment_date} in session {self.id}")
            return False
        self.slot_views = views
        return True

    def reset(self) -> None:
        """Start over after a finished booking with a fresh transaction id"""
        self.transaction_id = generate_transaction_id()
        self.selection_generation += 1
        self.slot_views = []

    def to_dict(self) -> dict:
        workflow = self.workflow
        return {
            "id": self.id,
            "stage": workflow.stage.value,
            "form": self.form.to_dict(),
            "transaction_id": self.transaction_id,
            "verified": workflow.verification_valid,
            "payment_method": workflow.payment_method.value if workflow.payment_method else None,
            "reservation_id": workflow.result.reservation.id if workflow.result else None,
            "slots": [view.to_dict() for view in self.slot_views],
        }


class BookingSessionStore:
    """Thread-safe session registry with idle expiry"""

    def __init__(self, ttl_seconds: int = BOOKING_SESSION_TTL):
        self.ttl_seconds = ttl_seconds
        self._sessions: dict[str, BookingSession] = {}
        self._lock = Lock()
        self._last_cleanup = 0.0

    def __len__(self) -> int:
        return len(self._sessions)

    def create(self) -> BookingSession:
        self._cleanup_expired()
        session = BookingSession(secrets.token_urlsafe(24))
        with self._lock:
            self._sessions[session.id] = session
        logger.info(f"🆕 Booking session created ({len(self._sessions)} active)")
        return session

    def get(self, session_id: str) -> BookingSession:
        """
        Raises:
            SessionNotFoundError: Unknown or expired session id
        """
        self._cleanup_expired()
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                raise SessionNotFoundError(session_id)
            if time.time() - session.last_seen >= self.ttl_seconds:
                del self._sessions[session_id]
                raise SessionNotFoundError(session_id)
            session.touch()
            return session

    def _cleanup_expired(self) -> None:
        current_time = time.time()
        if current_time - self._last_cleanup < SESSION_CLEANUP_INTERVAL:
            return

        with self._lock:
            expired = [
                sid
                for sid, session in self._sessions.items()
                if current_time - session.last_seen >= self.ttl_seconds
            ]
            for sid in expired:
                del self._sessions[sid]
            self._last_cleanup = current_time

        if expired:
            logger.debug(f"🧹 Cleaned up {len(expired)} expired booking sessions")


_session_store: Optional[BookingSessionStore] = None


def get_session_store() -> BookingSessionStore:
    """FastAPI dependency returning the process-wide session store"""
    global _session_store
    if _session_store is None:
        _session_store = BookingSessionStore()
    return _session_store
