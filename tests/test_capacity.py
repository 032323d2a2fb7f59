"""Tests for slot occupancy and capacity views."""

from conftest import NOW, TOMORROW

from clinic_booking.domain.booking.capacity import CapacityTracker, SlotView, build_slot_views
from clinic_booking.domain.booking.slots import ConsultationMode


class TestSlotView:
    def test_available_count(self):
        view = SlotView(time="18:00", booked_count=1, capacity=2)

        assert view.available_count == 1
        assert view.is_full is False

    def test_full_slot(self):
        view = SlotView(time="18:00", booked_count=2, capacity=2)

        assert view.available_count == 0
        assert view.is_full is True

    def test_over_capacity_never_negative(self):
        view = SlotView(time="18:00", booked_count=3, capacity=2)

        assert view.available_count == 0
        assert view.is_full is True

    def test_build_views_defaults_to_zero(self):
        views = build_slot_views(["18:00", "18:10"], {"18:10": 2}, capacity=2)

        assert [v.booked_count for v in views] == [0, 2]
        assert [v.is_full for v in views] == [False, True]


class TestCapacityTracker:
    """Tests for CapacityTracker against the database."""

    def test_empty_date(self, db):
        assert CapacityTracker(db, capacity=2).occupancy(TOMORROW) == {}

    def test_counts_per_slot(self, db, make_reservation):
        make_reservation(time_slot="18:00", slot_ordinal=1)
        make_reservation(time_slot="18:00", slot_ordinal=2)
        make_reservation(time_slot="19:30", slot_ordinal=1)

        assert CapacityTracker(db, capacity=2).occupancy(TOMORROW) == {"18:00": 2, "19:30": 1}

    def test_cancelled_reservations_are_ignored(self, db, make_reservation):
        make_reservation(time_slot="18:00", slot_ordinal=1)
        make_reservation(time_slot="18:00", slot_ordinal=None, status="cancelled")

        tracker = CapacityTracker(db, capacity=2)
        assert tracker.occupancy(TOMORROW) == {"18:00": 1}
        assert tracker.slot_views(ConsultationMode.CLINIC, TOMORROW, NOW)[0].is_full is False

    def test_completed_reservations_still_count(self, db, make_reservation):
        make_reservation(time_slot="18:00", slot_ordinal=1, status="completed")
        make_reservation(time_slot="18:00", slot_ordinal=2, status="confirmed")

        assert CapacityTracker(db, capacity=2).slot_views(ConsultationMode.CLINIC, TOMORROW, NOW)[0].is_full is True

    def test_other_dates_do_not_count(self, db, make_reservation):
        make_reservation(appointment_date=TOMORROW.replace(day=20), time_slot="18:00")

        assert CapacityTracker(db, capacity=2).occupancy(TOMORROW) == {}

    def test_slot_views_mark_full_slots(self, db, make_reservation):
        make_reservation(time_slot="18:10", slot_ordinal=1)
        make_reservation(time_slot="18:10", slot_ordinal=2)

        views = CapacityTracker(db, capacity=2).slot_views(ConsultationMode.CLINIC, TOMORROW, NOW)
        by_time = {v.time: v for v in views}

        assert len(views) == 18
        assert by_time["18:10"].is_full is True
        assert by_time["18:00"].available_count == 2

    def test_slot_views_empty_when_window_elapsed(self, db):
        late = NOW.replace(hour=22, minute=30)

        assert CapacityTracker(db).slot_views(ConsultationMode.ONLINE, late.date(), late) == []
