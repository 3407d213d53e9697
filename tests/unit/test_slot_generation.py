"""
Unit tests for slot generation from sanitized intervals.
"""

import pytest

from clinic_scheduler.models.clinic import Interval
from clinic_scheduler.services.slot_service import generate_slots


class TestGenerateSlots:
    """Test generate_slots."""

    def test_closed_day_has_no_slots(self):
        assert generate_slots([], 30) == []

    def test_one_hour_gives_two_half_hour_slots(self):
        assert generate_slots([Interval(start="09:00", end="10:00")], 30) == ["09:00", "09:30"]

    def test_full_working_day(self):
        slots = generate_slots([Interval(start="09:00", end="17:00")], 30)

        assert len(slots) == 16
        assert slots[0] == "09:00"
        assert slots[-1] == "16:30"

    def test_slot_must_fit_before_close(self):
        assert generate_slots([Interval(start="09:00", end="10:15")], 30) == ["09:00", "09:30"]
        assert generate_slots([Interval(start="09:00", end="09:20")], 30) == []

    def test_custom_duration(self):
        assert generate_slots([Interval(start="09:00", end="11:00")], 45) == ["09:00", "09:45"]

    def test_split_shift(self):
        intervals = [Interval(start="09:00", end="10:00"), Interval(start="15:00", end="16:00")]

        assert generate_slots(intervals, 30) == ["09:00", "09:30", "15:00", "15:30"]

    def test_overlapping_intervals_do_not_duplicate_slots(self):
        intervals = [Interval(start="10:00", end="11:00"), Interval(start="09:00", end="10:30")]

        assert generate_slots(intervals, 30) == ["09:00", "09:30", "10:00", "10:30"]

    def test_default_duration_is_thirty_minutes(self):
        assert generate_slots([Interval(start="13:00", end="14:00")]) == ["13:00", "13:30"]

    @pytest.mark.parametrize("duration", [0, -30])
    def test_non_positive_duration_is_rejected(self, duration):
        with pytest.raises(ValueError):
            generate_slots([Interval(start="09:00", end="10:00")], duration)
