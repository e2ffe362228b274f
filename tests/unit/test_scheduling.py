"""Unit tests for the daily sync schedule."""
from datetime import datetime, timezone

from dropship_sync.scheduling import next_run_at

LONDON = "Europe/London"


class TestNextRunAt:
    """Tests for next_run_at."""

    def test_later_today(self):
        now = datetime(2024, 6, 1, 4, 0, tzinfo=timezone.utc)  # 05:00 BST
        run = next_run_at(now, 6, 0, LONDON)
        assert run.isoformat() == "2024-06-01T06:00:00+01:00"
        assert run.astimezone(timezone.utc).hour == 5

    def test_slot_reached_moves_to_tomorrow(self):
        """Test a slot equal to now is scheduled for the next day."""
        now = datetime(2024, 6, 1, 5, 0, tzinfo=timezone.utc)  # 06:00 BST
        run = next_run_at(now, 6, 0, LONDON)
        assert run.isoformat() == "2024-06-02T06:00:00+01:00"

    def test_keeps_wall_clock_across_dst_start(self):
        now = datetime(2024, 3, 30, 7, 0, tzinfo=timezone.utc)  # 07:00 GMT
        run = next_run_at(now, 6, 0, LONDON)
        assert run.isoformat() == "2024-03-31T06:00:00+01:00"

    def test_naive_now_taken_as_local(self):
        run = next_run_at(datetime(2024, 1, 10, 6, 30), 6, 15, LONDON)
        assert run.isoformat() == "2024-01-11T06:15:00+00:00"

    def test_other_timezone(self):
        now = datetime(2024, 1, 10, 12, 0, tzinfo=timezone.utc)
        run = next_run_at(now, 6, 0, "America/New_York")
        assert run.isoformat() == "2024-01-11T06:00:00-05:00"
