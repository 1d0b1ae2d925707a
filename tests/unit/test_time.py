"""Tests for time arithmetic helpers."""
import pytest
from datetime import datetime, timedelta, timezone


class TestFormatMinutes:
    """Tests for minute formatting."""

    @pytest.mark.parametrize(
        "minutes, expected",
        [
            (0, "0h"),
            (1, "1m"),
            (45, "45m"),
            (59, "59m"),
            (60, "1h00m"),
            (90, "1h30m"),
            (125, "2h05m"),
            (600, "10h00m"),
        ],
    )
    def test_format_minutes(self, minutes, expected):
        """Test display format for minute totals."""
        from timetracker.utils.time import format_minutes

        assert format_minutes(minutes) == expected

    def test_format_minutes_negative(self):
        """Test negative totals are rejected."""
        from timetracker.utils.time import format_minutes

        with pytest.raises(ValueError):
            format_minutes(-5)


class TestFormatHoursDecimal:
    """Tests for fractional hour formatting."""

    def test_zero(self):
        """Test zero hours."""
        from timetracker.utils.time import format_hours_decimal

        assert format_hours_decimal(0) == "0h"

    def test_less_than_an_hour(self):
        """Test fractional hours below one hour show minutes only."""
        from timetracker.utils.time import format_hours_decimal

        assert format_hours_decimal(0.75) == "45m"

    def test_hours_and_minutes(self):
        """Test whole hours with a minute remainder."""
        from timetracker.utils.time import format_hours_decimal

        assert format_hours_decimal(1.5) == "1h30m"
        assert format_hours_decimal(2 + 5 / 60) == "2h05m"

    def test_rounding_to_sixty_carries_into_hour(self):
        """Test minutes rounding up to 60 roll over to the next hour."""
        from timetracker.utils.time import format_hours_decimal

        assert format_hours_decimal(1.9999) == "2h00m"
        assert format_hours_decimal(0.9999) == "1h00m"

    def test_tiny_value_rounds_to_zero(self):
        """Test a value rounding to zero minutes shows zero."""
        from timetracker.utils.time import format_hours_decimal

        assert format_hours_decimal(0.001) == "0h"


class TestDurationMinutes:
    """Tests for entry durations."""

    def test_truncates_seconds(self):
        """Test leftover seconds are truncated, not rounded."""
        from timetracker.utils.time import duration_minutes

        start = datetime(2025, 1, 1, 9, 0, 0)
        assert duration_minutes(start, start + timedelta(minutes=30, seconds=59)) == 30

    def test_zero_length(self):
        """Test an under-a-minute interval is zero minutes."""
        from timetracker.utils.time import duration_minutes

        start = datetime(2025, 1, 1, 9, 0, 0)
        assert duration_minutes(start, start + timedelta(seconds=20)) == 0

    def test_negative_interval_rejected(self):
        """Test an interval ending before it starts is rejected."""
        from timetracker.utils.time import duration_minutes

        start = datetime(2025, 1, 1, 9, 0, 0)
        with pytest.raises(ValueError):
            duration_minutes(start, start - timedelta(minutes=1))

    def test_mixed_aware_and_naive(self):
        """Test aware UTC and naive stored values can be mixed."""
        from timetracker.utils.time import duration_minutes

        start = datetime(2025, 1, 1, 9, 0, tzinfo=timezone.utc)
        end = datetime(2025, 1, 1, 10, 15)
        assert duration_minutes(start, end) == 75


class TestLocalClockPreservation:
    """Tests for the stored-time convention."""

    @pytest.mark.parametrize("offset_hours", [-3, 0, 5.5, 9])
    def test_wall_clock_fields_survive(self, offset_hours):
        """Test UTC fields of the stored instant equal the local wall clock."""
        from timetracker.utils.time import local_to_utc_preserving_clock

        local_tz = timezone(timedelta(hours=offset_hours))
        local = datetime(2025, 3, 10, 23, 45, tzinfo=local_tz)

        stored = local_to_utc_preserving_clock(local)
        as_utc = stored.astimezone(timezone.utc)

        assert (as_utc.year, as_utc.month, as_utc.day) == (2025, 3, 10)
        assert (as_utc.hour, as_utc.minute) == (23, 45)

    def test_naive_input(self):
        """Test naive wall-clock input keeps its fields."""
        from timetracker.utils.time import local_to_utc_preserving_clock

        stored = local_to_utc_preserving_clock(datetime(2025, 3, 10, 0, 30))

        assert stored.tzinfo == timezone.utc
        assert (stored.day, stored.hour, stored.minute) == (10, 0, 30)

    def test_to_stored_is_naive(self):
        """Test the storage form is naive with local fields."""
        from timetracker.utils.time import to_stored

        brt = timezone(timedelta(hours=-3))
        stored = to_stored(datetime(2025, 3, 10, 21, 0, tzinfo=brt))

        assert stored == datetime(2025, 3, 10, 21, 0)

    def test_format_entry_timestamp_reads_fields_directly(self):
        """Test display formatting does not re-localize."""
        from timetracker.utils.time import format_entry_timestamp, to_stored

        brt = timezone(timedelta(hours=-3))
        stored = to_stored(datetime(2025, 12, 31, 22, 5, tzinfo=brt))

        assert format_entry_timestamp(stored) == "31/12/2025 22:05"


class TestRelativeLabel:
    """Tests for relative last-activity labels."""

    NOW = datetime(2025, 6, 18, 12, 0)

    @pytest.mark.parametrize(
        "elapsed, expected",
        [
            (timedelta(minutes=0), "Agora mesmo"),
            (timedelta(minutes=59), "Agora mesmo"),
            (timedelta(minutes=61), "1 hora atrás"),
            (timedelta(hours=2), "2 horas atrás"),
            (timedelta(hours=23, minutes=59), "23 horas atrás"),
            (timedelta(hours=25), "1 dia atrás"),
            (timedelta(days=6), "6 dias atrás"),
            (timedelta(days=7), "1 semana atrás"),
            (timedelta(days=20), "2 semanas atrás"),
        ],
    )
    def test_labels(self, elapsed, expected):
        """Test label boundaries and plural suffixes."""
        from timetracker.utils.time import relative_label

        assert relative_label(self.NOW - elapsed, self.NOW) == expected

    def test_future_activity(self):
        """Test activity after now reads as just now."""
        from timetracker.utils.time import relative_label

        assert relative_label(self.NOW + timedelta(hours=3), self.NOW) == "Agora mesmo"


class TestPeriodBoundaries:
    """Tests for day/week/month starts."""

    def test_start_of_week_from_wednesday(self):
        """Test the week starts on Monday at midnight."""
        from timetracker.utils.time import start_of_week

        assert start_of_week(datetime(2025, 6, 18, 15, 30)) == datetime(2025, 6, 16)

    def test_start_of_week_from_sunday(self):
        """Test Sunday belongs to the week that started six days earlier."""
        from timetracker.utils.time import start_of_week

        assert start_of_week(datetime(2025, 6, 22, 8, 0)) == datetime(2025, 6, 16)

    def test_start_of_week_on_monday(self):
        """Test Monday is its own week start."""
        from timetracker.utils.time import start_of_week

        assert start_of_week(datetime(2025, 6, 16, 0, 0)) == datetime(2025, 6, 16)

    def test_start_of_month(self):
        """Test the first day of the month at midnight."""
        from timetracker.utils.time import start_of_month

        assert start_of_month(datetime(2025, 6, 18, 15, 30)) == datetime(2025, 6, 1)
