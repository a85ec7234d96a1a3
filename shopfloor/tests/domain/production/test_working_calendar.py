"""
Unit Tests for the Working Calendar

Covers working-minute computation across shifts, weekends, overnight shifts
and timezones, plus parsing and validation of tenant calendar settings.
"""

from datetime import datetime, timedelta, timezone

import pytest
from hypothesis import given, settings as hypothesis_settings, strategies as st
from structlog.testing import capture_logs

from shopfloor.domain.production.value_objects.working_calendar import (
    WorkingCalendar,
    WorkShift,
    compute_working_minutes,
    normalize_work_time,
    parse_working_calendar,
    time_to_minutes,
    validate_working_calendar,
)

UTC = timezone.utc
ALL_DAYS = [0, 1, 2, 3, 4, 5, 6]


def utc(year, month, day, hour=0, minute=0, second=0):
    return datetime(year, month, day, hour, minute, second, tzinfo=UTC)


class TestTimeParsing:
    """Test HH:MM parsing helpers."""

    @pytest.mark.parametrize(
        "value,expected",
        [("08:00", 480), ("00:00", 0), ("23:59", 1439), ("17:30:00", 1050)],
    )
    def test_valid_times(self, value, expected):
        assert time_to_minutes(value) == expected

    @pytest.mark.parametrize("value", ["24:00", "8:00", "08:60", "8am", "", None, 800])
    def test_invalid_times(self, value):
        assert time_to_minutes(value) is None

    def test_normalize_work_time(self):
        assert normalize_work_time(" 07:15 ") == "07:15"
        assert normalize_work_time("07:15:30") == "07:15"
        assert normalize_work_time("bogus", "09:00") == "09:00"


class TestComputeWorkingMinutes:
    """Test working-minute computation."""

    def test_friday_evening_to_monday_morning(self, office_calendar):
        """Friday 16:30 to Monday 09:15 counts 30 + 75 minutes; the weekend adds nothing."""
        start = utc(2024, 3, 8, 16, 30)  # Friday
        end = utc(2024, 3, 11, 9, 15)  # Monday

        assert compute_working_minutes(start, end, office_calendar) == 105

    def test_iso_strings_are_accepted(self, office_calendar):
        minutes = compute_working_minutes(
            "2024-03-08T16:30:00Z", "2024-03-11T09:15:00+00:00", office_calendar
        )
        assert minutes == 105

    def test_within_single_shift(self, office_calendar):
        assert (
            compute_working_minutes(
                utc(2024, 3, 4, 9, 0), utc(2024, 3, 4, 10, 30), office_calendar
            )
            == 90
        )

    def test_outside_shift_same_day(self, office_calendar):
        assert (
            compute_working_minutes(
                utc(2024, 3, 4, 17, 0), utc(2024, 3, 4, 23, 0), office_calendar
            )
            == 0
        )

    def test_full_week(self, office_calendar):
        start = utc(2024, 3, 4)  # Monday 00:00
        end = utc(2024, 3, 11)  # next Monday 00:00
        assert compute_working_minutes(start, end, office_calendar) == 5 * 9 * 60

    def test_weekend_only_is_zero(self, office_calendar):
        start = utc(2024, 3, 9, 9, 0)  # Saturday
        end = utc(2024, 3, 10, 18, 0)  # Sunday
        assert compute_working_minutes(start, end, office_calendar) == 0

    def test_end_before_start_is_zero(self, office_calendar):
        start = utc(2024, 3, 4, 10, 0)
        assert compute_working_minutes(start, start, office_calendar) == 0
        assert (
            compute_working_minutes(start, start - timedelta(hours=1), office_calendar)
            == 0
        )

    @pytest.mark.parametrize(
        "start,end",
        [("not-a-date", "2024-03-04T10:00:00Z"), ("2024-03-04T09:00:00Z", "garbage")],
    )
    def test_unparseable_timestamps_are_zero(self, office_calendar, start, end):
        assert compute_working_minutes(start, end, office_calendar) == 0

    def test_missing_start_is_zero(self, office_calendar):
        assert compute_working_minutes(None, utc(2024, 3, 4, 10), office_calendar) == 0

    def test_open_end_uses_now(self, office_calendar):
        minutes = office_calendar.compute_working_minutes(
            utc(2024, 3, 4, 9, 0), None, now=utc(2024, 3, 4, 9, 45)
        )
        assert minutes == 45

    def test_truncates_to_whole_minutes(self, office_calendar):
        start = utc(2024, 3, 4, 9, 0, 0)
        end = utc(2024, 3, 4, 9, 10, 59)
        assert compute_working_minutes(start, end, office_calendar) == 10

    def test_multiple_shifts(self):
        calendar = WorkingCalendar.create(
            [1, 2, 3, 4, 5], [("06:00", "10:00"), ("14:00", "22:00")]
        )
        start = utc(2024, 3, 4, 8, 0)
        end = utc(2024, 3, 4, 16, 0)
        assert compute_working_minutes(start, end, calendar) == 240

    def test_empty_shifts_count_whole_day(self):
        calendar = WorkingCalendar.create(ALL_DAYS, [])
        start = utc(2024, 3, 4, 22, 0)
        end = utc(2024, 3, 5, 2, 0)
        assert compute_working_minutes(start, end, calendar) == 240

    def test_empty_shifts_respect_workdays(self):
        calendar = WorkingCalendar.create([1], [])  # Mondays only
        start = utc(2024, 3, 4, 22, 0)  # Monday
        end = utc(2024, 3, 5, 2, 0)  # Tuesday
        assert compute_working_minutes(start, end, calendar) == 120

    def test_overnight_shift_started_previous_evening(self):
        """A Monday night shift still counts after midnight on Tuesday."""
        calendar = WorkingCalendar.create([1], [("22:00", "06:00")])
        start = utc(2024, 3, 5, 1, 0)  # Tuesday
        end = utc(2024, 3, 5, 5, 0)
        assert compute_working_minutes(start, end, calendar) == 240

    def test_overnight_shift_across_whole_night(self):
        calendar = WorkingCalendar.create(ALL_DAYS, [("22:00", "06:00")])
        start = utc(2024, 3, 4, 21, 0)
        end = utc(2024, 3, 5, 7, 0)
        assert compute_working_minutes(start, end, calendar) == 480

    def test_malformed_shift_falls_back_to_whole_day(self):
        calendar = WorkingCalendar.create([1, 2, 3, 4, 5], [("8am", "17:00")])
        start = utc(2024, 3, 4, 20, 0)
        end = utc(2024, 3, 4, 21, 0)

        with capture_logs() as logs:
            minutes = compute_working_minutes(start, end, calendar)

        assert minutes == 60
        assert any(
            log["event"] == "Invalid working calendar"
            and log["log_level"] == "warning"
            for log in logs
        )

    def test_calendar_timezone_anchors_shifts(self):
        calendar = WorkingCalendar.create(
            [1, 2, 3, 4, 5], [("08:00", "17:00")], timezone="Europe/Berlin"
        )
        # 07:00 UTC is 08:00 in Berlin (CET, UTC+1)
        assert (
            compute_working_minutes(
                utc(2024, 3, 4, 7, 0), utc(2024, 3, 4, 8, 0), calendar
            )
            == 60
        )
        # 06:30-07:00 UTC is before the Berlin shift starts
        assert (
            compute_working_minutes(
                utc(2024, 3, 4, 6, 30), utc(2024, 3, 4, 7, 0), calendar
            )
            == 0
        )

    def test_naive_timestamps_are_calendar_local(self):
        calendar = WorkingCalendar.create(
            [1, 2, 3, 4, 5], [("08:00", "17:00")], timezone="Europe/Berlin"
        )
        start = datetime(2024, 3, 4, 8, 0)
        end = datetime(2024, 3, 4, 9, 0)
        assert compute_working_minutes(start, end, calendar) == 60

    def test_unknown_timezone_uses_utc(self):
        calendar = WorkingCalendar.create(
            [1, 2, 3, 4, 5], [("08:00", "17:00")], timezone="Mars/Olympus"
        )
        assert (
            compute_working_minutes(
                utc(2024, 3, 4, 8, 0), utc(2024, 3, 4, 9, 0), calendar
            )
            == 60
        )

    @hypothesis_settings(max_examples=75, deadline=None)
    @given(
        start=st.datetimes(
            min_value=datetime(2024, 1, 1),
            max_value=datetime(2024, 12, 31),
            timezones=st.just(UTC),
        ),
        first=st.integers(min_value=0, max_value=60 * 24 * 9),
        extra=st.integers(min_value=0, max_value=60 * 24 * 9),
        workdays=st.sets(st.integers(min_value=0, max_value=6)),
        shifts=st.lists(
            st.sampled_from(
                [("08:00", "17:00"), ("22:00", "06:00"), ("13:30", "14:15"), ("00:00", "23:59")]
            ),
            max_size=3,
        ),
    )
    def test_duration_is_monotonic(self, start, first, extra, workdays, shifts):
        """Minutes are never negative and never decrease as the end moves later."""
        calendar = WorkingCalendar.create(workdays, shifts)
        end_1 = start + timedelta(minutes=first)
        end_2 = end_1 + timedelta(minutes=extra)

        minutes_1 = compute_working_minutes(start, end_1, calendar)
        minutes_2 = compute_working_minutes(start, end_2, calendar)

        assert minutes_1 >= 0
        assert minutes_1 <= minutes_2


class TestWorkingCalendar:
    """Test calendar construction."""

    def test_default_calendar(self):
        calendar = WorkingCalendar.default()
        assert calendar.workdays == frozenset({1, 2, 3, 4, 5})
        assert calendar.shifts == (WorkShift(start="08:00", end="17:00"),)
        assert calendar.timezone == "UTC"

    def test_invalid_weekday_rejected(self):
        with pytest.raises(ValueError):
            WorkingCalendar.create([7], [("08:00", "17:00")])

    def test_sunday_is_zero(self):
        calendar = WorkingCalendar.create([0], [])
        assert calendar.is_workday(utc(2024, 3, 10).date())  # Sunday
        assert not calendar.is_workday(utc(2024, 3, 11).date())  # Monday

    def test_shift_from_mapping(self):
        calendar = WorkingCalendar.create([1], [{"start": "06:00", "end": "14:00"}])
        assert calendar.shifts[0].minutes() == (360, 840)
        assert not calendar.shifts[0].is_overnight

    def test_overnight_shift_flag(self):
        assert WorkShift(start="22:00", end="06:00").is_overnight


class TestParseWorkingCalendar:
    """Test building calendars from raw tenant settings."""

    def test_missing_settings_use_defaults(self):
        calendar = parse_working_calendar(None)
        assert calendar.workdays == frozenset({1, 2, 3, 4, 5})
        assert calendar.shifts == (WorkShift(start="08:00", end="17:00"),)

    def test_work_shifts_list(self):
        calendar = parse_working_calendar(
            {
                "workdays": [1, 2, 3],
                "work_shifts": [
                    {"start": "6:00", "end": "14:00"},  # invalid, dropped
                    {"start": "06:00", "end": "14:00"},
                    {"start": "14:00", "end": "14:00"},  # zero length, dropped
                    {"start": "22:00", "end": "06:00"},
                    "not a shift",
                ],
            }
        )
        assert calendar.workdays == frozenset({1, 2, 3})
        assert calendar.shifts == (
            WorkShift(start="06:00", end="14:00"),
            WorkShift(start="22:00", end="06:00"),
        )

    def test_empty_work_shifts_fall_back_to_default_shift(self):
        calendar = parse_working_calendar({"work_shifts": []})
        assert calendar.shifts == (WorkShift(start="08:00", end="17:00"),)

    def test_legacy_single_shift(self):
        calendar = parse_working_calendar(
            {"workday_start": "07:00", "workday_end": "15:30"}
        )
        assert calendar.shifts == (WorkShift(start="07:00", end="15:30"),)

    def test_legacy_equal_times_use_default(self):
        calendar = parse_working_calendar(
            {"workday_start": "09:00", "workday_end": "09:00"}
        )
        assert calendar.shifts == (WorkShift(start="08:00", end="17:00"),)

    def test_workdays_are_cleaned(self):
        calendar = parse_working_calendar({"workdays": [5, 1, 1, 9, "x", True, "3"]})
        assert calendar.workdays == frozenset({1, 3, 5})

    def test_no_valid_workdays_use_default(self):
        calendar = parse_working_calendar({"workdays": [8, 9]})
        assert calendar.workdays == frozenset({1, 2, 3, 4, 5})

    def test_timezone(self):
        calendar = parse_working_calendar({"timezone": "America/Chicago"})
        assert calendar.timezone == "America/Chicago"


class TestValidateWorkingCalendar:
    """Test calendar configuration validation."""

    def test_valid_calendar(self):
        assert (
            validate_working_calendar(
                [1, 2, 3, 4, 5],
                [{"start": "08:00", "end": "12:00"}, {"start": "13:00", "end": "17:00"}],
            )
            is None
        )

    def test_valid_with_overnight_shift(self):
        shifts = [WorkShift(start="22:00", end="06:00"), WorkShift(start="08:00", end="16:00")]
        assert validate_working_calendar([1], shifts) is None

    def test_no_workdays(self):
        assert validate_working_calendar([], [WorkShift(start="08:00", end="17:00")]) == (
            "Select at least one workday."
        )

    def test_no_shifts(self):
        assert validate_working_calendar([1], []) == "Add at least one shift."

    def test_bad_time_format(self):
        assert validate_working_calendar([1], [{"start": "8:00", "end": "17:00"}]) == (
            "Use 24h format HH:MM for all shifts."
        )

    def test_zero_length_shift(self):
        assert validate_working_calendar([1], [{"start": "08:00", "end": "08:00"}]) == (
            "Shift start and end cannot be the same."
        )

    def test_overlapping_shifts(self):
        problem = validate_working_calendar(
            [1],
            [{"start": "08:00", "end": "12:00"}, {"start": "11:00", "end": "15:00"}],
        )
        assert problem is not None and problem.startswith("Shifts overlap")

    def test_overnight_shift_overlapping_morning_shift(self):
        problem = validate_working_calendar(
            [1],
            [{"start": "22:00", "end": "06:00"}, {"start": "05:00", "end": "09:00"}],
        )
        assert problem is not None and problem.startswith("Shifts overlap")

    def test_adjacent_shifts_do_not_overlap(self):
        assert (
            validate_working_calendar(
                [1],
                [{"start": "06:00", "end": "14:00"}, {"start": "14:00", "end": "22:00"}],
            )
            is None
        )
