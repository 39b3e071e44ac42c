"""Tests for kpi_kernel.domain.values and the small domain enums."""

from datetime import date, datetime, timedelta, timezone

import pytest

from kpi_kernel.domain.types import DayWindow, IntervalKind, TimeEventType
from kpi_kernel.domain.values import (
    ensure_utc,
    name_key,
    normalize_employee,
    normalize_job_name,
    normalize_owner_id,
    parse_day,
)
from kpi_kernel.exceptions import (
    FatalInputError,
    InvalidDayError,
    InvalidOwnerIdError,
    InvalidTimeEventError,
    InvalidTimezoneError,
)


class TestOwnerId:
    @pytest.mark.parametrize(
        "raw, expected",
        [("+1 (555) 123-4567", "15551234567"), (15551234567, "15551234567"), (" 42 ", "42")],
    )
    def test_keeps_digits(self, raw, expected):
        assert normalize_owner_id(raw) == expected

    @pytest.mark.parametrize("raw", [None, "", "abc", "+-()", True])
    def test_rejects_values_without_digits(self, raw):
        with pytest.raises(InvalidOwnerIdError) as exc_info:
            normalize_owner_id(raw)
        assert exc_info.value.code == "INVALID_OWNER_ID"
        assert isinstance(exc_info.value, FatalInputError)


class TestParseDay:
    def test_accepts_date_datetime_and_iso_string(self):
        assert parse_day(date(2024, 3, 4)) == date(2024, 3, 4)
        assert parse_day(datetime(2024, 3, 4, 23, 59)) == date(2024, 3, 4)
        assert parse_day("2024-03-04") == date(2024, 3, 4)
        assert parse_day("2024-03-04T10:00:00Z") == date(2024, 3, 4)

    @pytest.mark.parametrize("raw", ["2024-13-01", "yesterday", "", 20240304, None])
    def test_rejects_non_dates(self, raw):
        with pytest.raises(InvalidDayError):
            parse_day(raw)


class TestNames:
    def test_job_name_whitespace_is_collapsed(self):
        assert normalize_job_name("  Kitchen   Reno ") == "Kitchen Reno"
        assert normalize_job_name(None) == ""

    def test_name_key_is_case_insensitive(self):
        assert name_key("Kitchen Reno") == name_key(" kitchen  RENO")

    def test_employee_normalization(self):
        assert normalize_employee("  Mike ") == "mike"


class TestEnsureUtc:
    def test_naive_is_taken_as_utc(self):
        assert ensure_utc(datetime(2024, 3, 4, 8)) == datetime(2024, 3, 4, 8, tzinfo=timezone.utc)

    def test_aware_is_converted(self):
        plus_two = timezone(timedelta(hours=2))
        assert ensure_utc(datetime(2024, 3, 4, 10, tzinfo=plus_two)).hour == 8


class TestTimeEventType:
    def test_parse_is_lenient_on_case_and_space(self):
        assert TimeEventType.parse(" Clock_In ") is TimeEventType.CLOCK_IN

    def test_unknown_type_raises(self):
        with pytest.raises(InvalidTimeEventError):
            TimeEventType.parse("lunch")

    def test_kind_and_direction(self):
        assert TimeEventType.BREAK_STOP.kind is IntervalKind.BREAK
        assert TimeEventType.DRIVE_START.is_start
        assert not TimeEventType.CLOCK_OUT.is_start


class TestDayWindow:
    def test_unknown_timezone_raises(self):
        with pytest.raises(InvalidTimezoneError) as exc_info:
            DayWindow.for_day(date(2024, 3, 4), "Mars/Olympus")
        assert exc_info.value.code == "INVALID_TIMEZONE"

    def test_missing_timezone_defaults_to_utc(self):
        window = DayWindow.for_day(date(2024, 3, 4), None)
        assert window.tz_name == "UTC"
        assert window.start == datetime(2024, 3, 4, tzinfo=timezone.utc)
