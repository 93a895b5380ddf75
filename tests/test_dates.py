"""Tests for date parsing and formatting."""

from datetime import datetime, time, timedelta, timezone

import pytest

from towd.core.dates import describe_range, format_natural, parse_clock, parse_natural, parse_when

# A Wednesday
NOW = datetime(2025, 1, 8, 15, 42, 10, tzinfo=timezone.utc)


class TestParseClock:
    @pytest.mark.parametrize(
        "text,expected",
        [("10:00", time(10, 0)), ("9am", time(9, 0)), ("3:30pm", time(15, 30)), ("at 9", time(9, 0)),
         ("12am", time(0, 0)), ("12pm", time(12, 0))],
    )
    def test_valid(self, text, expected):
        assert parse_clock(text) == expected

    @pytest.mark.parametrize("text", ["25:00", "13pm", "noonish", "10:75"])
    def test_invalid(self, text):
        with pytest.raises(ValueError):
            parse_clock(text)


class TestParseWhen:
    def test_absolute(self):
        assert parse_when("2025-01-10 10:00", NOW) == datetime(2025, 1, 10, 10, 0, tzinfo=timezone.utc)

    def test_day_first(self):
        assert parse_when("10/01/2025 10:00", NOW) == datetime(2025, 1, 10, 10, 0, tzinfo=timezone.utc)

    def test_iso_with_offset_is_converted(self):
        result = parse_when("2025-01-10T10:00:00+02:00", NOW)
        assert result == datetime(2025, 1, 10, 8, 0, tzinfo=timezone.utc)

    def test_now(self):
        assert parse_when("now", NOW) == NOW.replace(second=0)

    def test_relative_amount(self):
        assert parse_when("in 2 hours", NOW) == NOW.replace(second=0) + timedelta(hours=2)
        assert parse_when("in 1 week", NOW) == NOW.replace(second=0) + timedelta(weeks=1)

    def test_tomorrow_with_time(self):
        assert parse_when("Tomorrow 9am", NOW) == datetime(2025, 1, 9, 9, 0, tzinfo=timezone.utc)

    def test_today_is_midnight(self):
        assert parse_when("today", NOW) == datetime(2025, 1, 8, tzinfo=timezone.utc)

    def test_weekday_is_next_occurrence(self):
        assert parse_when("friday 14:00", NOW) == datetime(2025, 1, 10, 14, 0, tzinfo=timezone.utc)
        assert parse_when("wednesday", NOW).date() == NOW.date()

    @pytest.mark.parametrize("text", ["", "   ", "someday", "2025-13-40"])
    def test_invalid(self, text):
        with pytest.raises(ValueError):
            parse_when(text, NOW)


class TestNaturalFormat:
    def test_parse_and_format(self):
        parsed = parse_natural("10/01/2025 10:00", timezone.utc)
        assert parsed == datetime(2025, 1, 10, 10, 0, tzinfo=timezone.utc)
        assert format_natural(parsed) == "10/01/2025 10:00"


class TestDescribeRange:
    def test_today(self):
        start = NOW.replace(hour=0, minute=0, second=0)
        assert describe_range(start, start + timedelta(days=1), NOW) == "today"

    def test_other_range(self):
        start = datetime(2025, 1, 10, tzinfo=timezone.utc)
        assert describe_range(start, start + timedelta(days=2), NOW) == "2025-01-10 00:00 - 2025-01-12 00:00"
