"""Tests for natural-language date parsing."""

from datetime import date

import pytest

from hrflow.domain.dates import (
    add_months,
    count_business_days,
    find_date_mentions,
    next_monday,
    parse_date_range,
    parse_natural_date,
    parse_time,
)

# A Wednesday
TODAY = date(2026, 10, 21)


class TestParseNaturalDate:
    def test_relative_words(self):
        assert parse_natural_date("today", TODAY) == TODAY
        assert parse_natural_date("tomorrow", TODAY) == date(2026, 10, 22)
        assert parse_natural_date("next month", TODAY) == date(2026, 11, 21)
        assert parse_natural_date("next week", TODAY) == date(2026, 10, 28)

    def test_weekday_is_strictly_ahead(self):
        assert parse_natural_date("friday", TODAY) == date(2026, 10, 23)
        assert parse_natural_date("wednesday", TODAY) == date(2026, 10, 28)

    def test_weekday_next_week(self):
        assert parse_natural_date("tuesday", TODAY, next_week=True) == date(2026, 10, 27)
        assert parse_natural_date("monday", TODAY, next_week=True) == date(2026, 10, 26)

    def test_iso_and_numeric(self):
        assert parse_natural_date("2026-12-15", TODAY) == date(2026, 12, 15)
        assert parse_natural_date("12/15", TODAY) == date(2026, 12, 15)
        assert parse_natural_date("12/15/27", TODAY) == date(2027, 12, 15)

    def test_month_day_rolls_into_next_year(self):
        assert parse_natural_date("Dec 15", TODAY) == date(2026, 12, 15)
        assert parse_natural_date("January 5th", TODAY) == date(2027, 1, 5)
        assert parse_natural_date("March 3, 2026", TODAY) == date(2026, 3, 3)

    def test_invalid(self):
        assert parse_natural_date("2026-02-30", TODAY) is None
        assert parse_natural_date("someday", TODAY) is None


class TestParseDateRange:
    def test_two_weekdays_next_week(self):
        span = parse_date_range("I need tuesday and wednesday next week off", TODAY)
        assert span.start == date(2026, 10, 27)
        assert span.end == date(2026, 10, 28)
        assert span.business_days == 2

    def test_order_independent(self):
        span = parse_date_range("Dec 19 back to Dec 15", TODAY)
        assert (span.start, span.end) == (date(2026, 12, 15), date(2026, 12, 19))

    def test_single_date_with_duration(self):
        span = parse_date_range("starting monday for 3 days", TODAY)
        assert span.start == date(2026, 10, 26)
        assert span.end == date(2026, 10, 28)

    def test_next_week_alone_is_workweek(self):
        span = parse_date_range("next week", TODAY)
        assert span.start == date(2026, 10, 26)
        assert span.end == date(2026, 10, 30)

    def test_day_count_is_not_a_date(self):
        assert find_date_mentions("can I take 3-5 days off") == []
        assert parse_date_range("can I take 3-5 days off", TODAY) is None
        assert find_date_mentions("12/15 for 3 days") == ["12/15"]

    def test_nothing_usable(self):
        assert parse_date_range("sometime soon please", TODAY) is None


class TestHelpers:
    def test_business_days_skip_weekend(self):
        assert count_business_days(date(2026, 10, 23), date(2026, 10, 26)) == 2

    def test_next_monday(self):
        assert next_monday(TODAY) == date(2026, 10, 26)
        assert next_monday(date(2026, 10, 26)) == date(2026, 11, 2)

    def test_add_months_clamps_day(self):
        assert add_months(date(2026, 1, 31), 1) == date(2026, 2, 28)
        assert add_months(date(2026, 11, 15), 3) == date(2027, 2, 15)

    @pytest.mark.parametrize("text,expected", [
        ("at 2pm", (14, 0)),
        ("at 9:30 am", (9, 30)),
        ("at 3", (15, 0)),
        ("at 11pm", (10, 0)),
        ("no time here", (10, 0)),
    ])
    def test_parse_time(self, text, expected):
        assert parse_time(text) == expected
