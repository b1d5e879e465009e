"""Tests for cron text parsing and formatting."""

from datetime import datetime

import pytest

from core.errors import InvalidExpressionError, InvalidFieldError, UnsatisfiableExpressionError
from scheduler.cron import cron_matches, parse_cron
from scheduler.expression import build_expression, every_minutes, every_seconds
from scheduler.fields import FieldKind, Interval, Range, Value


class TestParseCron:
    """Five and six field text."""

    def test_five_fields_have_no_seconds(self):
        expr = parse_cron("*/5 * * * *")
        assert not expr.has_seconds
        assert expr == every_minutes(5)

    def test_six_fields_lead_with_seconds(self):
        expr = parse_cron("*/10 * * * * *")
        assert expr.has_seconds
        assert expr == every_seconds(10)

    def test_all_shapes(self):
        expr = parse_cron("0-30/10 9-17 5/7 3 *")
        assert expr.minute.spec == Interval(base=Range(start=0, end=30), step=10)
        assert expr.hour.spec == Range(start=9, end=17)
        assert expr.day_of_month.spec == Interval(base=Value(value=5), step=7)
        assert expr.month.spec == Value(value=3)
        assert expr.day_of_week.is_wildcard

    def test_names(self):
        expr = parse_cron("0 9 * jan-mar SUN")
        assert expr == build_expression(minute=0, hour=9, month=Range(start=1, end=3), day_of_week=0)

    def test_wrapping_weekday_names(self):
        expr = parse_cron("0 0 * * FRI-MON")
        assert expr.field(FieldKind.DAY_OF_WEEK).spec == Range(start=5, end=1)

    def test_surrounding_whitespace(self):
        assert parse_cron("  0 0 * * *\n") == build_expression(minute=0, hour=0)

    @pytest.mark.parametrize("text", [
        "* * * * *",
        "0-30/10 9-17 */2 3-5 1-5",
        "5/15 * * * *",
        "*/10 * * * * *",
        "0 0 1 1 *",
        "0 0 * * 5-1",
    ])
    def test_text_form_is_stable(self, text):
        assert str(parse_cron(text)) == text


class TestParseErrors:
    """Malformed text raises the matching construction error."""

    @pytest.mark.parametrize("text", ["", "* * * *", "* * * * * * *"])
    def test_wrong_field_count(self, text):
        with pytest.raises(InvalidExpressionError):
            parse_cron(text)

    def test_lists_rejected(self):
        with pytest.raises(InvalidFieldError, match="lists"):
            parse_cron("0 9,17 * * *")

    @pytest.mark.parametrize("text", [
        "61 * * * *",
        "* 24 * * *",
        "* * 0 * *",
        "* * * 13 *",
        "* * * * 7",
        "*/0 * * * *",
        "x * * * *",
        "5- * * * *",
        "* * * * */SUN",
        "30-10 * * * *",
    ])
    def test_invalid_fields(self, text):
        with pytest.raises(InvalidFieldError):
            parse_cron(text)

    def test_unsatisfiable(self):
        with pytest.raises(UnsatisfiableExpressionError):
            parse_cron("0 0 31 FEB *")


class TestCronMatches:
    """One-call parse and match."""

    def test_weekdays_at_four(self):
        assert cron_matches("0 16 * * 1-5", datetime(2024, 1, 15, 16, 0))      # Monday
        assert not cron_matches("0 16 * * 1-5", datetime(2024, 1, 13, 16, 0))  # Saturday

    def test_sunday_morning(self):
        assert cron_matches("0 9 * * 0", datetime(2024, 1, 14, 9, 0))
