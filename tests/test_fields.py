"""Tests for temporal field shapes and per-kind validation."""

import pytest

from core.errors import InvalidFieldError
from scheduler.fields import (
    DOMAINS,
    WILDCARD,
    FieldKind,
    Interval,
    Range,
    TemporalField,
    Value,
    Wildcard,
)


class TestCoercion:
    """Caller input is turned into shapes."""

    def test_none_and_star_are_wildcards(self):
        assert TemporalField.of(FieldKind.MINUTE, None).spec == WILDCARD
        assert TemporalField.of(FieldKind.MINUTE, "*").is_wildcard

    def test_int_becomes_value(self):
        field = TemporalField.of(FieldKind.HOUR, 7)
        assert field.spec == Value(value=7)
        assert str(field) == "7"

    def test_shapes_pass_through(self):
        shape = Range(start=1, end=5)
        assert TemporalField.of(FieldKind.MONTH, shape).spec is shape

    def test_bool_rejected(self):
        with pytest.raises(InvalidFieldError):
            TemporalField.of(FieldKind.HOUR, True)

    def test_string_rejected(self):
        with pytest.raises(InvalidFieldError) as exc_info:
            TemporalField.of(FieldKind.MINUTE, "five")
        assert exc_info.value.field == "minute"
        assert exc_info.value.value == "five"


class TestDomains:
    """Values and range endpoints must lie within the field's domain."""

    @pytest.mark.parametrize("kind", list(FieldKind))
    def test_bounds_accepted(self, kind):
        lo, hi = DOMAINS[kind]
        TemporalField.of(kind, lo)
        TemporalField.of(kind, hi)

    @pytest.mark.parametrize("kind", list(FieldKind))
    def test_out_of_bounds_rejected(self, kind):
        lo, hi = DOMAINS[kind]
        with pytest.raises(InvalidFieldError):
            TemporalField.of(kind, hi + 1)
        with pytest.raises(InvalidFieldError):
            TemporalField.of(kind, lo - 1)

    def test_range_endpoint_out_of_bounds(self):
        with pytest.raises(InvalidFieldError):
            TemporalField.of(FieldKind.HOUR, Range(start=20, end=24))

    def test_interval_base_out_of_bounds(self):
        with pytest.raises(InvalidFieldError):
            TemporalField.of(FieldKind.MONTH, Interval(base=Value(value=13), step=2))


class TestRanges:
    """Reversed ranges only make sense for day of week."""

    def test_reversed_range_rejected(self):
        with pytest.raises(InvalidFieldError, match="after end"):
            TemporalField.of(FieldKind.MINUTE, Range(start=30, end=10))

    def test_day_of_week_may_wrap(self):
        field = TemporalField.of(FieldKind.DAY_OF_WEEK, Range(start=5, end=1))
        assert field.spec.wraps

    def test_degenerate_range_allowed(self):
        TemporalField.of(FieldKind.DAY_OF_MONTH, Range(start=15, end=15))


class TestIntervals:
    """Interval steps must be positive."""

    @pytest.mark.parametrize("step", [0, -1, -15])
    def test_non_positive_step_rejected(self, step):
        with pytest.raises(InvalidFieldError, match="step must be positive"):
            TemporalField.of(FieldKind.SECOND, Interval(step=step))

    def test_default_base_is_wildcard(self):
        assert isinstance(Interval(step=5).base, Wildcard)

    def test_step_larger_than_domain_allowed(self):
        TemporalField.of(FieldKind.HOUR, Interval(step=100))

    def test_text_forms(self):
        assert str(Interval(step=15)) == "*/15"
        assert str(Interval(base=Value(value=5), step=10)) == "5/10"
        assert str(Interval(base=Range(start=0, end=30), step=10)) == "0-30/10"


class TestFieldKind:
    """Kind metadata."""

    def test_domain_properties(self):
        assert FieldKind.DAY_OF_MONTH.minimum == 1
        assert FieldKind.DAY_OF_MONTH.maximum == 31
        assert FieldKind.DAY_OF_WEEK.size == 7
        assert FieldKind.SECOND.size == 60
